"""Relationship correlator - merges schema and navigation relationships into profiles."""

import logging

from denorm_advisor.analyzer.models import EntityUsageProfile
from denorm_advisor.collector.models import SchemaDefinition

logger = logging.getLogger(__name__)


class TableEntityResolver:
    """Resolves table names to profiled entity names.

    Lookup order: exact effective table name, exact entity name, then a
    case-insensitive match on either.
    """

    def __init__(self, profiles: dict[str, EntityUsageProfile]):
        self._by_table: dict[str, str] = {}
        self._by_lower: dict[str, str] = {}
        self._entity_names = set(profiles)

        for name, profile in profiles.items():
            table = profile.entity.effective_table_name
            self._by_table.setdefault(table, name)
            self._by_lower.setdefault(table.lower(), name)
        for name in profiles:
            self._by_lower.setdefault(name.lower(), name)

    def resolve(self, table_name: str) -> str | None:
        """Entity name for a table, or None if no profile backs it."""
        if table_name in self._by_table:
            return self._by_table[table_name]
        if table_name in self._entity_names:
            return table_name
        return self._by_lower.get(table_name.lower())


class RelationshipCorrelator:
    """Assigns a cardinality to every related entity of every profile."""

    def correlate(
        self,
        profiles: dict[str, EntityUsageProfile],
        schema: SchemaDefinition | None = None,
    ) -> int:
        """
        Merge relationships into the profiles.

        Schema relationships are applied first and recorded on both sides;
        navigation relationships follow and are one-directional, so they
        overwrite a schema-derived cardinality for the same pair.

        Args:
            profiles: Profiles to update
            schema: Parsed relational schema, or None to skip schema relationships

        Returns:
            Number of relationship entries written
        """
        written = 0

        if schema is not None:
            written += self._apply_schema(profiles, schema)
        else:
            logger.debug("No schema supplied; skipping schema relationships")

        for profile in profiles.values():
            for navigation in profile.entity.navigation_properties:
                if navigation.target_entity not in profiles:
                    continue
                profile.set_related(navigation.target_entity, navigation.cardinality)
                written += 1

        logger.info(f"Correlated {written} relationship entries across {len(profiles)} profiles")
        return written

    def _apply_schema(
        self,
        profiles: dict[str, EntityUsageProfile],
        schema: SchemaDefinition,
    ) -> int:
        resolver = TableEntityResolver(profiles)
        written = 0

        for relationship in schema.relationships:
            source = resolver.resolve(relationship.from_table)
            target = resolver.resolve(relationship.to_table)
            if source is None or target is None:
                logger.debug(
                    f"Skipping relationship {relationship.name or relationship.from_table}: "
                    "endpoint has no entity"
                )
                continue

            profiles[source].set_related(target, relationship.cardinality)
            profiles[target].set_related(source, relationship.cardinality)
            written += 2
            logger.debug(f"{source} <-> {target} ({relationship.cardinality.value})")

        return written
