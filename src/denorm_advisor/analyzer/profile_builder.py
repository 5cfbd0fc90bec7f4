"""Usage-profile builder - folds entity models and query patterns into profiles."""

import logging

from denorm_advisor.analyzer.models import EntityUsageProfile
from denorm_advisor.analyzer.thresholds import AlwaysLoadedPolicy, AnalysisThresholds
from denorm_advisor.collector.models import EntityModel, QueryPattern, QueryType

logger = logging.getLogger(__name__)


class UsageProfileBuilder:
    """Builds one usage profile per entity from static query patterns."""

    def __init__(self, thresholds: AnalysisThresholds | None = None):
        """
        Initialize the builder.

        Args:
            thresholds: Analysis thresholds (defaults to discovery)
        """
        self.thresholds = thresholds or AnalysisThresholds.for_discovery()

    def build(
        self,
        entities: list[EntityModel],
        query_patterns: list[QueryPattern],
        property_mapping: dict[str, str] | None = None,
    ) -> dict[str, EntityUsageProfile]:
        """
        Create profiles and fold every query pattern into its owner's profile.

        Args:
            entities: Entity models (names should be unique)
            query_patterns: Query-access patterns
            property_mapping: Property/collection name -> entity name

        Returns:
            Dictionary mapping entity names to profiles, in entity input order
        """
        property_mapping = property_mapping or {}
        profiles: dict[str, EntityUsageProfile] = {}

        for entity in entities:
            if entity.name in profiles:
                logger.warning(f"Duplicate entity {entity.name}; keeping the first definition")
                continue
            profiles[entity.name] = EntityUsageProfile(entity=entity)

        dropped = 0
        for pattern in query_patterns:
            try:
                if not self._apply_pattern(pattern, profiles, property_mapping):
                    dropped += 1
            except (ValueError, TypeError, AttributeError, KeyError) as e:
                logger.warning(f"Skipping malformed query pattern {pattern!r}: {e}")

        logger.info(
            f"Built {len(profiles)} usage profiles from {len(query_patterns)} patterns "
            f"({dropped} without a known owner)"
        )
        return profiles

    def resolve_owner(self, pattern: QueryPattern, property_mapping: dict[str, str]) -> str:
        """Owning entity name of a pattern's target path."""
        if pattern.has_owner_prefix:
            return pattern.owner_segment
        return property_mapping.get(pattern.target_path, pattern.target_path)

    def resolve_related(
        self,
        owner: EntityUsageProfile,
        pattern: QueryPattern,
        property_mapping: dict[str, str],
    ) -> str | None:
        """Entity reached through the pattern's second path segment, if any."""
        segment = pattern.related_segment
        if not segment:
            return None
        navigation = owner.entity.find_navigation(segment)
        if navigation:
            return navigation.target_entity
        return property_mapping.get(segment, segment)

    def _apply_pattern(
        self,
        pattern: QueryPattern,
        profiles: dict[str, EntityUsageProfile],
        property_mapping: dict[str, str],
    ) -> bool:
        """Fold one pattern into its owner's profile. Returns False if it has no owner."""
        self._validate_pattern(pattern)

        owner_name = self.resolve_owner(pattern, property_mapping)
        profile = profiles.get(owner_name)
        if profile is None:
            logger.debug(f"No entity for pattern {pattern.target_path} (owner {owner_name})")
            return False

        profile.add_pattern(pattern)
        query_type = pattern.query_type

        if query_type.is_plain_read:
            profile.read_count += pattern.frequency
        elif query_type.is_eager:
            profile.eager_loading_count += pattern.frequency
            profile.read_count += pattern.frequency
            self._update_always_loaded(profile, pattern, property_mapping)

        return True

    @staticmethod
    def _validate_pattern(pattern: QueryPattern) -> None:
        """Reject a pattern before any profile is touched.

        Raises:
            ValueError: If any field has the wrong type or a negative frequency
        """
        if not isinstance(pattern.query_type, QueryType):
            raise ValueError(f"unknown query type {pattern.query_type!r}")
        if not isinstance(pattern.target_path, str) or not pattern.target_path:
            raise ValueError(f"invalid target path {pattern.target_path!r}")
        if isinstance(pattern.frequency, bool) or not isinstance(pattern.frequency, int):
            raise ValueError(f"frequency must be an integer, got {pattern.frequency!r}")
        if pattern.frequency < 0:
            raise ValueError(f"negative frequency {pattern.frequency}")
        joined = pattern.joined_entities
        if not isinstance(joined, (list, tuple)) or not all(isinstance(n, str) for n in joined):
            raise ValueError(f"joined entities must be names, got {joined!r}")

    def _update_always_loaded(
        self,
        profile: EntityUsageProfile,
        pattern: QueryPattern,
        property_mapping: dict[str, str],
    ) -> None:
        """Apply the configured always-loaded policy for an eager-load pattern."""
        frequent = pattern.frequency > self.thresholds.medium_frequency
        policy = self.thresholds.always_loaded_policy

        if pattern.joined_entities:
            if policy == AlwaysLoadedPolicy.UNCONDITIONAL or frequent:
                for name in pattern.joined_entities:
                    profile.add_always_loaded(property_mapping.get(name, name))
            return

        if not frequent:
            return

        related = self.resolve_related(profile, pattern, property_mapping)
        if related and profile.add_always_loaded(related):
            logger.debug(f"{profile.entity_name} always loaded with {related}")
