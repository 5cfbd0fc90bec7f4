"""Loader for extracted entity models and query-access patterns."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from denorm_advisor.collector.models import EntityModel, QueryPattern

logger = logging.getLogger(__name__)


class InputFormatError(ValueError):
    """Raised when an input document is structurally invalid."""


@dataclass
class EntityCatalog:
    """Entity models plus the property-name to entity-name mapping."""

    entities: list[EntityModel] = field(default_factory=list)
    property_mapping: dict[str, str] = field(default_factory=dict)


class InputLoader:
    """Loads the JSON documents produced by the code-analysis front end."""

    def load_entities(self, entities_file: Path | str) -> EntityCatalog:
        """Load entity models.

        The document is either a list of entities or an object with an
        ``entities`` list and an optional ``property_mapping`` object.

        Args:
            entities_file: Path to the JSON document

        Returns:
            EntityCatalog with the parsed entities and mapping
        """
        document = self._read_json(entities_file)

        if isinstance(document, list):
            raw_entities, mapping = document, {}
        elif isinstance(document, dict):
            raw_entities = document.get("entities")
            mapping = document.get("property_mapping") or {}
        else:
            raise InputFormatError(f"{entities_file}: expected a JSON object or list")

        if not isinstance(raw_entities, list):
            raise InputFormatError(f"{entities_file}: 'entities' must be a list")
        if not isinstance(mapping, dict):
            raise InputFormatError(f"{entities_file}: 'property_mapping' must be an object")

        entities = []
        for index, raw in enumerate(raw_entities):
            try:
                entities.append(EntityModel.from_dict(raw))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed entity {index} in {entities_file}: {e}")

        logger.info(f"Loaded {len(entities)} entities from {entities_file}")
        return EntityCatalog(
            entities=entities,
            property_mapping={str(k): str(v) for k, v in mapping.items()},
        )

    def load_patterns(self, patterns_file: Path | str) -> list[QueryPattern]:
        """Load query-access patterns from a list or a ``query_patterns`` object."""
        document = self._read_json(patterns_file)

        if isinstance(document, dict):
            document = document.get("query_patterns")
        if not isinstance(document, list):
            raise InputFormatError(f"{patterns_file}: expected a list of query patterns")

        patterns = []
        for index, raw in enumerate(document):
            try:
                patterns.append(QueryPattern.from_dict(raw))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed pattern {index} in {patterns_file}: {e}")

        logger.info(f"Loaded {len(patterns)} query patterns from {patterns_file}")
        return patterns

    def _read_json(self, path: Path | str) -> Any:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as e:
                raise InputFormatError(f"Invalid JSON in {path}: {e}") from e
