"""Data models for the analyzer module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from denorm_advisor.collector.models import (
    Cardinality,
    EntityModel,
    QueryPattern,
    QueryType,
    TableCombination,
)

# Share of an entity's patterns that must be key lookups for "simple key-based access"
SIMPLE_ACCESS_SHARE = 0.7
# More always-loaded entities than this makes the relationships "complex"
COMPLEX_ALWAYS_LOADED_LIMIT = 3

# Complexity bands (inclusive upper bounds)
LOW_COMPLEXITY_MAX = 30
MEDIUM_COMPLEXITY_MAX = 60


class ProfileFrozenError(RuntimeError):
    """Raised when a frozen usage profile is modified."""


class ComplexityClass(Enum):
    """Ordinal migration difficulty."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def from_score(cls, score: int) -> "ComplexityClass":
        """Map a complexity score onto its band."""
        if score <= LOW_COMPLEXITY_MAX:
            return cls.LOW
        if score <= MEDIUM_COMPLEXITY_MAX:
            return cls.MEDIUM
        return cls.HIGH


class TargetParadigm(Enum):
    """Non-relational storage paradigm recommended for a candidate."""

    KEY_VALUE = "KEY_VALUE"
    DOCUMENT = "DOCUMENT"
    GRAPH = "GRAPH"

    @property
    def display_name(self) -> str:
        """Human readable name with example services."""
        return {
            TargetParadigm.KEY_VALUE: "Key-value / wide-column (e.g. DynamoDB)",
            TargetParadigm.DOCUMENT: "Document (e.g. DocumentDB, MongoDB)",
            TargetParadigm.GRAPH: "Graph (e.g. Neptune)",
        }[self]


@dataclass(eq=False)
class EntityUsageProfile:
    """Per-entity usage aggregate built during one analysis run.

    Mutable while profiles, relationships and telemetry are folded in.
    After ``freeze()`` the collections become read-only views and any
    further write raises ``ProfileFrozenError``.
    """

    entity: EntityModel
    read_count: int = 0
    write_count: int = 0
    eager_loading_count: int = 0
    always_loaded_with: Sequence[str] = field(default_factory=list)
    related_entities: Mapping[str, Cardinality] = field(default_factory=dict)
    co_accessed_entities: Mapping[str, int] = field(default_factory=dict)
    production_execution_count: int = 0
    production_read_write_ratio: float | None = None
    query_patterns: Sequence[QueryPattern] = field(default_factory=list)
    _frozen: bool = field(default=False, init=False, repr=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise ProfileFrozenError(
                f"Profile for {self.entity.name} is frozen; cannot set {name}"
            )
        super().__setattr__(name, value)

    @property
    def entity_name(self) -> str:
        """Name of the profiled entity."""
        return self.entity.name

    @property
    def is_frozen(self) -> bool:
        """True once the profile has been frozen."""
        return self._frozen

    # Phase A mutators

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ProfileFrozenError(f"Profile for {self.entity.name} is frozen")

    def add_pattern(self, pattern: QueryPattern) -> None:
        """Record a query pattern targeting this entity."""
        self._check_mutable()
        self.query_patterns.append(pattern)

    def add_always_loaded(self, entity_name: str) -> bool:
        """Add an entity to the always-loaded set, keeping insertion order.

        Returns:
            True if the entity was newly added
        """
        self._check_mutable()
        if entity_name == self.entity.name or entity_name in self.always_loaded_with:
            return False
        self.always_loaded_with.append(entity_name)
        return True

    def set_related(self, entity_name: str, cardinality: Cardinality) -> None:
        """Record (or overwrite) the cardinality towards a related entity."""
        self._check_mutable()
        self.related_entities[entity_name] = cardinality

    def add_co_access(self, entity_name: str, weight: int) -> None:
        """Accumulate production co-access weight towards another entity."""
        self._check_mutable()
        self.co_accessed_entities[entity_name] = self.co_accessed_entities.get(entity_name, 0) + weight

    def freeze(self) -> None:
        """Convert collections to read-only views and block further writes."""
        if self._frozen:
            return
        self.always_loaded_with = tuple(self.always_loaded_with)
        self.related_entities = MappingProxyType(dict(self.related_entities))
        self.co_accessed_entities = MappingProxyType(dict(self.co_accessed_entities))
        self.query_patterns = tuple(self.query_patterns)
        self._frozen = True

    # Derived metrics

    @property
    def read_write_ratio(self) -> float:
        """Static reads per write; equals the read count when there are no writes."""
        if self.write_count == 0:
            return float(self.read_count)
        return self.read_count / self.write_count

    @property
    def combined_read_write_ratio(self) -> float:
        """Production ratio when telemetry provided one, else the static ratio."""
        if self.production_read_write_ratio is not None:
            return self.production_read_write_ratio
        return self.read_write_ratio

    @property
    def total_access_frequency(self) -> int:
        """Eager loads plus production executions."""
        return self.eager_loading_count + self.production_execution_count

    @property
    def complex_query_count(self) -> int:
        """Number of multi-level eager-load patterns."""
        return sum(
            1 for p in self.query_patterns
            if p.query_type == QueryType.COMPLEX_EAGER_LOADING
        )

    @property
    def has_simple_key_based_access(self) -> bool:
        """Most patterns are single-item lookups."""
        if not self.query_patterns:
            return False
        lookups = sum(1 for p in self.query_patterns if p.query_type.is_key_lookup)
        return lookups > len(self.query_patterns) * SIMPLE_ACCESS_SHARE

    @property
    def has_complex_relationships(self) -> bool:
        """Several many-to-many navigations or many always-loaded entities."""
        return (
            self.entity.many_to_many_count > 1
            or len(self.always_loaded_with) > COMPLEX_ALWAYS_LOADED_LIMIT
        )

    @property
    def has_deep_nesting(self) -> bool:
        """Any pattern loads a second level of related entities."""
        return any(p.is_deep_nesting for p in self.query_patterns)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "entity": self.entity.name,
            "table_name": self.entity.effective_table_name,
            "read_count": self.read_count,
            "write_count": self.write_count,
            "eager_loading_count": self.eager_loading_count,
            "read_write_ratio": self.read_write_ratio,
            "always_loaded_with": list(self.always_loaded_with),
            "related_entities": {k: v.value for k, v in self.related_entities.items()},
            "co_accessed_entities": dict(self.co_accessed_entities),
            "production_execution_count": self.production_execution_count,
            "production_read_write_ratio": self.production_read_write_ratio,
            "query_pattern_count": len(self.query_patterns),
        }


@dataclass(frozen=True)
class RuleHit:
    """A heuristic rule that fired, with its human-readable explanation."""

    rule: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {"rule": self.rule, "detail": self.detail}


@dataclass(frozen=True)
class DenormalizationCandidate:
    """An entity proposed to be merged with related entities into one item."""

    primary_entity: str
    related_entities: tuple[str, ...]
    complexity: ComplexityClass
    complexity_score: int
    score: int
    recommended_target: TargetParadigm
    reason: str
    fired_rules: tuple[RuleHit, ...] = ()
    target_rule: str = ""
    score_interpretation: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "primary_entity": self.primary_entity,
            "related_entities": list(self.related_entities),
            "complexity": self.complexity.value,
            "complexity_score": self.complexity_score,
            "score": self.score,
            "score_interpretation": self.score_interpretation,
            "recommended_target": self.recommended_target.value,
            "target_rule": self.target_rule,
            "reason": self.reason,
            "fired_rules": [r.to_dict() for r in self.fired_rules],
        }


@dataclass
class ComplexitySummary:
    """Per-entity complexity scores and their aggregate."""

    entity_scores: dict[str, int] = field(default_factory=dict)
    overall_complexity: int = 0
    reason: str = ""

    @property
    def overall_class(self) -> ComplexityClass:
        """Band of the most complex single entity."""
        return ComplexityClass.from_score(max(self.entity_scores.values(), default=0))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "entity_scores": self.entity_scores,
            "overall_complexity": self.overall_complexity,
            "reason": self.reason,
        }


@dataclass
class AnalysisResult:
    """Complete result of a denormalization analysis run."""

    # Metadata
    analysis_id: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    thresholds_summary: str = ""

    # Results
    profiles: dict[str, EntityUsageProfile] = field(default_factory=dict)
    candidates: list[DenormalizationCandidate] = field(default_factory=list)
    complexity: ComplexitySummary = field(default_factory=ComplexitySummary)
    query_patterns: list[QueryPattern] = field(default_factory=list)
    frequent_table_combinations: list[TableCombination] = field(default_factory=list)

    def get_candidate(self, entity_name: str) -> DenormalizationCandidate | None:
        """Get candidate by primary entity name."""
        for candidate in self.candidates:
            if candidate.primary_entity == entity_name:
                return candidate
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "analysis_id": self.analysis_id,
            "created_at": self.created_at.isoformat(),
            "thresholds": self.thresholds_summary,
            "entities_analyzed": len(self.profiles),
            "query_patterns_analyzed": len(self.query_patterns),
            "candidates": [c.to_dict() for c in self.candidates],
            "complexity": self.complexity.to_dict(),
            "frequent_table_combinations": [c.to_dict() for c in self.frequent_table_combinations],
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
