"""Candidate scorer - candidacy rules, related-entity sets, complexity and priority."""

import logging
from dataclasses import dataclass
from typing import Callable

from denorm_advisor.analyzer.models import EntityUsageProfile, RuleHit
from denorm_advisor.analyzer.thresholds import AnalysisThresholds, EagerLoadingRule
from denorm_advisor.collector.models import Cardinality, SchemaDefinition

logger = logging.getLogger(__name__)

# Priority score weights
PRODUCTION_SCALE = 100
PRODUCTION_CAP = 30
CO_ACCESS_POINTS = 5
CO_ACCESS_CAP = 20
TOTAL_ACCESS_CAP = 100
ALWAYS_LOADED_POINTS = 10
ALWAYS_LOADED_CAP = 30
READ_HEAVY_BONUS = 20
READ_LEANING_BONUS = 10
COMPLEX_QUERY_POINTS = 5
COMPLEX_QUERY_CAP = 25
SIMPLE_ACCESS_BONUS = 15
COMPLEX_RELATIONSHIP_PENALTY = 10
CIRCULAR_REFERENCE_PENALTY = 10
# Sum of all caps and bonuses; used for calibration only
THEORETICAL_MAX_SCORE = (
    PRODUCTION_CAP + CO_ACCESS_CAP + TOTAL_ACCESS_CAP + ALWAYS_LOADED_CAP
    + READ_HEAVY_BONUS + COMPLEX_QUERY_CAP + SIMPLE_ACCESS_BONUS
)

# Complexity weights
NAVIGATION_COMPLEXITY = 5
ALWAYS_LOADED_COMPLEXITY = 3
COMPLEX_QUERY_COMPLEXITY = 4
MANY_TO_MANY_COMPLEXITY = 10
COLUMN_COMPLEXITY_CAP = 20
INDEX_COMPLEXITY = 2
RELATIONSHIP_COMPLEXITY = 3


@dataclass(frozen=True)
class CandidacyRule:
    """A tagged candidacy rule; ``explain`` returns a detail when the rule fires."""

    tag: str
    explain: Callable[[EntityUsageProfile, AnalysisThresholds], str | None]


def _high_production_usage(profile: EntityUsageProfile, t: AnalysisThresholds) -> str | None:
    if profile.production_execution_count > t.high_production_execution:
        return f"High production usage ({profile.production_execution_count:,} executions)"
    return None


def _production_co_access(profile: EntityUsageProfile, t: AnalysisThresholds) -> str | None:
    strong = [
        f"{name} ({weight:,})"
        for name, weight in profile.co_accessed_entities.items()
        if weight > t.co_access_threshold
    ]
    if strong:
        return f"Frequently co-accessed in production with {', '.join(strong)}"
    return None


def _eager_loading(profile: EntityUsageProfile, t: AnalysisThresholds) -> str | None:
    count = profile.eager_loading_count
    if t.eager_loading_rule == EagerLoadingRule.HIGH_FREQUENCY:
        if count > t.high_frequency:
            return f"High frequency eager loading ({count} occurrences)"
        return None
    if count > 0:
        detail = f"Uses eager loading ({count} occurrences)"
        if profile.always_loaded_with:
            detail += f", always loaded with {', '.join(profile.always_loaded_with)}"
        return detail
    return None


def _read_heavy(profile: EntityUsageProfile, t: AnalysisThresholds) -> str | None:
    ratio = profile.combined_read_write_ratio
    if ratio > t.high_read_write_ratio and profile.read_count > t.min_read_sample:
        source = "production" if profile.production_read_write_ratio is not None else "static"
        return f"Read-heavy access pattern ({source} ratio {ratio:.1f}:1)"
    return None


def _complex_queries(profile: EntityUsageProfile, t: AnalysisThresholds) -> str | None:
    count = profile.complex_query_count
    if count > t.complex_query_minimum:
        return f"Complex multi-level eager loading ({count} patterns)"
    return None


CANDIDACY_RULES: tuple[CandidacyRule, ...] = (
    CandidacyRule("HIGH_PRODUCTION_USAGE", _high_production_usage),
    CandidacyRule("PRODUCTION_CO_ACCESS", _production_co_access),
    CandidacyRule("EAGER_LOADING", _eager_loading),
    CandidacyRule("READ_HEAVY", _read_heavy),
    CandidacyRule("COMPLEX_QUERIES", _complex_queries),
)


@dataclass(frozen=True)
class ScoreCard:
    """Scoring outcome for one qualifying profile."""

    fired_rules: tuple[RuleHit, ...]
    related_entities: tuple[str, ...]
    complexity_score: int
    score: int

    @property
    def reason(self) -> str:
        """Fired-rule details joined into one explanation."""
        return "; ".join(hit.detail for hit in self.fired_rules)


class CandidateScorer:
    """Decides candidacy and computes complexity and priority scores."""

    def __init__(self, thresholds: AnalysisThresholds | None = None):
        """
        Initialize the scorer.

        Args:
            thresholds: Analysis thresholds (defaults to discovery)
        """
        self.thresholds = thresholds or AnalysisThresholds.for_discovery()
        self.rules = CANDIDACY_RULES

    def evaluate(self, profile: EntityUsageProfile) -> list[RuleHit]:
        """Evaluate every candidacy rule and return those that fired, in rule order."""
        hits = []
        for rule in self.rules:
            detail = rule.explain(profile, self.thresholds)
            if detail is not None:
                hits.append(RuleHit(rule=rule.tag, detail=detail))
        return hits

    def score_profile(
        self,
        profile: EntityUsageProfile,
        profiles: dict[str, EntityUsageProfile],
        schema: SchemaDefinition | None = None,
    ) -> ScoreCard | None:
        """
        Score a profile if it qualifies as a candidate.

        Args:
            profile: Frozen profile to score
            profiles: All profiles of the run (for mutual always-loaded checks)
            schema: Parsed schema, or None

        Returns:
            ScoreCard, or None when no candidacy rule fired
        """
        hits = self.evaluate(profile)
        if not hits:
            return None

        card = ScoreCard(
            fired_rules=tuple(hits),
            related_entities=tuple(self.related_entities(profile, profiles)),
            complexity_score=self.complexity_score(profile, schema),
            score=self.priority_score(profile),
        )
        logger.debug(
            f"Candidate {profile.entity_name}: score={card.score}, "
            f"complexity={card.complexity_score}, rules={[h.rule for h in hits]}"
        )
        return card

    def related_entities(
        self,
        profile: EntityUsageProfile,
        profiles: dict[str, EntityUsageProfile],
    ) -> list[str]:
        """Entities to merge into the candidate's item, de-duplicated in signal order."""
        related: list[str] = []

        def add(name: str) -> None:
            if name != profile.entity_name and name not in related:
                related.append(name)

        for name in profile.always_loaded_with:
            add(name)

        for name, cardinality in profile.related_entities.items():
            if cardinality == Cardinality.ONE_TO_ONE:
                add(name)

        for name, cardinality in profile.related_entities.items():
            if cardinality not in (Cardinality.ONE_TO_MANY, Cardinality.MANY_TO_ONE):
                continue
            other = profiles.get(name)
            if name in profile.always_loaded_with or (
                other is not None and profile.entity_name in other.always_loaded_with
            ):
                add(name)

        for name, weight in profile.co_accessed_entities.items():
            if weight > self.thresholds.co_access_threshold:
                add(name)

        return related

    def complexity_score(
        self,
        profile: EntityUsageProfile,
        schema: SchemaDefinition | None = None,
    ) -> int:
        """Estimate migration difficulty of a profile's entity."""
        entity = profile.entity
        score = entity.navigation_count * NAVIGATION_COMPLEXITY

        if entity.has_circular_reference:
            score += self.thresholds.circular_reference_complexity

        score += len(profile.always_loaded_with) * ALWAYS_LOADED_COMPLEXITY
        score += profile.complex_query_count * COMPLEX_QUERY_COMPLEXITY
        score += entity.many_to_many_count * MANY_TO_MANY_COMPLEXITY

        if schema is not None:
            table_name = entity.effective_table_name
            table = schema.get_table(table_name)
            if table is not None:
                score += min(len(table.columns), COLUMN_COMPLEXITY_CAP)
                score += len(table.indexes) * INDEX_COMPLEXITY
            score += len(schema.relationships_involving(table_name)) * RELATIONSHIP_COMPLEXITY

        return score

    def priority_score(self, profile: EntityUsageProfile) -> int:
        """Migration priority of a profile; never negative."""
        t = self.thresholds
        score = 0
        production = profile.production_execution_count

        if production > 0:
            score += min(production // PRODUCTION_SCALE, PRODUCTION_CAP)
            strong_co_access = sum(
                1 for weight in profile.co_accessed_entities.values()
                if weight > t.co_access_threshold
            )
            score += min(strong_co_access * CO_ACCESS_POINTS, CO_ACCESS_CAP)

        score += min(profile.total_access_frequency, TOTAL_ACCESS_CAP)
        score += min(len(profile.always_loaded_with) * ALWAYS_LOADED_POINTS, ALWAYS_LOADED_CAP)

        ratio = profile.combined_read_write_ratio
        if ratio > t.high_read_write_ratio:
            score += READ_HEAVY_BONUS
        elif ratio > t.high_read_write_ratio / 2:
            score += READ_LEANING_BONUS

        score += min(profile.complex_query_count * COMPLEX_QUERY_POINTS, COMPLEX_QUERY_CAP)

        if profile.has_simple_key_based_access:
            score += SIMPLE_ACCESS_BONUS
        if profile.has_complex_relationships:
            score -= COMPLEX_RELATIONSHIP_PENALTY
        if profile.entity.has_circular_reference:
            score -= CIRCULAR_REFERENCE_PENALTY

        return max(score, 0)
