"""Main denormalization analyzer that orchestrates the analysis pipeline."""

import logging
import uuid
from datetime import datetime

from denorm_advisor.analyzer.models import (
    AnalysisResult,
    ComplexityClass,
    ComplexitySummary,
    DenormalizationCandidate,
    EntityUsageProfile,
)
from denorm_advisor.analyzer.profile_builder import UsageProfileBuilder
from denorm_advisor.analyzer.relationships import RelationshipCorrelator
from denorm_advisor.analyzer.scoring import CandidateScorer
from denorm_advisor.analyzer.target_selector import TargetSelector
from denorm_advisor.analyzer.telemetry import TelemetryIntegrator
from denorm_advisor.analyzer.thresholds import AnalysisThresholds
from denorm_advisor.collector.models import (
    EntityModel,
    QueryPattern,
    QueryType,
    SchemaDefinition,
    TableCombination,
    TelemetryAnalysis,
)

logger = logging.getLogger(__name__)

TOP_COMPLEX_ENTITIES = 3


class ResultAssembler:
    """Ranks candidates and packages the analysis result."""

    def __init__(self, scorer: CandidateScorer):
        self.scorer = scorer

    def rank(self, candidates: list[DenormalizationCandidate]) -> list[DenormalizationCandidate]:
        """Sort by descending score; equal scores keep their input order."""
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    def complexity_summary(
        self,
        profiles: dict[str, EntityUsageProfile],
        query_patterns: list[QueryPattern],
        schema: SchemaDefinition | None = None,
    ) -> ComplexitySummary:
        """Per-entity complexity scores plus their sum."""
        entity_scores = {
            name: self.scorer.complexity_score(profile, schema)
            for name, profile in profiles.items()
        }
        overall = sum(entity_scores.values())

        most_complex = sorted(entity_scores.items(), key=lambda item: item[1], reverse=True)
        top = [f"{name} ({score})" for name, score in most_complex[:TOP_COMPLEX_ENTITIES] if score > 0]
        relationship_count = len(schema.relationships) if schema is not None else 0
        complex_patterns = sum(
            1 for p in query_patterns if p.query_type == QueryType.COMPLEX_EAGER_LOADING
        )

        parts = []
        if top:
            parts.append(f"Most complex entities: {', '.join(top)}")
        parts.append(f"{relationship_count} schema relationships")
        parts.append(f"{complex_patterns} complex eager-loading patterns")

        return ComplexitySummary(
            entity_scores=entity_scores,
            overall_complexity=overall,
            reason="; ".join(parts),
        )

    def assemble(
        self,
        analysis_id: str,
        thresholds: AnalysisThresholds,
        profiles: dict[str, EntityUsageProfile],
        candidates: list[DenormalizationCandidate],
        query_patterns: list[QueryPattern],
        combinations: list[TableCombination],
        schema: SchemaDefinition | None = None,
    ) -> AnalysisResult:
        """Build the final result."""
        return AnalysisResult(
            analysis_id=analysis_id,
            created_at=datetime.now(),
            thresholds_summary=thresholds.summary(),
            profiles=profiles,
            candidates=self.rank(candidates),
            complexity=self.complexity_summary(profiles, query_patterns, schema),
            query_patterns=list(query_patterns),
            frequent_table_combinations=combinations,
        )


class DenormalizationAnalyzer:
    """
    Main analyzer that orchestrates denormalization-candidate analysis.

    Phase A builds the per-entity profiles (query patterns, relationships,
    telemetry). The profiles are then frozen and Phase B scores them,
    selects targets and assembles the ranked result.
    """

    def __init__(self, thresholds: AnalysisThresholds | None = None):
        """
        Initialize the analyzer.

        Args:
            thresholds: Analysis thresholds (defaults to discovery)
        """
        self.thresholds = thresholds or AnalysisThresholds.for_discovery()
        self.profile_builder = UsageProfileBuilder(self.thresholds)
        self.correlator = RelationshipCorrelator()
        self.telemetry_integrator = TelemetryIntegrator(self.thresholds)
        self.scorer = CandidateScorer(self.thresholds)
        self.target_selector = TargetSelector()
        self.assembler = ResultAssembler(self.scorer)
        self._analysis_id = str(uuid.uuid4())[:8]

    def analyze(
        self,
        entities: list[EntityModel],
        query_patterns: list[QueryPattern],
        schema: SchemaDefinition | None = None,
        property_mapping: dict[str, str] | None = None,
        telemetry: TelemetryAnalysis | None = None,
    ) -> AnalysisResult:
        """
        Run the full analysis.

        Args:
            entities: Entity models with navigation properties
            query_patterns: Query-access patterns from application code
            schema: Optional parsed relational schema
            property_mapping: Property/collection name -> entity name
            telemetry: Optional production telemetry

        Returns:
            Analysis result with ranked candidates
        """
        logger.info(
            f"Starting analysis {self._analysis_id}: {len(entities)} entities, "
            f"{len(query_patterns)} query patterns ({self.thresholds.profile_name} profile)"
        )
        self.thresholds.validate()
        self.thresholds.suggest_adjustments(
            len(entities),
            len(query_patterns),
            max(
                (p.frequency for p in query_patterns if isinstance(p.frequency, int)),
                default=0,
            ),
        )

        # Phase A: build the aggregate
        profiles = self.profile_builder.build(entities, query_patterns, property_mapping)
        self.correlator.correlate(profiles, schema)
        combinations = self.telemetry_integrator.integrate(profiles, telemetry)

        for profile in profiles.values():
            profile.freeze()

        # Phase B: read-only scoring
        candidates = []
        for profile in profiles.values():
            candidate = self._build_candidate(profile, profiles, schema)
            if candidate is not None:
                candidates.append(candidate)

        result = self.assembler.assemble(
            analysis_id=self._analysis_id,
            thresholds=self.thresholds,
            profiles=profiles,
            candidates=candidates,
            query_patterns=query_patterns,
            combinations=combinations,
            schema=schema,
        )

        logger.info(
            f"Analysis {self._analysis_id} complete: {len(result.candidates)} candidates "
            f"from {len(profiles)} entities"
        )
        return result

    def _build_candidate(
        self,
        profile: EntityUsageProfile,
        profiles: dict[str, EntityUsageProfile],
        schema: SchemaDefinition | None,
    ) -> DenormalizationCandidate | None:
        card = self.scorer.score_profile(profile, profiles, schema)
        if card is None:
            return None

        target, target_rule = self.target_selector.select(profile)
        return DenormalizationCandidate(
            primary_entity=profile.entity_name,
            related_entities=card.related_entities,
            complexity=ComplexityClass.from_score(card.complexity_score),
            complexity_score=card.complexity_score,
            score=card.score,
            recommended_target=target,
            reason=card.reason,
            fired_rules=card.fired_rules,
            target_rule=target_rule,
            score_interpretation=self.thresholds.interpret_score(card.score),
        )

    def get_summary(self, result: AnalysisResult) -> str:
        """Generate a human-readable summary of the analysis."""
        lines = [
            "=" * 60,
            "DENORMALIZATION ANALYSIS SUMMARY",
            "=" * 60,
            "",
            f"Analysis ID: {result.analysis_id}",
            f"Thresholds: {result.thresholds_summary}",
            f"Entities Analyzed: {len(result.profiles)}",
            f"Query Patterns: {len(result.query_patterns):,}",
            "",
            "-" * 40,
            "CANDIDATES (by priority score)",
            "-" * 40,
        ]

        for candidate in result.candidates:
            related = ", ".join(candidate.related_entities) or "-"
            lines.append(
                f"  {candidate.primary_entity} [{candidate.score}] -> "
                f"{candidate.recommended_target.value} ({candidate.complexity.value}); with: {related}"
            )

        if result.frequent_table_combinations:
            lines.extend(["", "-" * 40, "FREQUENT TABLE COMBINATIONS", "-" * 40])
            for combination in result.frequent_table_combinations[:10]:
                lines.append(
                    f"  {' + '.join(sorted(combination.tables))}: "
                    f"{combination.total_executions:,} executions "
                    f"({combination.execution_percentage:.1f}%)"
                )

        lines.extend([
            "",
            "-" * 40,
            "COMPLEXITY",
            "-" * 40,
            f"  Overall complexity: {result.complexity.overall_complexity}",
            f"  {result.complexity.reason}",
            "",
            "=" * 60,
        ])

        return "\n".join(lines)
