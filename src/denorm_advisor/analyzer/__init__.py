"""Analyzer module for usage-pattern correlation and candidate scoring."""

from denorm_advisor.analyzer.pattern_analyzer import DenormalizationAnalyzer, ResultAssembler
from denorm_advisor.analyzer.profile_builder import UsageProfileBuilder
from denorm_advisor.analyzer.relationships import RelationshipCorrelator
from denorm_advisor.analyzer.scoring import CandidateScorer
from denorm_advisor.analyzer.target_selector import TargetSelector
from denorm_advisor.analyzer.telemetry import TelemetryIntegrator, mine_table_combinations
from denorm_advisor.analyzer.thresholds import (
    AlwaysLoadedPolicy,
    AnalysisThresholds,
    EagerLoadingRule,
    MigrationProfile,
)
from denorm_advisor.analyzer.models import (
    AnalysisResult,
    ComplexityClass,
    DenormalizationCandidate,
    EntityUsageProfile,
    ProfileFrozenError,
    TargetParadigm,
)

__all__ = [
    "DenormalizationAnalyzer",
    "ResultAssembler",
    "UsageProfileBuilder",
    "RelationshipCorrelator",
    "TelemetryIntegrator",
    "mine_table_combinations",
    "CandidateScorer",
    "TargetSelector",
    "AlwaysLoadedPolicy",
    "AnalysisThresholds",
    "EagerLoadingRule",
    "MigrationProfile",
    "AnalysisResult",
    "ComplexityClass",
    "DenormalizationCandidate",
    "EntityUsageProfile",
    "ProfileFrozenError",
    "TargetParadigm",
]
