"""Threshold configuration for the denormalization analysis."""

import logging
from dataclasses import dataclass, replace
from enum import Enum

logger = logging.getLogger(__name__)


class AlwaysLoadedPolicy(Enum):
    """How eager-load patterns feed an entity's always-loaded set."""

    # Explicit joined entities always count; path-derived ones need medium frequency
    UNCONDITIONAL = "unconditional"
    # Everything needs frequency above medium
    FREQUENCY_GATED = "frequency_gated"


class EagerLoadingRule(Enum):
    """When eager loading alone makes an entity a candidate."""

    ANY = "any"
    HIGH_FREQUENCY = "high_frequency"


@dataclass
class AnalysisThresholds:
    """Named thresholds consumed by the analysis pipeline."""

    # Pattern frequency
    high_frequency: int = 8
    medium_frequency: int = 2

    # Read/write patterns
    high_read_write_ratio: float = 3.0
    min_read_sample: int = 2

    # Production telemetry
    co_access_threshold: int = 50
    high_production_execution: int = 100
    slow_query_ms: float = 100.0

    # Complexity
    complex_query_minimum: int = 0
    complex_relationship_penalty: int = 10
    complexity_penalty_multiplier: float = 1.0

    # Policies
    always_loaded_policy: AlwaysLoadedPolicy = AlwaysLoadedPolicy.UNCONDITIONAL
    eager_loading_rule: EagerLoadingRule = EagerLoadingRule.ANY

    # Score interpretation tiers
    excellent_score: int = 150
    strong_score: int = 100
    good_score: int = 60
    fair_score: int = 30

    profile_name: str = "discovery"
    profile_description: str = "Discovery mode - find all potential patterns"

    @classmethod
    def for_discovery(cls) -> "AnalysisThresholds":
        """Permissive defaults that surface every potential pattern."""
        return cls()

    @classmethod
    def for_conservative(cls) -> "AnalysisThresholds":
        """Conservative defaults that only surface obvious candidates."""
        return cls(
            high_frequency=50,
            medium_frequency=20,
            high_read_write_ratio=10.0,
            min_read_sample=20,
            co_access_threshold=500,
            high_production_execution=1000,
            complex_query_minimum=5,
            always_loaded_policy=AlwaysLoadedPolicy.FREQUENCY_GATED,
            eager_loading_rule=EagerLoadingRule.HIGH_FREQUENCY,
            profile_name="conservative",
            profile_description="Conservative approach - only migrate obvious candidates",
        )

    @property
    def circular_reference_complexity(self) -> int:
        """Complexity added for a self-referencing entity."""
        return int(self.complex_relationship_penalty * 2 * self.complexity_penalty_multiplier)

    def interpret_score(self, score: int) -> str:
        """Describe a priority score using the interpretation tiers."""
        if score >= self.excellent_score:
            return "Excellent candidate"
        if score >= self.strong_score:
            return "Strong candidate"
        if score >= self.good_score:
            return "Good candidate"
        if score >= self.fair_score:
            return "Fair candidate"
        return "Weak candidate"

    def validate(self) -> list[str]:
        """Log a warning for every incoherent threshold value.

        Returns:
            List of warning messages
        """
        warnings = []

        if self.high_frequency <= self.medium_frequency:
            warnings.append(
                f"High frequency threshold ({self.high_frequency}) should be greater than "
                f"medium frequency threshold ({self.medium_frequency})"
            )
        if self.medium_frequency < 0:
            warnings.append(f"Medium frequency threshold ({self.medium_frequency}) should not be negative")
        if self.high_read_write_ratio <= 1.0:
            warnings.append(f"High read/write ratio ({self.high_read_write_ratio}) should be greater than 1.0")
        if self.co_access_threshold < 0 or self.high_production_execution < 0:
            warnings.append("Production thresholds should not be negative")
        tiers = [self.excellent_score, self.strong_score, self.good_score, self.fair_score]
        if tiers != sorted(tiers, reverse=True) or len(set(tiers)) != len(tiers):
            warnings.append(f"Score tiers should be strictly decreasing: {tiers}")
        if self.complexity_penalty_multiplier < 0:
            warnings.append(
                f"Complexity penalty multiplier ({self.complexity_penalty_multiplier}) should not be negative"
            )

        for message in warnings:
            logger.warning(message)

        logger.debug(f"Using thresholds - {self.summary()}")
        return warnings

    def suggest_adjustments(
        self, entity_count: int, pattern_count: int, max_frequency: int
    ) -> list[str]:
        """Log hints about thresholds that fit the application poorly.

        Args:
            entity_count: Number of entity models
            pattern_count: Number of query patterns
            max_frequency: Highest pattern frequency

        Returns:
            List of hint messages
        """
        logger.info(
            f"Application characteristics: {entity_count} entities, "
            f"{pattern_count} query patterns, max frequency: {max_frequency}"
        )

        hints = []
        if pattern_count == 0:
            hints.append("No query patterns detected; only telemetry and schema signals will be used")
        elif max_frequency < self.medium_frequency:
            hints.append(
                f"Maximum query frequency ({max_frequency}) is below the medium threshold "
                f"({self.medium_frequency}). Consider the 'aggressive' or 'discovery' profile"
            )
        if entity_count < 5 and self.high_frequency > 20:
            hints.append(
                f"Small application detected ({entity_count} entities). "
                "Consider the 'startup-aggressive' profile"
            )
        if entity_count > 50 and self.high_frequency < 100:
            hints.append(
                f"Large application detected ({entity_count} entities). "
                "Consider the 'enterprise-conservative' profile"
            )

        for hint in hints:
            logger.info(hint)
        return hints

    def summary(self) -> str:
        """One-line description of the active thresholds."""
        return (
            f"Profile: {self.profile_name} | High freq: {self.high_frequency} | "
            f"Medium freq: {self.medium_frequency} | Read/Write: {self.high_read_write_ratio:.1f} | "
            f"Co-access: {self.co_access_threshold} | Eager rule: {self.eager_loading_rule.value}"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "profile_name": self.profile_name,
            "high_frequency": self.high_frequency,
            "medium_frequency": self.medium_frequency,
            "high_read_write_ratio": self.high_read_write_ratio,
            "min_read_sample": self.min_read_sample,
            "co_access_threshold": self.co_access_threshold,
            "high_production_execution": self.high_production_execution,
            "slow_query_ms": self.slow_query_ms,
            "complex_query_minimum": self.complex_query_minimum,
            "always_loaded_policy": self.always_loaded_policy.value,
            "eager_loading_rule": self.eager_loading_rule.value,
        }


class MigrationProfile(Enum):
    """Named threshold presets.

    ``discovery`` and ``conservative`` are the two documented default sets.
    The other presets scale the conservative base values by a frequency,
    complexity and read/write multiplier and carry their own score tiers.
    """

    # name, description, frequency, complexity, read/write multipliers, tiers
    CONSERVATIVE = ("conservative", "Conservative approach - only migrate obvious candidates",
                    1.0, 1.0, 1.0, (150, 100, 60, 30))
    BALANCED = ("balanced", "Balanced approach - default settings for most applications",
                1.0, 1.0, 1.0, (150, 100, 60, 30))
    AGGRESSIVE = ("aggressive", "Aggressive approach - identify more migration opportunities",
                  0.4, 1.5, 0.7, (120, 80, 40, 20))
    DISCOVERY = ("discovery", "Discovery mode - find all potential patterns",
                 0.2, 2.0, 0.5, (150, 100, 60, 30))
    STARTUP_AGGRESSIVE = ("startup-aggressive", "Optimized for small applications with growth potential",
                          0.3, 1.8, 0.6, (100, 60, 30, 15))
    SMB_BALANCED = ("smb-balanced", "Balanced approach for small-to-medium business applications",
                    0.6, 1.2, 0.8, (130, 85, 50, 25))
    ENTERPRISE_CONSERVATIVE = ("enterprise-conservative", "Conservative approach for large enterprise systems",
                               1.8, 0.8, 1.5, (200, 150, 100, 60))
    RETAIL = ("retail", "Optimized for retail/e-commerce patterns with seasonal spikes",
              0.7, 1.3, 0.6, (140, 90, 50, 25))
    HEALTHCARE = ("healthcare", "Conservative approach for healthcare systems with complex relationships",
                  1.2, 0.9, 1.8, (160, 110, 70, 40))
    MANUFACTURING = ("manufacturing", "Handles complex ERP patterns with many-to-many relationships",
                     0.8, 1.1, 1.2, (130, 85, 50, 30))
    FINANCIAL = ("financial", "Conservative approach for financial systems with regulatory requirements",
                 2.5, 0.7, 2.0, (200, 140, 90, 60))

    def __init__(self, profile_name, description, frequency_multiplier,
                 complexity_multiplier, read_write_multiplier, tiers):
        self.profile_name = profile_name
        self.description = description
        self.frequency_multiplier = frequency_multiplier
        self.complexity_multiplier = complexity_multiplier
        self.read_write_multiplier = read_write_multiplier
        self.tiers = tiers

    def build_thresholds(self) -> AnalysisThresholds:
        """Create the thresholds for this profile."""
        if self is MigrationProfile.DISCOVERY:
            return AnalysisThresholds.for_discovery()
        if self is MigrationProfile.CONSERVATIVE:
            return AnalysisThresholds.for_conservative()

        base = AnalysisThresholds.for_conservative()
        freq = self.frequency_multiplier
        excellent, strong, good, fair = self.tiers

        thresholds = replace(
            base,
            high_frequency=int(base.high_frequency * freq),
            medium_frequency=int(base.medium_frequency * freq),
            min_read_sample=int(base.min_read_sample * freq),
            high_read_write_ratio=base.high_read_write_ratio * self.read_write_multiplier,
            co_access_threshold=int(base.co_access_threshold * freq),
            high_production_execution=int(base.high_production_execution * freq),
            complex_query_minimum=int(base.complex_query_minimum * freq),
            complex_relationship_penalty=int(base.complex_relationship_penalty * self.complexity_multiplier),
            complexity_penalty_multiplier=self.complexity_multiplier,
            eager_loading_rule=EagerLoadingRule.HIGH_FREQUENCY if freq >= 1.0 else EagerLoadingRule.ANY,
            excellent_score=excellent,
            strong_score=strong,
            good_score=good,
            fair_score=fair,
            profile_name=self.profile_name,
            profile_description=self.description,
        )

        # Industry-specific adjustments
        if self is MigrationProfile.RETAIL:
            thresholds = replace(thresholds, high_read_write_ratio=5.0, complex_query_minimum=3)
        elif self is MigrationProfile.HEALTHCARE:
            thresholds = replace(thresholds, complexity_penalty_multiplier=1.5)
        elif self is MigrationProfile.MANUFACTURING:
            thresholds = replace(thresholds, complex_relationship_penalty=5, complex_query_minimum=4)
        elif self is MigrationProfile.FINANCIAL:
            thresholds = replace(thresholds, high_read_write_ratio=15.0)

        return thresholds

    @classmethod
    def from_name(cls, name: str) -> "MigrationProfile":
        """Find a profile by name (case-insensitive, underscores accepted)."""
        wanted = name.strip().lower().replace("_", "-")
        for profile in cls:
            if profile.profile_name == wanted:
                return profile
        raise ValueError(f"Unknown migration profile: {name}. Available profiles: {cls.available()}")

    @classmethod
    def available(cls) -> str:
        """Comma-separated list of profile names."""
        return ", ".join(p.profile_name for p in cls)
