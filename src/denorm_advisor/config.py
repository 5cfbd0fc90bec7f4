"""Configuration management for Denorm Advisor."""

from dataclasses import replace
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from denorm_advisor.analyzer.thresholds import (
    AlwaysLoadedPolicy,
    AnalysisThresholds,
    EagerLoadingRule,
    MigrationProfile,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DENORM_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Analysis defaults
    profile: str = Field(
        default="discovery",
        description="Threshold profile (see `denorm-advisor profiles`)",
    )
    schema_dialect: str = Field(
        default="postgres",
        description="SQL dialect of schema files (postgres, mysql, tsql, ...)",
    )
    telemetry_dialect: str = Field(
        default="tsql",
        description="SQL dialect of raw query text in telemetry exports",
    )

    # Policy overrides
    always_loaded_policy: AlwaysLoadedPolicy | None = Field(
        default=None,
        description="Override the profile's always-loaded policy",
    )
    eager_loading_rule: EagerLoadingRule | None = Field(
        default=None,
        description="Override the profile's eager-loading candidacy rule",
    )

    @field_validator("profile")
    @classmethod
    def _known_profile(cls, value: str) -> str:
        return MigrationProfile.from_name(value).profile_name

    def build_thresholds(self, profile: str | None = None) -> AnalysisThresholds:
        """
        Build analysis thresholds for a profile with the configured overrides.

        Args:
            profile: Profile name (defaults to the configured profile)

        Returns:
            AnalysisThresholds
        """
        thresholds = MigrationProfile.from_name(profile or self.profile).build_thresholds()
        if self.always_loaded_policy is not None:
            thresholds = replace(thresholds, always_loaded_policy=self.always_loaded_policy)
        if self.eager_loading_rule is not None:
            thresholds = replace(thresholds, eager_loading_rule=self.eager_loading_rule)
        return thresholds


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
