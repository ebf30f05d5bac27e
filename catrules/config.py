"""
Configuration settings for CAT rule resolution and the bundled components.
"""

from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``CAT_``-prefixed environment variables."""

    # Environment
    ENV: Literal["development", "test", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # Rule resolution
    # When True, a missing ability tracker is a configuration error instead of
    # falling back to the no-op tracker.
    REQUIRE_ABILITY_TRACKER: bool = False

    # EAP quadrature
    QUADRATURE_POINTS: int = Field(default=61, ge=2)
    QUADRATURE_MIN: float = -4.0
    QUADRATURE_MAX: float = 4.0

    # Item selection (1 = always the single most informative item)
    RANDOMESQUE_K: int = Field(default=1, ge=1)

    # Stopping rule defaults
    SE_THRESHOLD: float = Field(default=0.30, gt=0.0)
    MIN_ITEMS: int = Field(default=8, ge=0)
    MAX_ITEMS: int = Field(default=15, ge=1)
    DELTA_THETA_THRESHOLD: float = Field(default=0.03, gt=0.0)
    SE_STABILIZATION_THRESHOLD: float = Field(default=0.35, gt=0.0)

    model_config = SettingsConfigDict(
        env_prefix="CAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore unrelated CAT_* variables
    )

    @model_validator(mode="after")
    def validate_ranges(self) -> Self:
        """Reject an empty quadrature range and inverted item limits."""
        if self.QUADRATURE_MIN >= self.QUADRATURE_MAX:
            raise ValueError(
                f"QUADRATURE_MIN ({self.QUADRATURE_MIN}) must be less than "
                f"QUADRATURE_MAX ({self.QUADRATURE_MAX})"
            )
        if self.MIN_ITEMS > self.MAX_ITEMS:
            raise ValueError(
                f"MIN_ITEMS ({self.MIN_ITEMS}) must not exceed "
                f"MAX_ITEMS ({self.MAX_ITEMS})"
            )
        return self

    @property
    def quadrature_range(self) -> tuple[float, float]:
        return (self.QUADRATURE_MIN, self.QUADRATURE_MAX)


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
