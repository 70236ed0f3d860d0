"""
Application configuration.

Values come from environment variables or a ``.env`` file; scoring rules
can be supplied as a JSON file so a club can change them without code.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from club_scoring.schemas import (
    HandicapSettings,
    PerfClass,
    ScoringSettings,
    SecondsRule,
    TimeTrialBonuses,
)


class Settings(BaseSettings):
    """Application settings with validation."""

    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins_raw: str = Field(
        default="*",
        validation_alias="cors_origins",
        description="Comma-separated list of allowed CORS origins",
    )
    scoring_settings_file: Optional[Path] = Field(
        default=None,
        description="JSON file with the club's scoring settings",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins_raw.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def initial_scoring_settings() -> ScoringSettings:
    """The club's starting rules, used when no settings file is configured."""
    return ScoringSettings(
        time_trial_bonuses=TimeTrialBonuses(
            aero_bars=SecondsRule(enabled=True, seconds=30),
            tt_equipment=SecondsRule(enabled=True, seconds=30),
        ),
        winner_points=[3, 2, 1],
        handicap_base_points={PerfClass.A: 10, PerfClass.B: 8, PerfClass.C: 6, PerfClass.D: 4},
        drop_scores=1,
        handicap_settings=HandicapSettings(),
    )


def load_scoring_settings(path: Optional[Path] = None) -> ScoringSettings:
    """
    Read scoring settings from ``path``, or return the initial club rules.
    Sections missing from the file stay disabled.
    """
    if path is None:
        return initial_scoring_settings()
    return ScoringSettings.model_validate_json(Path(path).read_text(encoding="utf-8"))


# Global settings instance
settings = Settings()
