"""
Engine configuration.

Settings come from the environment (a local .env file is loaded first).
Every variable is optional; defaults suit a single-user SQLite setup.

    STUDY_DATABASE_URL          sqlite:///logs/study.db
    STUDY_DEFAULT_USER_ID       default
    STUDY_DAILY_NEW_CAP         20
    STUDY_DAILY_REVIEW_CAP      200
    STUDY_NEW_CARD_SPACING      5     at most one new card in every k cards
    STUDY_REQUEUE_MIN_OFFSET    3     AGAIN cards return 3..8 cards later
    STUDY_REQUEUE_MAX_OFFSET    8
    STUDY_RETENTION_WINDOW_DAYS 30
    STUDY_MIN_SAMPLE_SIZE       5
    STUDY_WEAK_BELOW            0.70
    STUDY_STRONG_FROM           0.85
    STUDY_DAY_ROLLOVER_HOUR     4     study day starts at 04:00 UTC
    STUDY_FSRS_PARAMETERS_FILE  (unset: built-in parameters)
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from study_core.analytics.types import StrengthThresholds
from study_core.errors import ConfigurationError
from study_core.fsrs.parameters import DEFAULT_PARAMETERS, FSRSParameters


ENV_PREFIX = "STUDY_"


class EngineSettings(BaseModel):
    """
    Runtime knobs for queue building, sessions and analytics.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    database_url: str = "sqlite:///logs/study.db"
    default_user_id: str = "default"
    daily_new_cap: int = 20
    daily_review_cap: int = 200
    new_card_spacing: int = 5
    requeue_min_offset: int = 3
    requeue_max_offset: int = 8
    retention_window_days: int = 30
    min_sample_size: int = 5
    weak_below: float = 0.70
    strong_from: float = 0.85
    day_rollover_hour: int = 4
    fsrs_parameters_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_ranges(self) -> "EngineSettings":
        if self.daily_new_cap < 0 or self.daily_review_cap < 0:
            raise ValueError("daily caps must be >= 0")
        if self.new_card_spacing < 1:
            raise ValueError("new_card_spacing must be >= 1")
        if not 1 <= self.requeue_min_offset <= self.requeue_max_offset:
            raise ValueError("requeue offsets must satisfy 1 <= min <= max")
        if self.retention_window_days < 1 or self.min_sample_size < 1:
            raise ValueError("retention_window_days and min_sample_size must be >= 1")
        if not 0.0 <= self.weak_below <= self.strong_from <= 1.0:
            raise ValueError("strength thresholds must satisfy 0 <= weak_below <= strong_from <= 1")
        if not 0 <= self.day_rollover_hour <= 23:
            raise ValueError("day_rollover_hour must be in 0..23")
        return self

    def fsrs_parameters(self) -> FSRSParameters:
        """Parameter table from the configured file, or the built-in one."""
        if self.fsrs_parameters_file:
            return FSRSParameters.from_file(self.fsrs_parameters_file)
        return DEFAULT_PARAMETERS

    def strength_thresholds(self) -> StrengthThresholds:
        return StrengthThresholds(weak_below=self.weak_below, strong_from=self.strong_from)


def load_settings(env_file: Optional[str] = None) -> EngineSettings:
    """
    Build settings from environment variables.

    Args:
        env_file: Optional .env path; the default lookup finds ./.env

    Raises:
        ConfigurationError: if a variable does not parse or is out of range
    """
    load_dotenv(env_file)

    values = {}
    for name in EngineSettings.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip() != "":
            values[name] = raw.strip()

    try:
        return EngineSettings.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid engine settings: {exc}") from exc
