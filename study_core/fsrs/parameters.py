"""
FSRS parameter table.

The numeric coefficients of the memory model are product-tunable, so they
live in a validated configuration object instead of module globals. The
table is checked once at load time: every value finite, every rating
present, every bound respected. Transition code can then trust it.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from study_core.errors import ConfigurationError
from study_core.fsrs import constants
from study_core.fsrs.constants import Rating


RatingTable = dict[Rating, float]

_RATING_ORDER = (Rating.AGAIN, Rating.HARD, Rating.GOOD, Rating.EASY)


def _rating_key(key: Any) -> Rating:
    if isinstance(key, str) and key.strip().isdigit():
        key = int(key)
    return Rating.parse(key)


class FSRSParameters(BaseModel):
    """
    Coefficients for the stability/difficulty transition.

    Per-rating tables accept Rating members, ints 1-4 or rating names as
    keys, so a JSON file can say {"again": 0.4, "hard": 0.6, ...}.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    # Seeds for the first rating of a new card
    initial_stability: RatingTable = Field(default_factory=lambda: dict(constants.INITIAL_STABILITY))
    initial_difficulty: RatingTable = Field(default_factory=lambda: dict(constants.INITIAL_DIFFICULTY))

    # Difficulty drift
    difficulty_delta: RatingTable = Field(default_factory=lambda: dict(constants.DIFFICULTY_DELTA))
    difficulty_decay: float = constants.DIFFICULTY_DECAY

    # Stability growth on recall
    recall_growth: float = constants.RECALL_GROWTH
    stability_damping: float = constants.STABILITY_DAMPING
    retrievability_gain: float = constants.RETRIEVABILITY_GAIN
    min_recall_gain: float = constants.MIN_RECALL_GAIN
    hard_penalty: float = constants.HARD_PENALTY
    easy_bonus: float = constants.EASY_BONUS

    # Stability after a lapse
    forget_scale: float = constants.FORGET_SCALE
    forget_difficulty_exp: float = constants.FORGET_DIFFICULTY_EXP
    forget_stability_exp: float = constants.FORGET_STABILITY_EXP
    forget_retrievability_gain: float = constants.FORGET_RETRIEVABILITY_GAIN
    forget_ceiling: float = constants.FORGET_CEILING

    # Intervals and bounds
    interval_factor: RatingTable = Field(default_factory=lambda: dict(constants.INTERVAL_FACTOR))
    decay_scale: float = constants.DECAY_SCALE
    min_stability: float = constants.S_MIN
    min_difficulty: float = constants.D_MIN
    max_difficulty: float = constants.D_MAX
    graduation_stability: float = constants.GRADUATION_STABILITY
    max_interval_days: int = constants.MAX_INTERVAL_DAYS

    @field_validator(
        "initial_stability", "initial_difficulty", "difficulty_delta", "interval_factor",
        mode="before",
    )
    @classmethod
    def _normalize_rating_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {_rating_key(k): v for k, v in value.items()}
        return value

    @model_validator(mode="after")
    def _check_table(self) -> "FSRSParameters":
        tables = {
            "initial_stability": self.initial_stability,
            "initial_difficulty": self.initial_difficulty,
            "difficulty_delta": self.difficulty_delta,
            "interval_factor": self.interval_factor,
        }
        for name, table in tables.items():
            missing = [r.name for r in _RATING_ORDER if r not in table]
            if missing:
                raise ValueError(f"{name} missing ratings: {', '.join(missing)}")
            if not all(math.isfinite(v) for v in table.values()):
                raise ValueError(f"{name} contains a non-finite value")

        if self.min_stability <= 0:
            raise ValueError("min_stability must be > 0")
        if not self.min_difficulty < self.max_difficulty:
            raise ValueError("min_difficulty must be below max_difficulty")
        if self.graduation_stability <= self.min_stability:
            raise ValueError("graduation_stability must exceed min_stability")
        if self.max_interval_days < 1:
            raise ValueError("max_interval_days must be >= 1")
        if self.decay_scale <= 0:
            raise ValueError("decay_scale must be > 0")

        for rating, value in self.initial_stability.items():
            if value < self.min_stability:
                raise ValueError(f"initial_stability[{rating.name}] below min_stability")
        for rating, value in self.initial_difficulty.items():
            if not self.min_difficulty <= value <= self.max_difficulty:
                raise ValueError(f"initial_difficulty[{rating.name}] outside difficulty bounds")
        for rating, value in self.interval_factor.items():
            if value <= 0:
                raise ValueError(f"interval_factor[{rating.name}] must be > 0")

        seeds = [self.initial_stability[r] for r in _RATING_ORDER]
        if seeds != sorted(seeds):
            raise ValueError("initial_stability must not decrease from AGAIN to EASY")
        deltas = [self.difficulty_delta[r] for r in _RATING_ORDER]
        if deltas != sorted(deltas, reverse=True):
            raise ValueError("difficulty_delta must not increase from AGAIN to EASY")

        if not 0 <= self.difficulty_decay < 1:
            raise ValueError("difficulty_decay must be in [0, 1)")
        if self.min_recall_gain <= 0:
            raise ValueError("min_recall_gain must be > 0")
        if not 0 < self.hard_penalty <= 1:
            raise ValueError("hard_penalty must be in (0, 1]")
        if self.easy_bonus <= 1:
            raise ValueError("easy_bonus must be > 1")
        if self.stability_damping < 0 or self.retrievability_gain <= 0:
            raise ValueError("stability_damping must be >= 0 and retrievability_gain > 0")
        if self.forget_scale <= 0:
            raise ValueError("forget_scale must be > 0")
        if not 0 < self.forget_ceiling < 1:
            raise ValueError("forget_ceiling must be in (0, 1)")
        return self

    # ---- Loading ----

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FSRSParameters":
        """
        Build a parameter table from a plain mapping.

        Raises:
            ConfigurationError: if any value fails validation
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid FSRS parameters: {exc}") from exc

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FSRSParameters":
        """
        Load a parameter table from a JSON file.

        Keys left out of the file keep their defaults.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read FSRS parameters from {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"FSRS parameters in {path} must be a JSON object")
        return cls.from_dict(data)


DEFAULT_PARAMETERS = FSRSParameters()
