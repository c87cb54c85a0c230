"""
Types for retention analytics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from study_core.analytics.constants import STRONG_FROM, WEAK_BELOW


class Strength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class StrengthThresholds(BaseModel):
    """
    Cut points mapping a retention rate to a strength label.

    The three labels partition [0, 1]: weak below `weak_below`, strong from
    `strong_from`, moderate in between.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    weak_below: float = WEAK_BELOW
    strong_from: float = STRONG_FROM

    @model_validator(mode="after")
    def _check_order(self) -> "StrengthThresholds":
        if not 0.0 <= self.weak_below <= self.strong_from <= 1.0:
            raise ValueError("thresholds must satisfy 0 <= weak_below <= strong_from <= 1")
        return self

    def classify(self, retention_rate: float) -> Strength:
        if retention_rate < self.weak_below:
            return Strength.WEAK
        if retention_rate < self.strong_from:
            return Strength.MODERATE
        return Strength.STRONG


DEFAULT_THRESHOLDS = StrengthThresholds()


@dataclass(frozen=True)
class TopicPerformance:
    """
    Retention of one (topic, system) group over the analysis window.
    """
    topic: str
    system: str
    retention_rate: float
    strength: Strength
    sample_size: int


@dataclass(frozen=True)
class DeckStats:
    """
    Snapshot counts for a deck at a point in time.
    """
    total: int
    new: int
    learning: int  # learning + relearning
    review: int
    due: int
    average_stability: Optional[float]  # Review cards only
    average_difficulty: Optional[float]
