"""
Ordinal quality verdicts for deviation statistics.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Dict, TYPE_CHECKING

from ..exceptions import InvalidInputError

if TYPE_CHECKING:
    from ..utils.config import QualityConfig
    from .deviation import DeviationStatistics


class QualityRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_REVIEW = "needs_review"


def rate_quality(value: float, excellent: float = 0.1, good: float = 0.3) -> QualityRating:
    """
    Rate a deviation value (e.g. the max or mean) against two bounds.

    Args:
        value: Non-negative deviation in working units
        excellent: Values at or below this rate EXCELLENT
        good: Values at or below this (and above ``excellent``) rate GOOD

    Returns:
        QualityRating
    """
    if not math.isfinite(value) or value < 0:
        raise InvalidInputError(f"Deviation value must be non-negative and finite, got {value}")
    if excellent < 0 or good < excellent:
        raise InvalidInputError(
            f"Quality bounds must satisfy 0 <= excellent <= good, got {excellent} and {good}"
        )
    if value <= excellent:
        return QualityRating.EXCELLENT
    if value <= good:
        return QualityRating.GOOD
    return QualityRating.NEEDS_REVIEW


def rate_statistics(stats: "DeviationStatistics", cfg: "QualityConfig") -> Dict[str, QualityRating]:
    """Ratings for the max, mean and RMS deviation."""
    return {
        "max": rate_quality(stats.max, cfg.excellent, cfg.good),
        "mean": rate_quality(stats.mean, cfg.excellent, cfg.good),
        "rms": rate_quality(stats.rms, cfg.excellent, cfg.good),
    }
