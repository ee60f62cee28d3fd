"""
Deviation Detection Module

Exports the point-to-point deviation analyzer, its statistics and the
quality rating helpers.
"""

from .deviation import (
    DeviationStatistics,
    DeviationResult,
    DeviationAnalyzer,
    compute_statistics,
    analyze,
)
from .quality import QualityRating, rate_quality, rate_statistics

__all__ = [
    "DeviationStatistics",
    "DeviationResult",
    "DeviationAnalyzer",
    "compute_statistics",
    "analyze",
    "QualityRating",
    "rate_quality",
    "rate_statistics",
]
