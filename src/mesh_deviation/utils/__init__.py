"""
Utility Functions Module

Configuration loading and logging setup shared across the package.
"""

from .logging import setup_logger, configure_from_config
from .config import (
    AppConfig,
    AlignmentICPConfig,
    DeviationConfig,
    HeatmapConfig,
    QualityConfig,
    PreprocessingConfig,
    ParallelConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "setup_logger",
    "configure_from_config",
    "AppConfig",
    "AlignmentICPConfig",
    "DeviationConfig",
    "HeatmapConfig",
    "QualityConfig",
    "PreprocessingConfig",
    "ParallelConfig",
    "LoggingConfig",
    "load_config",
]
