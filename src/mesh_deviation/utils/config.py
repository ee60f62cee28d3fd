"""
Configuration management for mesh-deviation.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml


# -----------------------
# Typed config structures
# -----------------------


class AlignmentICPConfig(BaseModel):
    max_iterations: int = Field(default=50, gt=0)
    tolerance: float = Field(default=1e-6, gt=0, description="Convergence tolerance on the change in RMS residual")
    correspondence_threshold: float = Field(
        default=1.0,
        gt=0,
        description="Maximum pair distance for ICP correspondences (working units); also the grid cell size",
    )
    early_exit_epsilon: float = Field(
        default=0.0,
        ge=0,
        description="Stop scanning candidates once one is closer than this (0 disables)",
    )


class DeviationConfig(BaseModel):
    matching_threshold: float = Field(
        default=0.01,
        ge=0,
        description="Deviations at or below this value count as matching (working units)",
    )
    cells_per_diagonal: int = Field(
        default=50,
        gt=0,
        description="Grid resolution: cell size = reference bounding diagonal / cells_per_diagonal",
    )
    early_exit_epsilon: float = Field(
        default=0.0,
        ge=0,
        description="Accept the first candidate closer than this (0 keeps exact minimum distances)",
    )


class HeatmapConfig(BaseModel):
    scheme: Literal["binary", "five_band"] = Field(default="binary")


class QualityConfig(BaseModel):
    excellent: float = Field(default=0.1, ge=0, description="Upper bound for an 'excellent' rating")
    good: float = Field(default=0.3, ge=0, description="Upper bound for a 'good' rating")


class PreprocessingConfig(BaseModel):
    normalize: bool = Field(
        default=False,
        description="Center and scale inputs before alignment (normally done upstream)",
    )
    target_extent: float = Field(default=4.0, gt=0, description="Largest bounding-box side after scaling")
    sampling_density: float = Field(
        default=1.0,
        gt=0,
        le=1.0,
        description="Fraction of vertices kept (every floor(1/density)-th vertex)",
    )


class ParallelConfig(BaseModel):
    enabled: bool = Field(default=True, description="Split nearest-neighbor searches across a thread pool")
    n_workers: Optional[int] = Field(default=None, description="Number of worker threads (None = auto-detect: cpu_count - 1)")
    min_points: int = Field(default=50_000, gt=0, description="Below this many query points, run sequentially")
    chunk_size: int = Field(default=16_384, gt=0, description="Query points per chunk")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    alignment: AlignmentICPConfig = Field(default_factory=AlignmentICPConfig)
    deviation: DeviationConfig = Field(default_factory=DeviationConfig)
    heatmap: HeatmapConfig = Field(default_factory=HeatmapConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/mesh_deviation/utils/config.py
    parents sequence:
      0 -> .../src/mesh_deviation/utils
      1 -> .../src/mesh_deviation
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Relative paths are tried as given first, then against the repository root.

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)
        if not cfg_path.is_absolute() and not cfg_path.exists():
            cfg_path = _project_root() / cfg_path

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}") from e
