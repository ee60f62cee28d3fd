"""
Mesh Deviation Package

Rigid alignment and point-to-point deviation analysis for pairs of 3D surface
meshes. A query mesh's vertices are registered onto a reference mesh's
vertices with ICP (grid-accelerated correspondences, Kabsch transform
estimation), then every aligned vertex is measured against its nearest
reference vertex. The resulting deviation field comes with summary statistics
and heatmap colors for an external renderer.
"""

__version__ = "0.1.0"

from .exceptions import MeshDeviationError, InvalidInputError, InsufficientCorrespondencesError
from .geometry import PointSet, as_point_set
from .acceleration import SpatialIndex, ChunkParallelExecutor
from .alignment import ICPRegistration, ICPResult, ICPStatus, align, estimate_rigid_transform
from .detection import DeviationAnalyzer, DeviationResult, DeviationStatistics, analyze, compute_statistics
from .visualization import ColorScheme, color_for, colorize
from .pipeline import SuperimpositionResult, superimpose
from .utils import AppConfig, load_config

__all__ = [
    "MeshDeviationError",
    "InvalidInputError",
    "InsufficientCorrespondencesError",
    "PointSet",
    "as_point_set",
    "SpatialIndex",
    "ChunkParallelExecutor",
    "ICPRegistration",
    "ICPResult",
    "ICPStatus",
    "align",
    "estimate_rigid_transform",
    "DeviationAnalyzer",
    "DeviationResult",
    "DeviationStatistics",
    "analyze",
    "compute_statistics",
    "ColorScheme",
    "color_for",
    "colorize",
    "SuperimpositionResult",
    "superimpose",
    "AppConfig",
    "load_config",
]
