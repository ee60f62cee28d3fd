"""
Spatial Alignment Module

This module provides rigid registration of a query point set onto a reference
point set using the ICP (Iterative Closest Point) algorithm, built from a
grid-based correspondence search and a Kabsch transform estimator.
"""

from .correspondence import NearestResult, Correspondences, find_nearest, find_correspondences
from .rigid_estimation import MIN_CORRESPONDENCES, estimate_rigid_transform
from .icp import ICPRegistration, ICPResult, ICPStatus, align
from .transform_io import save_transform_matrix, load_transform_matrix

__all__ = [
    "NearestResult",
    "Correspondences",
    "find_nearest",
    "find_correspondences",
    "MIN_CORRESPONDENCES",
    "estimate_rigid_transform",
    "ICPRegistration",
    "ICPResult",
    "ICPStatus",
    "align",
    "save_transform_matrix",
    "load_transform_matrix",
]
