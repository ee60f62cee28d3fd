"""
Geometry Module

Point buffers and 4x4 rigid transform helpers shared by alignment and
deviation analysis.
"""

from .point_set import PointSet, PointSetLike, as_point_set
from .transforms import (
    identity,
    make_rigid_transform,
    rotation_about_axis,
    validate_transform,
    apply_transform,
    compose,
    invert_rigid,
    rotation_angle,
    translation_norm,
)

__all__ = [
    "PointSet",
    "PointSetLike",
    "as_point_set",
    "identity",
    "make_rigid_transform",
    "rotation_about_axis",
    "validate_transform",
    "apply_transform",
    "compose",
    "invert_rigid",
    "rotation_angle",
    "translation_norm",
]
