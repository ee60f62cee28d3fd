"""
Data Preprocessing Module

Optional upstream helpers that bring raw mesh vertex buffers into a common
working frame before alignment.
"""

from .normalization import MeshNormalization, normalize_pair

__all__ = ["MeshNormalization", "normalize_pair"]
