"""
Acceleration Module

This module provides the nearest-neighbor search infrastructure:
- Uniform grid spatial index (spatial_index.py)
- Numba JIT kernels for the per-point loops (jit_kernels.py)
- Thread-pool executor for chunked per-point work (parallel_executor.py)
"""

from .jit_kernels import compute_distances_jit, find_cell_jit, grid_nearest_jit
from .parallel_executor import ChunkParallelExecutor, split_range, run_chunked
from .spatial_index import SpatialIndex, build_spatial_index, cell_size_for, validate_cell_size

__all__ = [
    # Spatial index
    "SpatialIndex",
    "build_spatial_index",
    "cell_size_for",
    "validate_cell_size",
    # Parallel processing
    "ChunkParallelExecutor",
    "split_range",
    "run_chunked",
    # JIT kernels
    "compute_distances_jit",
    "find_cell_jit",
    "grid_nearest_jit",
]
