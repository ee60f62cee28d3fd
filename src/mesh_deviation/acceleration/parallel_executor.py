"""
Parallel execution infrastructure for chunked per-point work.

Provides ChunkParallelExecutor for splitting a range of query points into
fixed contiguous chunks and running them on a thread pool. The JIT kernels
release the GIL, so threads share the read-only spatial index without any
copying or pickling.
"""

from __future__ import annotations

import logging
import os
import time
from multiprocessing.pool import ThreadPool
from typing import Any, Callable, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..utils.config import ParallelConfig

logger = logging.getLogger(__name__)

Chunk = Tuple[int, int]


def _worker_wrapper(args: Tuple[int, Chunk, Callable]) -> Tuple[int, Any, Optional[BaseException]]:
    """
    Run one chunk and capture its outcome.

    Args:
        args: Tuple of (chunk_index, (start, stop), worker_fn)

    Returns:
        Tuple of (chunk_index, result, exception)
    """
    idx, (start, stop), worker_fn = args
    try:
        return (idx, worker_fn(start, stop), None)
    except Exception as e:
        logger.error("Worker error on chunk %d [%d:%d]: %s: %s", idx, start, stop, type(e).__name__, e)
        return (idx, None, e)


def split_range(n_items: int, chunk_size: int) -> List[Chunk]:
    """Split ``range(n_items)`` into contiguous ``(start, stop)`` chunks."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [(s, min(s + chunk_size, n_items)) for s in range(0, n_items, chunk_size)]


class ChunkParallelExecutor:
    """
    Parallel executor for chunked per-point processing.

    Chunk boundaries depend only on ``chunk_size``, and results come back in
    chunk order, so the concatenated output is identical for any worker
    count.

    Example:
        executor = ChunkParallelExecutor(n_workers=4, min_points=10_000)
        parts = executor.map_chunks(
            n_items=len(queries),
            worker_fn=lambda start, stop: kernel(queries[start:stop]),
        )
    """

    def __init__(
        self,
        n_workers: Optional[int] = None,
        chunk_size: int = 16_384,
        min_points: int = 50_000,
    ):
        """
        Initialize parallel executor.

        Args:
            n_workers: Number of worker threads. If None, uses cpu_count - 1
                to leave one core for coordination. Minimum is 1.
            chunk_size: Number of items per chunk.
            min_points: Item count below which work runs sequentially.
        """
        cpus = os.cpu_count() or 1
        if n_workers is None:
            n_workers = max(1, cpus - 1)
        else:
            n_workers = max(1, int(n_workers))

        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.n_workers = n_workers
        self.chunk_size = int(chunk_size)
        self.min_points = int(min_points)

        logger.debug(
            "Initialized ChunkParallelExecutor with %d workers "
            "(total CPUs: %s, chunk_size=%d, min_points=%d)",
            self.n_workers,
            cpus,
            self.chunk_size,
            self.min_points,
        )

    @classmethod
    def from_config(cls, cfg: "ParallelConfig") -> Optional["ChunkParallelExecutor"]:
        """Build an executor from config, or None when parallelism is disabled."""
        if not cfg.enabled:
            return None
        return cls(n_workers=cfg.n_workers, chunk_size=cfg.chunk_size, min_points=cfg.min_points)

    def map_chunks(
        self,
        n_items: int,
        worker_fn: Callable[[int, int], Any],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[Any]:
        """
        Map ``worker_fn(start, stop)`` over contiguous chunks of ``range(n_items)``.

        Args:
            n_items: Total number of items.
            worker_fn: Callable processing items ``[start, stop)``.
            progress_callback: Optional callback called after each chunk
                completes. Signature: callback(completed_count, total_count)

        Returns:
            List of chunk results in chunk order.

        Raises:
            RuntimeError: If any chunk fails.
        """
        if n_items == 0:
            return []

        chunks = split_range(n_items, self.chunk_size)
        n_chunks = len(chunks)
        start_time = time.time()

        # Small inputs, one worker or one chunk: no pool overhead
        if self.n_workers == 1 or n_chunks == 1 or n_items < self.min_points:
            results = []
            for i, (start, stop) in enumerate(chunks):
                try:
                    results.append(worker_fn(start, stop))
                except Exception as e:
                    logger.error("Error processing chunk %d: %s", i, e, exc_info=True)
                    raise RuntimeError(f"Chunk processing failed: {e}") from e
                if progress_callback:
                    progress_callback(i + 1, n_chunks)
            return results

        results = self._parallel_map(chunks, worker_fn, progress_callback)

        total_time = time.time() - start_time
        logger.debug(
            "Parallel processing complete: %d items in %d chunks on %d threads in %.3fs",
            n_items,
            n_chunks,
            self.n_workers,
            total_time,
        )
        return results

    def _parallel_map(
        self,
        chunks: List[Chunk],
        worker_fn: Callable[[int, int], Any],
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> List[Any]:
        """
        Execute parallel mapping on a thread pool.

        Uses imap_unordered for responsiveness, then reorders results to match
        chunk order.
        """
        n_chunks = len(chunks)
        worker_args = [(i, chunk, worker_fn) for i, chunk in enumerate(chunks)]

        results_dict = {}
        errors = []
        with ThreadPool(processes=min(self.n_workers, n_chunks)) as pool:
            for completed, (idx, result, error) in enumerate(
                pool.imap_unordered(_worker_wrapper, worker_args), start=1
            ):
                if error is not None:
                    errors.append((idx, error))
                else:
                    results_dict[idx] = result
                if progress_callback:
                    progress_callback(completed, n_chunks)

        if errors:
            errors.sort(key=lambda item: item[0])
            logger.error("%d chunks failed out of %d", len(errors), n_chunks)
            for idx, error in errors[:5]:
                logger.error("  Chunk %d: %s: %s", idx, type(error).__name__, error)
            raise RuntimeError(f"{len(errors)} chunks failed out of {n_chunks}") from errors[0][1]

        return [results_dict[i] for i in range(n_chunks)]


def run_chunked(
    n_items: int,
    worker_fn: Callable[[int, int], Any],
    executor: Optional[ChunkParallelExecutor] = None,
) -> List[Any]:
    """Run ``worker_fn`` through ``executor``, or as a single chunk when None."""
    if executor is None:
        return [worker_fn(0, n_items)] if n_items else []
    return executor.map_chunks(n_items, worker_fn)
