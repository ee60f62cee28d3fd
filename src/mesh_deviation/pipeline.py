"""
Superimposition pipeline.

Runs the full comparison of a query mesh against a reference mesh:
optional normalization and sampling, ICP alignment, deviation analysis,
quality rating and per-vertex heatmap colors.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from .acceleration.parallel_executor import ChunkParallelExecutor
from .alignment.icp import ICPRegistration, ICPResult
from .detection.deviation import DeviationAnalyzer, DeviationResult
from .detection.quality import QualityRating, rate_statistics
from .geometry.point_set import PointSet, PointSetLike, as_point_set
from .preprocessing.normalization import MeshNormalization, normalize_pair
from .utils.config import AppConfig
from .utils.logging import setup_logger
from .visualization.heatmap import ColorScheme, colorize

logger = setup_logger(__name__)

ProgressCallback = Callable[[str, float], None]


@dataclass(frozen=True)
class SuperimpositionResult:
    """
    Everything produced by one reference/query comparison.

    Attributes:
        reference: Reference points in the working frame (after sampling)
        query: Query points in the working frame before alignment
        aligned_query: Query points after applying the ICP transform
        icp: ICP result (transform maps ``query`` onto ``reference``)
        deviation: Deviation field and statistics of ``aligned_query``
        colors: (n, 3) per-vertex RGB for ``aligned_query``
        scheme: Color scheme used for ``colors``
        quality: Ratings of the max, mean and RMS deviation
        reference_normalization: Working-frame mapping of the reference
        query_normalization: Working-frame mapping of the query
    """

    reference: PointSet
    query: PointSet
    aligned_query: PointSet
    icp: ICPResult
    deviation: DeviationResult
    colors: np.ndarray
    scheme: ColorScheme
    quality: Dict[str, QualityRating]
    reference_normalization: MeshNormalization
    query_normalization: MeshNormalization


def _report(callback: Optional[ProgressCallback], stage: str, fraction: float) -> None:
    logger.debug("Stage '%s' (%.0f%%)", stage, 100.0 * fraction)
    if callback is not None:
        callback(stage, fraction)


def superimpose(
    reference: PointSetLike,
    query: PointSetLike,
    config: Optional[AppConfig] = None,
    *,
    initial_transform: Optional[np.ndarray] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> SuperimpositionResult:
    """
    Align ``query`` onto ``reference`` and measure the remaining deviation.

    Args:
        reference: Reference mesh vertices (N x 3 or PointSet)
        query: Query mesh vertices (M x 3 or PointSet)
        config: Application config; defaults to AppConfig()
        initial_transform: Optional 4x4 starting transform for ICP
        cancel_event: Optional event that stops ICP between iterations
        progress_callback: Optional callback(stage, fraction in [0, 1])

    Returns:
        SuperimpositionResult. A non-converged ICP run still yields a full
        deviation analysis of the best transform found; check
        ``result.icp.status``.
    """
    cfg = config or AppConfig()
    start = time.time()

    ref = as_point_set(reference).require_non_empty("reference point set")
    qry = as_point_set(query).require_non_empty("query point set")

    _report(progress_callback, "Preparing point sets", 0.1)
    density = cfg.preprocessing.sampling_density
    ref = ref.subsample(density)
    qry = qry.subsample(density)
    if cfg.preprocessing.normalize:
        ref, qry, ref_norm, qry_norm = normalize_pair(
            ref, qry, target_extent=cfg.preprocessing.target_extent
        )
    else:
        ref_norm = qry_norm = MeshNormalization.identity()
    logger.info(
        "Superimposing %d query points onto %d reference points (density %.3g, normalize=%s).",
        len(qry),
        len(ref),
        density,
        cfg.preprocessing.normalize,
    )

    executor = ChunkParallelExecutor.from_config(cfg.parallel)

    _report(progress_callback, "Performing ICP alignment", 0.3)
    icp = ICPRegistration.from_config(cfg.alignment, executor=executor)
    icp_result = icp.align(qry, ref, initial_transform=initial_transform, cancel_event=cancel_event)
    if not icp_result.converged:
        logger.warning(
            "ICP ended with status '%s' after %d iterations; analyzing the best transform found.",
            icp_result.status.value,
            icp_result.iterations,
        )

    _report(progress_callback, "Applying transformation", 0.6)
    aligned = icp_result.apply(qry)

    _report(progress_callback, "Analyzing deviations", 0.7)
    analyzer = DeviationAnalyzer.from_config(cfg.deviation, executor=executor)
    deviation = analyzer.analyze(aligned, ref)

    _report(progress_callback, "Creating heatmap colors", 0.9)
    scheme = ColorScheme(cfg.heatmap.scheme)
    colors = colorize(deviation.deviations, deviation.stats, scheme)
    quality = rate_statistics(deviation.stats, cfg.quality)

    _report(progress_callback, "Complete", 1.0)
    logger.info(
        "Superimposition finished in %.3f s: ICP %s, max deviation %.6g (%s), matching %.1f%%.",
        time.time() - start,
        icp_result.status.value,
        deviation.stats.max,
        quality["max"].value,
        100.0 * deviation.stats.matching_fraction,
    )

    return SuperimpositionResult(
        reference=ref,
        query=qry,
        aligned_query=aligned,
        icp=icp_result,
        deviation=deviation,
        colors=colors,
        scheme=scheme,
        quality=quality,
        reference_normalization=ref_norm,
        query_normalization=qry_norm,
    )
