"""
Deviation Heatmap Colors

Maps deviation values to RGB colors in [0, 1] for per-vertex coloring by an
external renderer. Two schemes are available:

- binary: a fixed match color at or below the matching threshold, otherwise
  a magenta ramp whose intensity grows with deviation / max deviation
- five_band: five fixed colors for deviation / max deviation in
  (<=10%, <=25%, <=50%, <=75%, >75%)
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Tuple, Union, TYPE_CHECKING

import numpy as np

from ..exceptions import InvalidInputError

if TYPE_CHECKING:
    from ..detection.deviation import DeviationStatistics

RGB = Tuple[float, float, float]

MATCH_COLOR: RGB = (0.2, 1.0, 0.7)  # mint green
DEVIATION_LOW_COLOR: RGB = (0.65, 0.13, 0.36)
DEVIATION_HIGH_COLOR: RGB = (1.0, 0.23, 0.58)

FIVE_BAND_LIMITS: Tuple[float, ...] = (0.10, 0.25, 0.50, 0.75)
FIVE_BAND_COLORS: Tuple[RGB, ...] = (
    (0.13, 0.77, 0.37),  # green
    (0.52, 0.80, 0.09),  # yellow-green
    (0.98, 0.80, 0.08),  # yellow
    (0.98, 0.45, 0.09),  # orange
    (0.94, 0.27, 0.27),  # red
)

# Guards the binary ramp denominator
_EPS = 1e-12


class ColorScheme(str, Enum):
    BINARY = "binary"
    FIVE_BAND = "five_band"


def _as_scheme(scheme: Union[ColorScheme, str]) -> ColorScheme:
    try:
        return ColorScheme(scheme)
    except ValueError as e:
        raise InvalidInputError(f"Unknown color scheme: {scheme!r}") from e


def band_index(deviation: float, stats: "DeviationStatistics") -> int:
    """Five-band bucket (0..4) of ``deviation`` relative to ``stats.max``."""
    if stats.max == 0.0:
        return 0
    ratio = deviation / stats.max
    for i, limit in enumerate(FIVE_BAND_LIMITS):
        if ratio <= limit:
            return i
    return len(FIVE_BAND_LIMITS)


def band_edges(stats: "DeviationStatistics") -> np.ndarray:
    """Absolute deviation values at the five-band boundaries, for a legend."""
    return np.asarray(FIVE_BAND_LIMITS, dtype=np.float64) * stats.max


def color_for(
    deviation: float,
    stats: "DeviationStatistics",
    scheme: Union[ColorScheme, str] = ColorScheme.BINARY,
) -> RGB:
    """
    Heatmap color of one deviation value.

    Args:
        deviation: Non-negative deviation in working units
        stats: Statistics of the field the value belongs to
        scheme: ColorScheme (or its string value)

    Returns:
        (r, g, b) with each channel in [0, 1]
    """
    scheme = _as_scheme(scheme)
    if not math.isfinite(deviation) or deviation < 0:
        raise InvalidInputError(f"Deviation must be non-negative and finite, got {deviation}")

    # Perfect match everywhere
    if stats.max == 0.0:
        return MATCH_COLOR

    if scheme is ColorScheme.FIVE_BAND:
        return FIVE_BAND_COLORS[band_index(deviation, stats)]

    if deviation <= stats.matching_threshold:
        return MATCH_COLOR
    intensity = min(max(deviation / max(stats.max, _EPS), 0.0), 1.0)
    return (
        DEVIATION_LOW_COLOR[0] + intensity * (DEVIATION_HIGH_COLOR[0] - DEVIATION_LOW_COLOR[0]),
        DEVIATION_LOW_COLOR[1] + intensity * (DEVIATION_HIGH_COLOR[1] - DEVIATION_LOW_COLOR[1]),
        DEVIATION_LOW_COLOR[2] + intensity * (DEVIATION_HIGH_COLOR[2] - DEVIATION_LOW_COLOR[2]),
    )


def colorize(
    deviations: np.ndarray,
    stats: "DeviationStatistics",
    scheme: Union[ColorScheme, str] = ColorScheme.BINARY,
) -> np.ndarray:
    """
    Per-vertex colors for a whole deviation field.

    Vectorized equivalent of calling :func:`color_for` on every element; the
    arithmetic is the same, so values match bit for bit.

    Returns:
        (n, 3) float64 array of RGB colors.
    """
    scheme = _as_scheme(scheme)
    d = np.asarray(deviations, dtype=np.float64).ravel()
    if not np.all(np.isfinite(d)) or np.any(d < 0):
        raise InvalidInputError("Deviations must be non-negative and finite")

    n = d.size
    if stats.max == 0.0:
        return np.tile(np.asarray(MATCH_COLOR, dtype=np.float64), (n, 1))

    if scheme is ColorScheme.FIVE_BAND:
        ratio = d / stats.max
        bands = np.searchsorted(np.asarray(FIVE_BAND_LIMITS), ratio, side="left")
        return np.asarray(FIVE_BAND_COLORS, dtype=np.float64)[bands]

    low = np.asarray(DEVIATION_LOW_COLOR, dtype=np.float64)
    high = np.asarray(DEVIATION_HIGH_COLOR, dtype=np.float64)
    intensity = np.minimum(np.maximum(d / max(stats.max, _EPS), 0.0), 1.0)
    colors = low + intensity[:, None] * (high - low)
    colors[d <= stats.matching_threshold] = MATCH_COLOR
    return colors
