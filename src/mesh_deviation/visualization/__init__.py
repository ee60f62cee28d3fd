"""
Visualization Support

Deviation-to-color mapping consumed by an external renderer. Nothing in this
package draws anything itself.
"""

from .heatmap import (
    ColorScheme,
    MATCH_COLOR,
    FIVE_BAND_COLORS,
    FIVE_BAND_LIMITS,
    band_edges,
    band_index,
    color_for,
    colorize,
)

__all__ = [
    "ColorScheme",
    "MATCH_COLOR",
    "FIVE_BAND_COLORS",
    "FIVE_BAND_LIMITS",
    "band_edges",
    "band_index",
    "color_for",
    "colorize",
]
