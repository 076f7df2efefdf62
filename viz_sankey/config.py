"""
Shared layout configuration for the Sankey bar/flow diagram.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LayoutConfig:
    """Fixed drawing constants used by the layout engine and renderers."""
    bar_width: float = 14.0
    # Fraction of the canvas height reserved for gaps between segments
    segment_gap_fraction: float = 0.1
    # Horizontal offset of the Bezier control points, as a fraction of the bar gap
    curve_fraction: float = 0.25
    bar_color: str = "#808080"
    rtol: float = 1e-9
    atol: float = 1e-9


DEFAULT_CONFIG = LayoutConfig()
