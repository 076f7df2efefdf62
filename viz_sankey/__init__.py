"""
Multi-level Sankey bar/flow diagrams

This package lays out rows carrying one measure and an ordered list of categorical
dimensions as stacked bars connected by flow ribbons, renders them onto a canvas
and routes tooltip and marking requests back to the host.
"""

__version__ = "0.1.0"

from .errors import (
    SankeyError,
    DataViewError,
    ExpiredSnapshotError,
    NegativeValueError,
    ConservationError,
)

from .model import (
    CategoryValue,
    Row,
    HierarchyNode,
    Hierarchy,
    Snapshot,
    Bar,
    BarSegment,
    SegmentRow,
    Flow,
    SankeyLayout,
)

from .flows import (
    aggregate_levels,
    build_bars,
    sort_bars,
    compute_coordinates,
    build_flows,
    compute_layout,
)

from .figure import (
    render,
    build_figure,
    RecordingCanvas,
    PlotlyCanvas,
)

from .view import (
    SankeyView,
    Host,
    RecordingHost,
)

__all__ = [
    "SankeyError",
    "DataViewError",
    "ExpiredSnapshotError",
    "NegativeValueError",
    "ConservationError",
    "CategoryValue",
    "Row",
    "HierarchyNode",
    "Hierarchy",
    "Snapshot",
    "Bar",
    "BarSegment",
    "SegmentRow",
    "Flow",
    "SankeyLayout",
    "aggregate_levels",
    "build_bars",
    "sort_bars",
    "compute_coordinates",
    "build_flows",
    "compute_layout",
    "render",
    "build_figure",
    "RecordingCanvas",
    "PlotlyCanvas",
    "SankeyView",
    "Host",
    "RecordingHost",
]
