"""
Data model for the Sankey bar/flow layout.

Input side: rows, the categorical hierarchy and the snapshot delivered by a host.
Layout side: bars, bar segments, segment rows and flows, rebuilt on every render.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CategoryValue:
    """One categorical value of a row: raw key plus formatted display label."""
    key: str
    label: str


@dataclass(frozen=True)
class Row:
    """A single input record."""
    row_id: int
    value: float
    categories: Tuple[CategoryValue, ...]
    color: str = "#999999"
    formatted_value: Optional[str] = None

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(c.label for c in self.categories)


@dataclass
class HierarchyNode:
    """Node of the categorical hierarchy. The root sits at level -1."""
    level: int
    key: str
    label: str
    children: List["HierarchyNode"] = field(default_factory=list)


@dataclass
class Hierarchy:
    level_names: List[str]
    root: HierarchyNode

    @property
    def level_count(self) -> int:
        return len(self.level_names)


@dataclass
class Snapshot:
    """
    Everything the host hands over for one render.

    Args:
        rows: Input rows, or None when the data view expired
        hierarchy: Categorical hierarchy of the dimension axis
        errors: Host-reported data view errors
        width: Canvas width in device independent units
        height: Canvas height in device independent units
        measure_name: Display name of the measure axis
        dimension_names: Display name per level (defaults to the level names)
        is_expired: Optional callable telling whether the host replaced this snapshot
    """
    rows: Optional[List[Row]]
    hierarchy: Hierarchy
    width: float
    height: float
    errors: List[str] = field(default_factory=list)
    measure_name: str = "Value"
    dimension_names: Optional[List[str]] = None
    is_expired: Optional[Callable[[], bool]] = None

    def expired(self) -> bool:
        if self.rows is None:
            return True
        return bool(self.is_expired and self.is_expired())

    def dimension_name(self, level: int) -> str:
        names = self.dimension_names or self.hierarchy.level_names
        return names[level]


@dataclass
class LevelTotal:
    label: str
    total_value: float = 0.0


# level -> key -> accumulated total
LevelTotals = Dict[int, Dict[str, LevelTotal]]


@dataclass
class SegmentRow:
    """A row's contribution and stacking position within a bar segment."""
    row_id: int
    value: float
    labels: Tuple[str, ...]
    level: int
    y: float = 0.0


@dataclass
class BarSegment:
    key: str
    label: str
    value: float = 0.0
    rows: List[SegmentRow] = field(default_factory=list)
    x: float = 0.0
    y: float = 0.0
    height: float = 0.0

    def find_row(self, row_id: int) -> Optional[SegmentRow]:
        for segment_row in self.rows:
            if segment_row.row_id == row_id:
                return segment_row
        return None


@dataclass
class Bar:
    index: int
    name: str
    total_value: float = 0.0
    segments: List[BarSegment] = field(default_factory=list)

    def find_segment(self, key: str) -> Optional[BarSegment]:
        for segment in self.segments:
            if segment.key == key:
                return segment
        return None


@dataclass(frozen=True)
class Geometry:
    """Scalars shared by every bar and flow of one layout."""
    bar_gap: float
    segment_gap: float
    height_scale: float


@dataclass(frozen=True)
class Flow:
    """Closed ribbon connecting a row's segment rows at two adjacent levels."""
    row_id: int
    level: int
    value: float
    color: str
    source: Tuple[float, float]
    target: Tuple[float, float]
    thickness: float
    control_offset: float

    @property
    def path(self) -> str:
        (x1, y1), (x2, y2) = self.source, self.target
        c, t = self.control_offset, self.thickness
        parts = [
            "M", x1, y1,
            "C", x1 + c, y1, x2 - c, y2, x2, y2,
            "L", x2, y2 + t,
            "C", x2 - c, y2 + t, x1 + c, y1 + t, x1, y1 + t,
            "Z",
        ]
        return " ".join(p if isinstance(p, str) else _fmt(p) for p in parts)


def _fmt(number: float) -> str:
    return f"{number:.3f}".rstrip("0").rstrip(".")


@dataclass
class SankeyLayout:
    """Complete layout of one render pass."""
    bars: List[Bar]
    levels: LevelTotals
    geometry: Geometry
    flows: List[Flow]
    width: float
    height: float
    bar_width: float

    @property
    def total_value(self) -> float:
        return self.bars[0].total_value if self.bars else 0.0

    @property
    def is_empty(self) -> bool:
        return not self.bars or not any(bar.segments for bar in self.bars)
