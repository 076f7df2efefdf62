"""
Layout computation for the Sankey bar/flow diagram.

This module turns flat rows into per-level bars, validates that the total measure
is conserved across levels, orders segments and rows, places everything in pixel
space and builds the ribbon geometry connecting adjacent bars.
"""

import warnings
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from pyuca import Collator

from .config import DEFAULT_CONFIG, LayoutConfig
from .errors import (
    ConservationError,
    DataViewError,
    ExpiredSnapshotError,
    NegativeValueError,
)
from .model import (
    Bar,
    BarSegment,
    Flow,
    Geometry,
    HierarchyNode,
    LevelTotal,
    LevelTotals,
    Row,
    SankeyLayout,
    SegmentRow,
    Snapshot,
)


def check_values(rows: Iterable[Row]) -> None:
    """Raise NegativeValueError for the first row with a negative measure."""
    for row in rows:
        if row.value < 0:
            raise NegativeValueError(row.row_id, row.value)


def aggregate_levels(
    root: HierarchyNode,
    rows: Sequence[Row],
    level_count: Optional[int] = None,
    rtol: float = 1e-9,
    atol: float = 1e-9
) -> LevelTotals:
    """
    Build per-level category totals from the hierarchy and the rows.

    Args:
        root: Hierarchy root; its children are the first level nodes
        rows: Input rows
        level_count: Number of levels; every level gets an entry even if empty
        rtol: Relative tolerance of the conservation check
        atol: Absolute tolerance of the conservation check

    Returns:
        Mapping level -> key -> LevelTotal, labelled with the node's formatted value
    """
    check_values(rows)

    levels: LevelTotals = {i: {} for i in range(level_count or 0)}

    def collect(node: HierarchyNode) -> None:
        keyed = levels.setdefault(node.level, {})
        if node.key not in keyed:
            keyed[node.key] = LevelTotal(label=node.label)
        for child in node.children:
            collect(child)

    for child in root.children:
        collect(child)

    for row in rows:
        if len(row.categories) != len(levels):
            raise ConservationError(
                f"Row {row.row_id} has {len(row.categories)} categories, "
                f"hierarchy has {len(levels)} levels"
            )
        for i, category in enumerate(row.categories):
            entry = levels[i].get(category.key)
            if entry is None:
                raise ConservationError(
                    f"Row {row.row_id} references key {category.key!r} "
                    f"missing from hierarchy level {i}"
                )
            entry.total_value += row.value

    check_conservation(levels, rtol=rtol, atol=atol)
    return levels


def check_conservation(levels: LevelTotals, rtol: float = 1e-9, atol: float = 1e-9) -> float:
    """
    Verify that the summed totals are the same at every level.

    Returns:
        The common total (0.0 when there are no levels)
    """
    sums = {
        level: sum(entry.total_value for entry in keyed.values())
        for level, keyed in levels.items()
    }
    if not sums:
        return 0.0

    values = np.array(list(sums.values()), dtype=float)
    if not np.allclose(values, values[0], rtol=rtol, atol=atol):
        raise ConservationError("Count in bars does not match", totals=sums)

    return float(values[0])


def build_bars(
    rows: Sequence[Row],
    level_names: Sequence[str],
    levels: Optional[LevelTotals] = None
) -> List[Bar]:
    """
    Group rows into one bar per level.

    Segments are grouped by category key within each bar. A segment's label is
    the hierarchy label from ``levels`` when given, otherwise the first label
    seen for that key.
    """
    bars = []

    for i, name in enumerate(level_names):
        bar = Bar(index=i, name=name)
        by_key: Dict[str, BarSegment] = {}

        for row in rows:
            category = row.categories[i]
            segment = by_key.get(category.key)

            if segment is None:
                label = category.label
                if levels is not None and category.key in levels.get(i, {}):
                    label = levels[i][category.key].label
                segment = BarSegment(key=category.key, label=label)
                by_key[category.key] = segment
                bar.segments.append(segment)

            segment.rows.append(SegmentRow(
                row_id=row.row_id,
                value=row.value,
                labels=row.labels,
                level=i
            ))
            segment.value += row.value
            bar.total_value += row.value

        bars.append(bar)

    return bars


# Unicode Collation Algorithm with the default table, independent of the process locale
_COLLATOR = Collator()


def _collation_key(label: str):
    return _COLLATOR.sort_key(label)


def _row_sort_label(segment_row: SegmentRow) -> Optional[str]:
    # Rows cluster by their neighbour label, preferring the level to the left
    k = segment_row.level
    if k > 0:
        return segment_row.labels[k - 1]
    if k < len(segment_row.labels) - 1:
        return segment_row.labels[k + 1]
    return None


def sort_bars(bars: List[Bar]) -> List[Bar]:
    """
    Sort segments by label and segment rows by their adjacent-level label.

    Both sorts are stable, so equal keys keep their input order. Sorting
    happens in place; the bars are returned for convenience.
    """
    for bar in bars:
        bar.segments.sort(key=lambda segment: _collation_key(segment.label))

        for segment in bar.segments:
            if not segment.rows or _row_sort_label(segment.rows[0]) is None:
                continue
            segment.rows.sort(key=lambda r: _collation_key(_row_sort_label(r)))

    return bars


def compute_coordinates(
    bars: List[Bar],
    width: float,
    height: float,
    bar_width: float = 14.0,
    segment_gap_fraction: float = 0.1
) -> Geometry:
    """
    Place bars horizontally and stack segments and segment rows vertically.

    Args:
        bars: Sorted bars
        width: Canvas width
        height: Canvas height
        bar_width: Width of a single bar
        segment_gap_fraction: Share of the height used for gaps between segments

    Returns:
        Geometry with the bar gap, total segment gap and value-to-height scale
    """
    bar_count = len(bars)
    bar_gap = (width - bar_width * bar_count) / (bar_count - 1) if bar_count > 1 else 0.0
    segment_gap = height * segment_gap_fraction

    total = bars[0].total_value if bars else 0.0
    if total > 0:
        height_scale = (height - segment_gap) / total
    else:
        if bars:
            warnings.warn("Total value is zero, all bars are drawn with zero height",
                          RuntimeWarning)
        height_scale = 0.0

    for i, bar in enumerate(bars):
        cursor = 0.0
        between = segment_gap / (len(bar.segments) - 1) if len(bar.segments) > 1 else 0.0

        for segment in bar.segments:
            segment.x = bar_gap * i
            segment.y = cursor

            for segment_row in segment.rows:
                segment_row.y = cursor
                cursor += segment_row.value * height_scale

            segment.height = segment.value * height_scale
            cursor += between

    return Geometry(bar_gap=bar_gap, segment_gap=segment_gap, height_scale=height_scale)


def _index_segment_rows(bars: List[Bar]) -> Dict[Tuple[int, int], Tuple[BarSegment, SegmentRow]]:
    index = {}
    for bar in bars:
        for segment in bar.segments:
            for segment_row in segment.rows:
                index[(bar.index, segment_row.row_id)] = (segment, segment_row)
    return index


def build_flows(
    rows: Sequence[Row],
    bars: List[Bar],
    geometry: Geometry,
    bar_width: float = 14.0,
    curve_fraction: float = 0.25
) -> List[Flow]:
    """
    Build one ribbon per row and adjacent pair of levels.

    Flows are emitted in the sorted order of the left-hand bar, so their order
    only depends on the sorted layout and not on row arrival order.
    """
    by_id = {row.row_id: row for row in rows}
    index = _index_segment_rows(bars)
    offset = geometry.bar_gap * curve_fraction
    flows = []

    for left, right in zip(bars, bars[1:]):
        for segment in left.segments:
            for sr1 in segment.rows:
                row = by_id[sr1.row_id]
                target_segment, sr2 = index[(right.index, sr1.row_id)]

                flows.append(Flow(
                    row_id=row.row_id,
                    level=left.index,
                    value=row.value,
                    color=row.color,
                    source=(segment.x + bar_width, sr1.y),
                    target=(target_segment.x, sr2.y),
                    thickness=row.value * geometry.height_scale,
                    control_offset=offset
                ))

    return flows


def compute_layout(snapshot: Snapshot, config: LayoutConfig = DEFAULT_CONFIG) -> SankeyLayout:
    """
    Run the full pipeline on a snapshot: aggregate, build, sort, place, connect.

    Raises:
        DataViewError: The host reported errors for the data view
        ExpiredSnapshotError: Rows are not available any more
        NegativeValueError: A row has a negative measure
        ConservationError: Level totals disagree
    """
    if snapshot.errors:
        raise DataViewError(snapshot.errors)
    if snapshot.rows is None:
        raise ExpiredSnapshotError("Data view expired before rows could be read")

    rows = snapshot.rows
    hierarchy = snapshot.hierarchy

    levels = aggregate_levels(
        hierarchy.root, rows,
        level_count=hierarchy.level_count,
        rtol=config.rtol,
        atol=config.atol
    )

    bars = build_bars(rows, hierarchy.level_names, levels)
    # Only an empty row set produces empty bars; those are not drawn at all
    bars = [bar for bar in bars if bar.segments]
    sort_bars(bars)

    geometry = compute_coordinates(
        bars, snapshot.width, snapshot.height,
        bar_width=config.bar_width,
        segment_gap_fraction=config.segment_gap_fraction
    )
    flows = build_flows(
        rows, bars, geometry,
        bar_width=config.bar_width,
        curve_fraction=config.curve_fraction
    )

    return SankeyLayout(
        bars=bars,
        levels=levels,
        geometry=geometry,
        flows=flows,
        width=snapshot.width,
        height=snapshot.height,
        bar_width=config.bar_width
    )
