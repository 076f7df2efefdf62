"""
Interaction adapter between the Sankey layout, a Canvas and the host environment.

SankeyView commits draw commands to a canvas and resolves hover and click events
on tagged elements back to bar segments and rows, forwarding tooltip and marking
requests to the host.
"""

from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_CONFIG, LayoutConfig
from .errors import (
    ConservationError,
    ExpiredSnapshotError,
    NegativeValueError,
)
from .figure import (
    FLOW_LAYER,
    Canvas,
    DrawCommandList,
    RowTag,
    SegmentTag,
    Tag,
    draw_commands,
    flow_z_order,
)
from .flows import compute_layout
from .model import Row, SankeyLayout, Snapshot


MARK_REPLACE = "Replace"
MARK_ADD = "Add"


class Host:
    """Requests the view sends back to the host environment."""

    def mark(self, rows: Sequence[Row], mode: str) -> None:
        raise NotImplementedError

    def clear_marking(self) -> None:
        raise NotImplementedError

    def show_tooltip(self, text: str) -> None:
        raise NotImplementedError

    def hide_tooltip(self) -> None:
        raise NotImplementedError

    def show_errors(self, errors: Sequence[str]) -> None:
        raise NotImplementedError

    def hide_errors(self) -> None:
        raise NotImplementedError

    def signal_render_complete(self) -> None:
        raise NotImplementedError


class RecordingHost(Host):
    """Host that records every request as a (name, payload) tuple."""

    def __init__(self):
        self.requests: List[Tuple] = []

    def names(self) -> List[str]:
        return [request[0] for request in self.requests]

    def mark(self, rows, mode):
        self.requests.append(("mark", list(rows), mode))

    def clear_marking(self):
        self.requests.append(("clear_marking",))

    def show_tooltip(self, text):
        self.requests.append(("show_tooltip", text))

    def hide_tooltip(self):
        self.requests.append(("hide_tooltip",))

    def show_errors(self, errors):
        self.requests.append(("show_errors", list(errors)))

    def hide_errors(self):
        self.requests.append(("hide_errors",))

    def signal_render_complete(self):
        self.requests.append(("render_complete",))


def format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def segment_tooltip(layout: SankeyLayout, snapshot: Snapshot, tag: SegmentTag) -> str:
    bar = layout.bars[tag.bar]
    segment = bar.segments[tag.segment]
    total = layout.levels[bar.index][segment.key].total_value
    return (
        f"{snapshot.measure_name}: {format_value(total)}\n"
        f"{snapshot.dimension_name(bar.index)}: {segment.label}"
    )


def row_tooltip(snapshot: Snapshot, row: Row) -> str:
    lines = [f"{snapshot.measure_name}: {row.formatted_value or format_value(row.value)}"]
    for i, category in enumerate(row.categories):
        lines.append(f"{snapshot.dimension_name(i)}: {category.label}")
    return "\n".join(lines)


class SankeyView:
    """
    Renders snapshots onto a canvas and mediates interaction with the host.

    Only the last successfully committed layout is kept, for resolving event
    tags. A failed or expired render leaves the canvas and that layout as they
    were.
    """

    def __init__(self, canvas: Canvas, host: Host, config: LayoutConfig = DEFAULT_CONFIG):
        self.canvas = canvas
        self.host = host
        self.config = config
        self.layout: Optional[SankeyLayout] = None
        self.snapshot: Optional[Snapshot] = None
        self._rows_by_id = {}
        canvas.bind(on_enter=self.on_hover, on_leave=self.on_leave, on_click=self.on_click)

    def render(self, snapshot: Snapshot) -> Optional[DrawCommandList]:
        """
        Render a snapshot.

        Returns:
            The committed draw commands, or None when the snapshot had errors or
            expired. NegativeValueError and ConservationError are shown on the
            host's error overlay and re-raised.
        """
        if snapshot.errors:
            self.host.show_errors(snapshot.errors)
            return None
        self.host.hide_errors()

        try:
            layout = compute_layout(snapshot, self.config)
        except ExpiredSnapshotError:
            return None
        except (NegativeValueError, ConservationError) as exc:
            self.host.show_errors([str(exc)])
            raise

        if snapshot.expired():
            return None

        commands = draw_commands(layout, self.config)
        self._commit(snapshot, layout, commands)
        self.host.signal_render_complete()
        return commands

    def _commit(self, snapshot: Snapshot, layout: SankeyLayout, commands: DrawCommandList) -> None:
        self.canvas.resize(snapshot.width, snapshot.height)
        self.canvas.clear()

        for command in commands.rects:
            self.canvas.draw_rect(command)
        for command in commands.paths:
            self.canvas.draw_path(command)
        self.canvas.reorder(FLOW_LAYER, flow_z_order)

        self.snapshot = snapshot
        self.layout = layout
        self._rows_by_id = {row.row_id: row for row in snapshot.rows}

    def rows_for(self, tag: Tag) -> List[Row]:
        """Resolve a tag to the rows it was drawn from."""
        if isinstance(tag, RowTag):
            return [self._rows_by_id[tag.row_id]]
        segment = self.layout.bars[tag.bar].segments[tag.segment]
        return [self._rows_by_id[r.row_id] for r in segment.rows]

    def tooltip_text(self, tag: Tag) -> str:
        if isinstance(tag, RowTag):
            return row_tooltip(self.snapshot, self._rows_by_id[tag.row_id])
        return segment_tooltip(self.layout, self.snapshot, tag)

    def on_hover(self, tag: Tag) -> None:
        if self.layout is None:
            return
        self.host.show_tooltip(self.tooltip_text(tag))

    def on_leave(self, tag: Tag) -> None:
        self.host.hide_tooltip()

    def on_click(self, tag: Optional[Tag], shift: bool = False) -> None:
        if tag is None:
            self.host.clear_marking()
            return
        if self.layout is None:
            return
        self.host.mark(self.rows_for(tag), MARK_ADD if shift else MARK_REPLACE)
