"""
Draw command generation and rendering surfaces for the Sankey bar/flow diagram.

A layout is turned into a flat list of tagged rectangle and path commands. The
commands can be replayed on any Canvas; PlotlyCanvas turns them into a Plotly
figure with rect and path shapes.
"""

import json
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import plotly.graph_objects as go

from .config import DEFAULT_CONFIG, LayoutConfig
from .flows import compute_layout
from .model import SankeyLayout, Snapshot


BAR_LAYER = "bars"
FLOW_LAYER = "flows"


@dataclass(frozen=True)
class SegmentTag:
    """Identifies a drawn bar segment by bar and segment index."""
    bar: int
    segment: int


@dataclass(frozen=True)
class RowTag:
    """Identifies a drawn flow by its row."""
    row_id: int
    value: float


Tag = Union[SegmentTag, RowTag]


@dataclass(frozen=True)
class RectCommand:
    x: float
    y: float
    width: float
    height: float
    fill: str
    tag: SegmentTag


@dataclass(frozen=True)
class PathCommand:
    d: str
    fill: str
    tag: RowTag
    # Point inside the ribbon, used to attach hover text on static exports
    anchor: Tuple[float, float] = (0.0, 0.0)


@dataclass
class DrawCommandList:
    width: float
    height: float
    rects: List[RectCommand] = field(default_factory=list)
    paths: List[PathCommand] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rects) + len(self.paths)

    def __iter__(self):
        yield from self.rects
        yield from self.paths


def flow_z_order(tag: RowTag) -> float:
    """Sort key placing big flows first so that thin flows are drawn on top."""
    return -tag.value


def draw_commands(layout: SankeyLayout, config: LayoutConfig = DEFAULT_CONFIG) -> DrawCommandList:
    """
    Convert a layout into draw commands.

    Rectangles follow the sorted bar order and paths follow flow order;
    ``render`` applies the final flow z-order.
    """
    commands = DrawCommandList(width=layout.width, height=layout.height)

    for bar in layout.bars:
        for j, segment in enumerate(bar.segments):
            commands.rects.append(RectCommand(
                x=segment.x,
                y=segment.y,
                width=layout.bar_width,
                height=segment.height,
                fill=config.bar_color,
                tag=SegmentTag(bar=bar.index, segment=j)
            ))

    for flow in layout.flows:
        (x1, y1), (x2, y2) = flow.source, flow.target
        commands.paths.append(PathCommand(
            d=flow.path,
            fill=flow.color,
            tag=RowTag(row_id=flow.row_id, value=flow.value),
            anchor=((x1 + x2) / 2, (y1 + y2 + flow.thickness) / 2)
        ))

    return commands


def render(snapshot: Snapshot, config: LayoutConfig = DEFAULT_CONFIG) -> DrawCommandList:
    """
    Compute the full list of draw commands for a snapshot, in final z-order.

    Raises the same errors as ``compute_layout``; nothing is produced on failure.
    """
    commands = draw_commands(compute_layout(snapshot, config), config)
    commands.paths.sort(key=lambda command: flow_z_order(command.tag))
    return commands


@dataclass
class CanvasElement:
    kind: str
    command: Union[RectCommand, PathCommand]

    @property
    def tag(self) -> Tag:
        return self.command.tag


class Canvas:
    """
    Rendering surface with a bar layer and a flow layer.

    Event handlers bound with ``bind`` receive the tag of the element under the
    pointer (None for the background) and never anything captured at draw time.
    """

    def resize(self, width: float, height: float) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def draw_rect(self, command: RectCommand) -> None:
        raise NotImplementedError

    def draw_path(self, command: PathCommand) -> None:
        raise NotImplementedError

    def reorder(self, layer: str, key: Callable[[Tag], float]) -> None:
        raise NotImplementedError

    def bind(self, on_enter: Callable, on_leave: Callable, on_click: Callable) -> None:
        raise NotImplementedError


class RecordingCanvas(Canvas):
    """In-memory canvas keeping drawn elements per layer."""

    def __init__(self):
        self.width = 0.0
        self.height = 0.0
        self.layers: Dict[str, List[CanvasElement]] = {BAR_LAYER: [], FLOW_LAYER: []}
        self.clear_count = 0
        self._on_enter = None
        self._on_leave = None
        self._on_click = None

    @property
    def elements(self) -> List[CanvasElement]:
        return self.layers[BAR_LAYER] + self.layers[FLOW_LAYER]

    def resize(self, width, height):
        self.width = width
        self.height = height

    def clear(self):
        for layer in self.layers.values():
            layer.clear()
        self.clear_count += 1

    def draw_rect(self, command):
        self.layers[BAR_LAYER].append(CanvasElement("rect", command))

    def draw_path(self, command):
        self.layers[FLOW_LAYER].append(CanvasElement("path", command))

    def reorder(self, layer, key):
        self.layers[layer].sort(key=lambda element: key(element.tag))

    def bind(self, on_enter, on_leave, on_click):
        self._on_enter = on_enter
        self._on_leave = on_leave
        self._on_click = on_click

    # Event entry points used by the host environment
    def hover(self, element: CanvasElement) -> None:
        self._on_enter(element.tag)

    def leave(self, element: CanvasElement) -> None:
        self._on_leave(element.tag)

    def click(self, element: Optional[CanvasElement], shift: bool = False) -> None:
        self._on_click(element.tag if element is not None else None, shift)

    def click_background(self, shift: bool = False) -> None:
        self.click(None, shift)


class PlotlyCanvas(RecordingCanvas):
    """Canvas exporting the drawn elements as a Plotly figure."""

    def to_figure(
        self,
        tooltip: Optional[Callable[[Tag], str]] = None,
        title: Optional[str] = None
    ) -> go.Figure:
        """
        Build a Plotly figure from the current elements.

        Args:
            tooltip: Maps an element tag to hover text; no hover markers when None
            title: Optional figure title

        Returns:
            Plotly Figure object in screen coordinates (y grows downwards)
        """
        fig = go.Figure()

        # Flows first so that bars stay on top, matching the layer order
        for element in self.layers[FLOW_LAYER]:
            fig.add_shape(
                type="path",
                path=element.command.d,
                fillcolor=element.command.fill,
                line=dict(width=0),
                opacity=0.7,
                layer="above"
            )
        for element in self.layers[BAR_LAYER]:
            c = element.command
            fig.add_shape(
                type="rect",
                x0=c.x, y0=c.y, x1=c.x + c.width, y1=c.y + c.height,
                fillcolor=c.fill,
                line=dict(width=0),
                layer="above"
            )

        if tooltip is not None and self.elements:
            xs, ys, texts = [], [], []
            for element in self.elements:
                if element.kind == "rect":
                    c = element.command
                    xs.append(c.x + c.width / 2)
                    ys.append(c.y + c.height / 2)
                else:
                    xs.append(element.command.anchor[0])
                    ys.append(element.command.anchor[1])
                texts.append(tooltip(element.tag).replace("\n", "<br>"))

            fig.add_trace(go.Scatter(
                x=xs,
                y=ys,
                mode='markers',
                marker=dict(size=8, opacity=0),
                hovertext=texts,
                hoverinfo='text',
                showlegend=False
            ))

        fig.update_layout(
            title=title,
            width=self.width or None,
            height=self.height or None,
            margin=dict(l=10, r=10, t=40 if title else 10, b=10),
            paper_bgcolor='white',
            plot_bgcolor='white',
            showlegend=False
        )
        fig.update_xaxes(visible=False, range=[0, self.width])
        fig.update_yaxes(visible=False, range=[self.height, 0])

        return fig


def build_figure(
    commands: DrawCommandList,
    tooltip: Optional[Callable[[Tag], str]] = None,
    title: Optional[str] = None
) -> go.Figure:
    """Replay a draw command list on a PlotlyCanvas and return the figure."""
    canvas = PlotlyCanvas()
    canvas.resize(commands.width, commands.height)
    for command in commands.rects:
        canvas.draw_rect(command)
    for command in commands.paths:
        canvas.draw_path(command)
    return canvas.to_figure(tooltip=tooltip, title=title)


def save_snapshot(layout: SankeyLayout, params: dict, output_path: str) -> None:
    """
    Save the computed layout to JSON for reproducibility.

    Args:
        layout: Computed Sankey layout
        params: Parameters used to produce the layout
        output_path: Path to save JSON snapshot
    """
    # Convert numpy types to Python types for JSON serialization
    def convert_to_python_types(obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, dict):
            return {k: convert_to_python_types(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_to_python_types(item) for item in obj]
        return obj

    bars = []
    for bar in layout.bars:
        bars.append({
            'name': bar.name,
            'total_value': bar.total_value,
            'segments': [
                {
                    'key': segment.key,
                    'label': segment.label,
                    'value': segment.value,
                    'x': segment.x,
                    'y': segment.y,
                    'height': segment.height,
                    'row_ids': [r.row_id for r in segment.rows]
                }
                for segment in bar.segments
            ]
        })

    flows = [
        {
            'row_id': flow.row_id,
            'level': flow.level,
            'value': flow.value,
            'color': flow.color,
            'path': flow.path
        }
        for flow in layout.flows
    ]

    snapshot = {
        'params': convert_to_python_types(params),
        'geometry': convert_to_python_types({
            'bar_gap': layout.geometry.bar_gap,
            'segment_gap': layout.geometry.segment_gap,
            'height_scale': layout.geometry.height_scale
        }),
        'bars': convert_to_python_types(bars),
        'flows': convert_to_python_types(flows),
        'summary': {
            'total_value': float(layout.total_value),
            'num_bars': len(layout.bars),
            'num_segments': sum(len(bar.segments) for bar in layout.bars),
            'num_flows': len(layout.flows),
            'level_totals': {
                str(level): {key: float(entry.total_value) for key, entry in keyed.items()}
                for level, keyed in layout.levels.items()
            }
        }
    }

    with open(output_path, 'w') as f:
        json.dump(snapshot, f, indent=2)
