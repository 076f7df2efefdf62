"""
Unit tests for draw commands, canvases and figure export.
"""

import pytest
import json
import numpy as np
import tempfile
from pathlib import Path

from ..errors import ConservationError, NegativeValueError
from ..figure import (
    FLOW_LAYER,
    PlotlyCanvas,
    RecordingCanvas,
    RowTag,
    SegmentTag,
    build_figure,
    draw_commands,
    render,
    save_snapshot,
)
from ..flows import compute_layout
from ..model import CategoryValue, Row
from .synthetic_data import make_snapshot


REGION_TYPE = [('A', 'X', 10), ('B', 'Y', 20)]


class TestDrawCommands:
    """Test conversion of a layout into draw commands."""

    def test_render_end_to_end(self):
        commands = render(make_snapshot(REGION_TYPE, ['Region', 'Type']))

        assert len(commands) == 6
        assert [c.tag for c in commands.rects] == [
            SegmentTag(0, 0), SegmentTag(0, 1), SegmentTag(1, 0), SegmentTag(1, 1)
        ]
        assert [c.height for c in commands.rects] == pytest.approx([90, 180, 90, 180])
        assert all(c.width == 14 for c in commands.rects)

    def test_small_flows_on_top(self):
        """Flows are ordered by descending value so thin ribbons are drawn last."""
        commands = render(make_snapshot(REGION_TYPE, ['Region', 'Type']))

        assert [c.tag for c in commands.paths] == [RowTag(1, 20), RowTag(0, 10)]
        assert [c.fill for c in commands.paths] == ['#ff7f0e', '#1f77b4']

    def test_equal_values_keep_layout_order(self):
        records = [('a', 'x', 5), ('b', 'y', 5), ('c', 'x', 9)]
        layout = compute_layout(make_snapshot(records, ['L0', 'L1']))
        commands = render(make_snapshot(records, ['L0', 'L1']))

        ties = [f.row_id for f in layout.flows if f.value == 5]
        assert [c.tag.row_id for c in commands.paths] == [2] + ties

    def test_rect_heights_match_level_totals(self):
        snapshot = make_snapshot([('A', 'X', 3), ('A', 'Y', 4), ('B', 'X', 5)], ['L0', 'L1'])
        layout = compute_layout(snapshot)
        commands = draw_commands(layout)

        for command in commands.rects:
            bar = layout.bars[command.tag.bar]
            segment = bar.segments[command.tag.segment]
            total = layout.levels[bar.index][segment.key].total_value
            assert command.height == pytest.approx(total * layout.geometry.height_scale)

    def test_negative_value_produces_nothing(self):
        with pytest.raises(NegativeValueError):
            render(make_snapshot([('A', 'X', 10), ('B', 'Y', -5)], ['Region', 'Type']))

    def test_row_outside_hierarchy_produces_nothing(self):
        snapshot = make_snapshot(REGION_TYPE, ['Region', 'Type'])
        snapshot.rows.append(Row(
            row_id=2, value=1.0,
            categories=(CategoryValue('Z', 'Z'), CategoryValue('X', 'X'))
        ))
        with pytest.raises(ConservationError):
            render(snapshot)


class TestCanvas:
    """Test the in-memory and Plotly canvases."""

    def test_recording_canvas_reorder(self):
        canvas = RecordingCanvas()
        for command in draw_commands(compute_layout(make_snapshot(REGION_TYPE, ['Region', 'Type']))).paths:
            canvas.draw_path(command)

        canvas.reorder(FLOW_LAYER, lambda tag: -tag.value)
        assert [e.tag.row_id for e in canvas.layers[FLOW_LAYER]] == [1, 0]

    def test_plotly_figure_shapes(self):
        commands = render(make_snapshot(REGION_TYPE, ['Region', 'Type']))
        fig = build_figure(commands, title="Sales flow")

        shapes = fig.layout.shapes
        assert len(shapes) == 6
        assert [s.type for s in shapes].count('path') == 2
        assert [s.type for s in shapes].count('rect') == 4
        assert shapes[0].path == commands.paths[0].d
        assert tuple(fig.layout.yaxis.range) == (300, 0)
        assert len(fig.data) == 0

    def test_plotly_hover_markers(self):
        commands = render(make_snapshot(REGION_TYPE, ['Region', 'Type']))
        fig = build_figure(commands, tooltip=lambda tag: f"tag {tag}\nline")

        assert len(fig.data) == 1
        assert len(fig.data[0].hovertext) == 6
        assert all('<br>' in text for text in fig.data[0].hovertext)

    def test_plotly_canvas_html(self):
        canvas = PlotlyCanvas()
        canvas.resize(400, 300)
        for command in render(make_snapshot(REGION_TYPE, ['Region', 'Type'])):
            if isinstance(command.tag, SegmentTag):
                canvas.draw_rect(command)
            else:
                canvas.draw_path(command)

        with tempfile.TemporaryDirectory() as tmpdir:
            out = Path(tmpdir) / 'sankey.html'
            canvas.to_figure().write_html(str(out))
            html_content = out.read_text()
            assert 'plotly' in html_content.lower()


class TestSnapshot:
    """Test JSON snapshot export."""

    def test_save_snapshot(self):
        layout = compute_layout(make_snapshot(REGION_TYPE, ['Region', 'Type']))

        with tempfile.TemporaryDirectory() as tmpdir:
            path = f"{tmpdir}/snapshot.json"
            save_snapshot(layout, {'width': 400, 'height': 300}, path)

            with open(path, 'r') as f:
                snapshot = json.load(f)

        assert snapshot['params'] == {'width': 400, 'height': 300}
        assert snapshot['summary']['total_value'] == 30
        assert snapshot['summary']['num_flows'] == 2
        assert snapshot['summary']['num_segments'] == 4
        assert snapshot['summary']['level_totals']['1'] == {'X': 10, 'Y': 20}
        assert snapshot['bars'][0]['segments'][1]['row_ids'] == [1]
        assert snapshot['geometry']['height_scale'] == pytest.approx(9)

    def test_save_snapshot_numpy_values(self):
        """numpy scalars in params and row values are written as plain JSON numbers."""
        records = [('a', np.float32(0.5)), ('b', np.int64(2))]
        layout = compute_layout(make_snapshot(records, ['L0']))

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'snapshot.json'
            save_snapshot(layout, {'top': np.int64(3), 'scale': np.float32(0.5)}, str(path))
            snapshot = json.loads(path.read_text())

        assert snapshot['params'] == {'top': 3, 'scale': 0.5}
        assert isinstance(snapshot['params']['top'], int)
        assert snapshot['summary']['total_value'] == pytest.approx(2.5)
        assert snapshot['bars'][0]['segments'][0]['value'] == 0.5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
