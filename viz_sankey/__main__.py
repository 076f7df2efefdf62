"""
CLI interface for the Sankey bar/flow diagram.

Usage examples:
    # Two levels, sized by Sales
    python -m viz_sankey --data rows.csv --levels Region,Type --measure Sales

    # Color flows by product type, custom canvas size
    python -m viz_sankey --data rows.parquet --levels Region,Channel,Type \\
        --measure Sales --color-by Type --width 1100 --height 520 \\
        --out-html sankey.html --snapshot sankey_snapshot.json
"""

import argparse
import sys
from typing import List

from .config import LayoutConfig
from .data import load_table, snapshot_from_frame
from .errors import ConservationError, NegativeValueError
from .figure import PlotlyCanvas, save_snapshot
from .view import RecordingHost, SankeyView


def parse_levels(levels_arg: str) -> List[str]:
    """Parse level columns from a comma-separated string."""
    levels = [c.strip() for c in levels_arg.split(',') if c.strip()]
    if not levels:
        raise ValueError("--levels must name at least one column")
    return levels


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate a multi-level Sankey bar/flow diagram",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Inputs
    parser.add_argument('--data', type=str, required=True,
                        help='Path to rows CSV/parquet')
    parser.add_argument('--levels', type=str, required=True,
                        help='Comma-separated list of dimension columns, one bar per column')
    parser.add_argument('--measure', type=str, required=True,
                        help='Numeric column sizing bars and flows')
    parser.add_argument('--color-by', type=str,
                        help='Column used to color flows (default: first level)')

    # Layout options
    parser.add_argument('--width', type=float, default=800,
                        help='Canvas width (default: 800)')
    parser.add_argument('--height', type=float, default=500,
                        help='Canvas height (default: 500)')
    parser.add_argument('--bar-width', type=float, default=14,
                        help='Bar width (default: 14)')
    parser.add_argument('--title', type=str,
                        help='Optional figure title')

    # Output options
    parser.add_argument('--out-html', type=str, default='sankey.html',
                        help='Output path for the Sankey figure (default: sankey.html)')
    parser.add_argument('--snapshot', type=str, default='sankey_snapshot.json',
                        help='Output path for JSON snapshot (default: sankey_snapshot.json)')

    args = parser.parse_args(argv)

    try:
        levels = parse_levels(args.levels)
    except ValueError as e:
        parser.error(str(e))

    if args.width <= 0 or args.height <= 0:
        parser.error("--width and --height must be positive")
    if args.bar_width * len(levels) > args.width:
        parser.error("--bar-width is too large for the number of levels and --width")

    print(f"Loading rows from {args.data}")
    try:
        df = load_table(args.data)
        snapshot = snapshot_from_frame(
            df, levels, args.measure,
            color_by=args.color_by,
            width=args.width,
            height=args.height
        )
    except ValueError as e:
        parser.error(str(e))

    print(f"Loaded {len(snapshot.rows)} rows")
    print(f"Levels: {levels}")

    config = LayoutConfig(bar_width=args.bar_width)
    canvas = PlotlyCanvas()
    host = RecordingHost()
    view = SankeyView(canvas, host, config)

    try:
        view.render(snapshot)
    except (NegativeValueError, ConservationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    layout = view.layout

    # Print summary statistics
    print("\n" + "="*60)
    print("Summary Statistics")
    print("="*60)
    print(f"Total {args.measure}: {layout.total_value:.3f}")
    print(f"Number of flows: {len(layout.flows)}")

    print("\nBar breakdown:")
    for bar in layout.bars:
        print(f"  {bar.name}: {len(bar.segments)} segments")
        for segment in bar.segments:
            pct = (segment.value / bar.total_value * 100) if bar.total_value > 0 else 0
            print(f"    {segment.label}: {segment.value:.3f} ({pct:.1f}%)")

    print("\nGenerating visualizations...")

    fig = canvas.to_figure(tooltip=view.tooltip_text, title=args.title)
    fig.write_html(args.out_html)
    print(f"Saved Sankey diagram to {args.out_html}")

    params = {
        'levels': levels,
        'measure': args.measure,
        'color_by': args.color_by or levels[0],
        'width': args.width,
        'height': args.height,
        'bar_width': args.bar_width
    }

    save_snapshot(layout, params, args.snapshot)
    print(f"Saved layout snapshot to {args.snapshot}")

    print("\n" + "="*60)
    print("Visualization complete!")
    print("="*60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
