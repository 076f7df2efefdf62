"""
Tabular input for the Sankey bar/flow diagram.

Loads rows from CSV or parquet with pandas and converts a DataFrame into a
Snapshot: typed rows, a categorical hierarchy built from the level columns and
per-row colors from a matplotlib palette.
"""

import warnings
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .model import CategoryValue, Hierarchy, HierarchyNode, Row, Snapshot


def load_table(path: str) -> pd.DataFrame:
    """
    Load input rows.

    Args:
        path: Path to a CSV or parquet file

    Returns:
        DataFrame with one input row per record
    """
    path = Path(path)

    if path.suffix == '.csv':
        return pd.read_csv(path)
    elif path.suffix == '.parquet':
        return pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported file format: {path.suffix}")


def build_palette(keys: Sequence[str]) -> Dict[str, str]:
    """Assign a tab20 color to every key, in order of appearance."""
    import matplotlib.pyplot as plt
    import matplotlib.colors

    palette = {}
    for key in keys:
        if key not in palette:
            color = plt.cm.tab20(len(palette) % 20)
            palette[key] = matplotlib.colors.to_hex(color)
    return palette


def build_hierarchy(paths: Sequence[Sequence[CategoryValue]], level_names: Sequence[str]) -> Hierarchy:
    """
    Build the categorical hierarchy from the category path of every row.

    Children keep first-seen order; equal keys under the same parent share a node.
    """
    root = HierarchyNode(level=-1, key="", label="")
    children_by_key = {id(root): {}}

    for path in paths:
        node = root
        for level, category in enumerate(path):
            siblings = children_by_key[id(node)]
            child = siblings.get(category.key)
            if child is None:
                child = HierarchyNode(level=level, key=category.key, label=category.label)
                node.children.append(child)
                siblings[category.key] = child
                children_by_key[id(child)] = {}
            node = child

    return Hierarchy(level_names=list(level_names), root=root)


def _format_label(value) -> str:
    if pd.isna(value):
        return "(Empty)"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def snapshot_from_frame(
    df: pd.DataFrame,
    levels: List[str],
    measure: str,
    color_by: Optional[str] = None,
    width: float = 800,
    height: float = 500
) -> Snapshot:
    """
    Convert a DataFrame into a render snapshot.

    Args:
        df: Input rows
        levels: Ordered dimension columns, one bar per column
        measure: Numeric measure column
        color_by: Column whose values select the row color (default: first level)
        width: Canvas width
        height: Canvas height

    Returns:
        Snapshot with one Row per DataFrame row that has a measure
    """
    if not levels:
        raise ValueError("At least one level column is required")

    color_by = color_by or levels[0]
    required_cols = list(dict.fromkeys(levels + [measure, color_by]))
    missing = set(required_cols) - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    values = pd.to_numeric(df[measure], errors='coerce')
    mask = values.notna()
    if not mask.all():
        warnings.warn(f"Dropping {int((~mask).sum())} rows without a numeric '{measure}' value")
    df = df[mask]
    values = values[mask]

    color_keys = [_format_label(v) for v in df[color_by]]
    palette = build_palette(color_keys)

    rows = []
    for row_id, (record, value, color_key) in enumerate(
        zip(df[levels].itertuples(index=False), values, color_keys)
    ):
        categories = tuple(
            CategoryValue(key=_format_label(v), label=_format_label(v)) for v in record
        )
        rows.append(Row(
            row_id=row_id,
            value=float(value),
            categories=categories,
            color=palette[color_key]
        ))

    hierarchy = build_hierarchy([row.categories for row in rows], levels)

    return Snapshot(
        rows=rows,
        hierarchy=hierarchy,
        width=width,
        height=height,
        measure_name=measure,
        dimension_names=list(levels)
    )
