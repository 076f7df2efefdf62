"""
Error types raised while turning a data snapshot into a Sankey layout.

Every error is detected before anything is drawn, so a failed render never
leaves a half-updated canvas behind.
"""


class SankeyError(ValueError):
    """Base class for all layout and data view errors."""


class DataViewError(SankeyError):
    """The host reported errors for the current data view."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors) or "Data view has errors")


class ExpiredSnapshotError(SankeyError):
    """Rows are no longer available because the data view expired."""


class NegativeValueError(SankeyError):
    """A row carries a negative measure, which a Sankey can not display."""

    def __init__(self, row_id, value):
        self.row_id = row_id
        self.value = value
        super().__init__(
            f"Sankey can not display negative values (row {row_id} has value {value})"
        )


class ConservationError(SankeyError):
    """Per-level totals disagree, so the bars can not be stacked consistently."""

    def __init__(self, message, totals=None):
        self.totals = dict(totals or {})
        super().__init__(message)
