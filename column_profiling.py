"""Column role inference: which column is the date axis, which is the metric."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

if __package__:
    from .data_processing import RawTable, dprint, parse_date_column, parse_numeric
    from .intake_errors import (
        EmptyDatasetError,
        InvalidOverrideError,
        NoDateColumnError,
        NoMetricColumnError,
    )
else:
    from data_processing import RawTable, dprint, parse_date_column, parse_numeric
    from intake_errors import (
        EmptyDatasetError,
        InvalidOverrideError,
        NoDateColumnError,
        NoMetricColumnError,
    )


# A column is a candidate when strictly more than this share of rows parses.
CANDIDATE_THRESHOLD = 0.4


@dataclass(frozen=True)
class ColumnProfile:
    index: int
    header: str
    date_score: float
    numeric_score: float

    @property
    def is_date_candidate(self) -> bool:
        return self.date_score > CANDIDATE_THRESHOLD

    @property
    def is_numeric_candidate(self) -> bool:
        return self.numeric_score > CANDIDATE_THRESHOLD


@dataclass(frozen=True)
class ColumnSelection:
    date_column: int
    metric_column: int


def profile_columns(table: RawTable) -> List[ColumnProfile]:
    """Return one profile per column with its date and numeric parse rates."""

    row_count = table.row_count
    if row_count == 0:
        raise EmptyDatasetError(
            "Dataset is too small to analyze.",
            {"row_count": 0, "column_count": table.column_count},
        )

    profiles: List[ColumnProfile] = []
    for index, header in enumerate(table.headers):
        cells = table.column(index)
        date_hits = int(parse_date_column(cells).notna().sum())
        numeric_hits = sum(1 for cell in cells if parse_numeric(cell) is not None)
        profile = ColumnProfile(
            index=index,
            header=header,
            date_score=date_hits / row_count,
            numeric_score=numeric_hits / row_count,
        )
        dprint(
            f"[profile] col {index} {header!r}: "
            f"date={profile.date_score:.2f} numeric={profile.numeric_score:.2f}"
        )
        profiles.append(profile)
    return profiles


def _best_date_column(profiles: Sequence[ColumnProfile]) -> Optional[ColumnProfile]:
    candidates = [p for p in profiles if p.is_date_candidate]
    if not candidates:
        return None
    # max() keeps the first maximum, i.e. the leftmost column on ties.
    return max(sorted(candidates, key=lambda p: p.index), key=lambda p: p.date_score)


def _best_metric_column(
    profiles: Sequence[ColumnProfile], exclude: int
) -> Optional[ColumnProfile]:
    candidates = [p for p in profiles if p.is_numeric_candidate and p.index != exclude]
    if not candidates:
        return None
    return max(sorted(candidates, key=lambda p: p.index), key=lambda p: p.numeric_score)


def _no_date_column(profiles: Sequence[ColumnProfile]) -> NoDateColumnError:
    return NoDateColumnError(
        "No chronological column detected. Ensure your file has a date column.",
        {"threshold": CANDIDATE_THRESHOLD, "column_count": len(profiles)},
    )


def _no_metric_column(
    profiles: Sequence[ColumnProfile], date_column: int
) -> NoMetricColumnError:
    return NoMetricColumnError(
        "No numeric metric values detected.",
        {
            "threshold": CANDIDATE_THRESHOLD,
            "column_count": len(profiles),
            "date_column": date_column,
        },
    )


def select_columns(profiles: Sequence[ColumnProfile]) -> ColumnSelection:
    """Pick the date and metric columns from a set of profiles.

    The date column is the date candidate with the highest score; the metric
    column is the highest scoring numeric candidate other than the date
    column. Equal scores go to the lower column index.
    """

    date_profile = _best_date_column(profiles)
    if date_profile is None:
        raise _no_date_column(profiles)

    metric_profile = _best_metric_column(profiles, exclude=date_profile.index)
    if metric_profile is None:
        raise _no_metric_column(profiles, date_profile.index)

    return ColumnSelection(date_column=date_profile.index, metric_column=metric_profile.index)


def complete_selection(
    profiles: Sequence[ColumnProfile],
    date_column: Optional[int] = None,
    metric_column: Optional[int] = None,
) -> ColumnSelection:
    """Fill whichever index was not supplied using the automatic rules.

    The supplied indices are not checked here; see :func:`validate_selection`.
    """

    if date_column is None and metric_column is None:
        return select_columns(profiles)

    if date_column is None:
        candidates = [p for p in profiles if p.index != metric_column]
        date_profile = _best_date_column(candidates)
        if date_profile is None:
            raise _no_date_column(profiles)
        date_column = date_profile.index

    if metric_column is None:
        metric_profile = _best_metric_column(profiles, exclude=date_column)
        if metric_profile is None:
            raise _no_metric_column(profiles, date_column)
        metric_column = metric_profile.index

    return ColumnSelection(date_column=date_column, metric_column=metric_column)


def validate_selection(
    profiles: Sequence[ColumnProfile], selection: ColumnSelection
) -> ColumnSelection:
    """Raise :class:`InvalidOverrideError` unless ``selection`` is usable."""

    column_count = len(profiles)
    context = {
        "date_column": selection.date_column,
        "metric_column": selection.metric_column,
        "column_count": column_count,
        "threshold": CANDIDATE_THRESHOLD,
    }

    def _fail(reason: str) -> InvalidOverrideError:
        context["reason"] = reason
        return InvalidOverrideError(f"Invalid column selection: {reason}.", context)

    for label, index in (
        ("date", selection.date_column),
        ("metric", selection.metric_column),
    ):
        if isinstance(index, bool) or not isinstance(index, int):
            raise _fail(f"{label} column index must be an integer")
        if not 0 <= index < column_count:
            raise _fail(f"{label} column {index} is out of range")

    if selection.date_column == selection.metric_column:
        raise _fail("date and metric columns must differ")

    if not profiles[selection.date_column].is_date_candidate:
        raise _fail(f"column {selection.date_column} does not hold enough dates")

    if not profiles[selection.metric_column].is_numeric_candidate:
        raise _fail(f"column {selection.metric_column} does not hold enough numbers")

    return selection


__all__ = [
    "CANDIDATE_THRESHOLD",
    "ColumnProfile",
    "ColumnSelection",
    "complete_selection",
    "profile_columns",
    "select_columns",
    "validate_selection",
]
