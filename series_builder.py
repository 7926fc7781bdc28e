"""Turn a raw upload into the cleaned, gap-free daily series."""

from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

if __package__:
    from .column_profiling import (
        ColumnProfile,
        ColumnSelection,
        complete_selection,
        profile_columns,
        validate_selection,
    )
    from .data_processing import (
        RawTable,
        dprint,
        parse_date,
        parse_date_column,
        parse_numeric,
    )
    from .intake_errors import EmptyResultError
    from .interpolation import interpolate_gaps
else:
    from column_profiling import (
        ColumnProfile,
        ColumnSelection,
        complete_selection,
        profile_columns,
        validate_selection,
    )
    from data_processing import (
        RawTable,
        dprint,
        parse_date,
        parse_date_column,
        parse_numeric,
    )
    from intake_errors import EmptyResultError
    from interpolation import interpolate_gaps


DATE_LABEL_FORMAT = "%Y-%m-%d"
PREVIEW_ROWS = 5


def build_series(
    table: RawTable,
    selection: ColumnSelection,
    profiles: Optional[Sequence[ColumnProfile]] = None,
) -> List[Dict[str, object]]:
    """Return ``[{"date": "YYYY-MM-DD", "value": float}, ...]`` for a selection.

    Rows whose date does not parse are dropped; rows whose metric does not
    parse stay in place as gaps and are interpolated. Rows are ordered by
    timestamp with a stable sort, so same-instant rows keep their file order.
    Rows falling on the same calendar day are kept as separate points.
    """

    if profiles is None:
        profiles = profile_columns(table)
    validate_selection(profiles, selection)

    timestamps = parse_date_column(table.column(selection.date_column))
    values = [parse_numeric(cell) for cell in table.column(selection.metric_column)]

    frame = pd.DataFrame(
        {
            "DateTime": timestamps,
            "Value": pd.Series(values, dtype="float64"),
        }
    )
    frame = frame.dropna(subset=["DateTime"])
    dropped = table.row_count - len(frame)
    if frame.empty:
        raise EmptyResultError(
            "No rows with a readable date in the selected column.",
            {
                "row_count": table.row_count,
                "date_column": selection.date_column,
                "metric_column": selection.metric_column,
            },
        )

    frame = frame.sort_values("DateTime", kind="stable").reset_index(drop=True)
    frame["Date"] = frame["DateTime"].dt.strftime(DATE_LABEL_FORMAT)
    gaps = int(frame["Value"].isna().sum())
    filled = interpolate_gaps(frame["Value"].tolist())

    dprint(
        f"[build_series] rows={table.row_count} dropped={dropped} "
        f"kept={len(frame)} interpolated={gaps}"
    )

    return [
        {"date": label, "value": value}
        for label, value in zip(frame["Date"].tolist(), filled)
    ]


def run_intake(
    table: RawTable,
    date_column: Optional[int] = None,
    metric_column: Optional[int] = None,
) -> Dict[str, object]:
    """Profile ``table``, choose columns and build the cleaned series.

    Either index may be supplied to override the automatic choice; the other
    is then picked automatically with the overridden column excluded.

    Returns
    -------
    Dict[str, object]
        ``profiles`` (list of :class:`ColumnProfile`), ``selection``
        (:class:`ColumnSelection`) and ``series`` (list of points).
    """

    profiles = profile_columns(table)
    selection = complete_selection(profiles, date_column, metric_column)
    series = build_series(table, selection, profiles)
    return {"profiles": profiles, "selection": selection, "series": series}


def preview_rows(
    table: RawTable,
    selection: ColumnSelection,
    limit: int = PREVIEW_ROWS,
    profiles: Optional[Sequence[ColumnProfile]] = None,
) -> List[Dict[str, object]]:
    """Return the first ``limit`` rows as parsed under ``selection``.

    The selection is validated like in :func:`build_series`. Unparsable cells
    come back as ``None`` so the caller can flag them.
    """

    if profiles is None:
        profiles = profile_columns(table)
    validate_selection(profiles, selection)

    preview: List[Dict[str, object]] = []
    for row in table.rows[: max(limit, 0)]:
        ts = parse_date(row[selection.date_column])
        preview.append(
            {
                "date": ts.strftime(DATE_LABEL_FORMAT) if ts is not None else None,
                "value": parse_numeric(row[selection.metric_column]),
            }
        )
    return preview


def series_to_frame(series: Sequence[Dict[str, object]]) -> pd.DataFrame:
    """Return the series as a ``Date``/``Value`` frame for charting."""

    df = pd.DataFrame(list(series), columns=["date", "value"])
    df = df.rename(columns={"date": "Date", "value": "Value"})
    df["Date"] = pd.to_datetime(df["Date"], format=DATE_LABEL_FORMAT)
    df["Value"] = pd.to_numeric(df["Value"], errors="coerce")
    return df


def generate_sample_series(
    days: int = 90, end: Optional[date] = None, seed: Optional[int] = None
) -> List[Dict[str, object]]:
    """Return a synthetic daily series (trend, seasonality and noise).

    The last point falls on the day before ``end`` (today by default).
    """

    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")
    end = end or date.today()
    rng = np.random.default_rng(seed)
    steps = np.arange(days)
    values = 500 + steps * 2 + np.sin(steps * 0.3) * 100 + rng.random(days) * 50
    return [
        {
            "date": (end - timedelta(days=days - int(i))).strftime(DATE_LABEL_FORMAT),
            "value": float(value),
        }
        for i, value in zip(steps, values)
    ]


__all__ = [
    "DATE_LABEL_FORMAT",
    "PREVIEW_ROWS",
    "build_series",
    "generate_sample_series",
    "preview_rows",
    "run_intake",
    "series_to_frame",
]
