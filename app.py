import hashlib
from pathlib import Path
import sys
from typing import Dict, List, Optional

import streamlit as st
import pandas as pd
import altair as alt

# Ensure imports work whether the app is executed as a module (e.g. via
# ``python -m series_intake.app``) or as a script where the repository
# directory might not already be on ``sys.path``.
CURRENT_DIR = Path(__file__).resolve().parent

if __package__:
    from .column_profiling import (
        ColumnProfile,
        ColumnSelection,
        complete_selection,
        profile_columns,
    )
    from .data_processing import RawTable, read_raw_table
    from .intake_errors import IntakeError
    from .series_builder import (
        build_series,
        generate_sample_series,
        preview_rows,
        series_to_frame,
    )
else:
    if str(CURRENT_DIR) not in sys.path:
        sys.path.insert(0, str(CURRENT_DIR))
    from column_profiling import (
        ColumnProfile,
        ColumnSelection,
        complete_selection,
        profile_columns,
    )
    from data_processing import RawTable, read_raw_table
    from intake_errors import IntakeError
    from series_builder import (
        build_series,
        generate_sample_series,
        preview_rows,
        series_to_frame,
    )


st.set_page_config(page_title="Series Intake", layout="wide", page_icon="📈")

st.sidebar.header("📈 Data Upload")
upload = st.sidebar.file_uploader(
    "Upload a CSV or Excel file",
    type=["csv", "txt", "xlsx", "xlsm"],
    key="series_uploader",
)


def _digest(file_bytes: bytes) -> str:
    return hashlib.sha1(file_bytes).hexdigest()[:10]


@st.cache_data(show_spinner=False, max_entries=8)
def _read_cached(file_name: str, file_bytes: bytes) -> RawTable:
    return read_raw_table(file_bytes, name=file_name)


def _reset_intake(table: Optional[RawTable]) -> None:
    """Replace the current upload and drop everything derived from it."""

    st.session_state["raw_table"] = table
    st.session_state["profiles"] = None
    st.session_state["selection"] = None
    st.session_state["series"] = None
    st.session_state["intake_error"] = None


def _show_error(exc: IntakeError) -> None:
    st.error(str(exc))
    if exc.context:
        st.caption(", ".join(f"{key}: {value}" for key, value in exc.context.items()))


def _column_label(profile: ColumnProfile) -> str:
    return profile.header or f"Column {profile.index + 1}"


def _series_chart(df: pd.DataFrame, title: str) -> alt.Chart:
    return (
        alt.Chart(df)
        .mark_line()
        .encode(
            x=alt.X("Date:T", title="Date"),
            y=alt.Y("Value:Q", title=title, scale=alt.Scale(zero=False)),
            tooltip=[alt.Tooltip("Date:T"), alt.Tooltip("Value:Q", format=",.2f")],
        )
        .properties(title={"text": title, "anchor": "start"})
        .configure(background="white", view=alt.ViewConfig(fill="white", stroke=None))
    )


for key in ("raw_table", "upload_digest", "profiles", "selection", "series", "intake_error"):
    st.session_state.setdefault(key, None)

if upload is not None:
    file_bytes = upload.getvalue()
    digest = _digest(file_bytes)
    if digest != st.session_state["upload_digest"]:
        st.session_state["upload_digest"] = digest
        try:
            table = _read_cached(upload.name, file_bytes)
        except (IntakeError, ValueError) as exc:
            st.sidebar.error(f"Failed to read {upload.name}")
            st.sidebar.exception(exc)
            _reset_intake(None)
        else:
            _reset_intake(table)
            try:
                profiles = profile_columns(table)
                st.session_state["profiles"] = profiles
                st.session_state["selection"] = complete_selection(profiles)
            except IntakeError as exc:
                st.session_state["intake_error"] = exc
else:
    st.sidebar.info("Upload a CSV or Excel file to begin.")

if st.sidebar.button("Use sample data"):
    _reset_intake(None)
    st.session_state["series"] = generate_sample_series()

table: Optional[RawTable] = st.session_state["raw_table"]
profiles: Optional[List[ColumnProfile]] = st.session_state["profiles"]
selection: Optional[ColumnSelection] = st.session_state["selection"]

if st.session_state["intake_error"] is not None:
    _show_error(st.session_state["intake_error"])

if table is not None and profiles and selection is not None and st.session_state["series"] is None:
    st.subheader("Schema Validation")
    st.caption(f"{table.row_count:,} rows, {table.column_count} columns")

    date_options = [p.index for p in profiles if p.is_date_candidate]
    labels: Dict[int, str] = {p.index: _column_label(p) for p in profiles}

    left, right = st.columns(2)
    with left:
        date_column = st.selectbox(
            "Date column",
            date_options,
            index=date_options.index(selection.date_column)
            if selection.date_column in date_options
            else 0,
            format_func=lambda idx: labels[idx],
            key=f"date_col_{st.session_state['upload_digest']}",
        )
        metric_options = [
            p.index for p in profiles if p.is_numeric_candidate and p.index != date_column
        ]
        if not metric_options:
            st.warning("No numeric column remains for this date column.")
            st.stop()
        metric_column = st.selectbox(
            "Metric column",
            metric_options,
            index=metric_options.index(selection.metric_column)
            if selection.metric_column in metric_options
            else 0,
            format_func=lambda idx: labels[idx],
            key=f"metric_col_{st.session_state['upload_digest']}",
        )
    selection = ColumnSelection(date_column=date_column, metric_column=metric_column)
    st.session_state["selection"] = selection

    with right:
        preview = pd.DataFrame(preview_rows(table, selection, profiles=profiles))
        preview = preview.rename(
            columns={"date": labels[date_column], "value": labels[metric_column]}
        )
        st.caption("Preview (cleaned)")
        st.dataframe(preview.fillna("VOID"), use_container_width=True)

    if st.button("Build series", type="primary"):
        try:
            st.session_state["series"] = build_series(table, selection, profiles)
        except IntakeError as exc:
            _show_error(exc)
        else:
            st.rerun()

series = st.session_state["series"]
if not series:
    st.stop()

metric_label = "Value"
if table is not None and profiles and selection is not None:
    metric_label = _column_label(profiles[selection.metric_column])

st.subheader("Cleaned Series")
if st.button("Change columns") and table is not None:
    st.session_state["series"] = None
    st.rerun()

df_series = series_to_frame(series)
st.caption(
    f"{len(df_series):,} points from {df_series['Date'].min():%Y-%m-%d} "
    f"to {df_series['Date'].max():%Y-%m-%d}"
)
st.altair_chart(_series_chart(df_series, metric_label), use_container_width=True)
st.dataframe(pd.DataFrame(series), use_container_width=True)
