from datetime import datetime
import time
from io import BytesIO
from pathlib import Path
import sys

import pandas as pd
import pytest
from openpyxl import Workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from data_processing import (
    RawTable,
    parse_date,
    parse_date_column,
    parse_numeric,
    read_raw_table,
)
from intake_errors import EmptyDatasetError


class _BytesFile(BytesIO):
    def __init__(self, data: bytes, name: str = "upload.csv"):
        super().__init__(data)
        self.name = name


@pytest.mark.parametrize(
    "cell, expected",
    [
        ("100", 100.0),
        ("-42.5", -42.5),
        ("$1,234.50", 1234.5),
        ("  7 ", 7.0),
        ("€ 1 000", 1000.0),
        ("£3.25", 3.25),
        (".5", 0.5),
        ("1e3", 1000.0),
    ],
)
def test_parse_numeric_accepts_noisy_numbers(cell, expected):
    assert parse_numeric(cell) == pytest.approx(expected)


@pytest.mark.parametrize(
    "cell",
    ["", "   ", "  -- ", "N/A", "nan", "inf", "-Infinity", "12abc", "1_000", "2024-01-01", None],
)
def test_parse_numeric_rejects_non_numbers(cell):
    assert parse_numeric(cell) is None


def test_parse_numeric_uses_configured_symbols():
    assert parse_numeric("$5") == 5.0
    assert parse_numeric("$5", strip_symbols=()) is None
    assert parse_numeric("12%", strip_symbols=("%",)) == 12.0


@pytest.mark.parametrize(
    "cell, expected",
    [
        ("2024-01-01", datetime(2024, 1, 1)),
        ("2024-1-5", datetime(2024, 1, 5)),
        ("2024-1-05", datetime(2024, 1, 5)),
        ("2024-01-01 13:45:00", datetime(2024, 1, 1, 13, 45)),
        ("2024-01-01T23:30:00.000Z", datetime(2024, 1, 1, 23, 30)),
        ("2024-01-02T01:00:00+02:00", datetime(2024, 1, 1, 23, 0)),
        ("2024/03/05", datetime(2024, 3, 5)),
        ("03/04/2024", datetime(2024, 3, 4)),
        ("3/4/2024 10:15", datetime(2024, 3, 4, 10, 15)),
        ("25.12.2023", datetime(2023, 12, 25)),
        ("2025-Oct-01 00:01", datetime(2025, 10, 1, 0, 1)),
        ("05-Jan-2024", datetime(2024, 1, 5)),
        ("Jan 5, 2024", datetime(2024, 1, 5)),
        ("Jan 5 2024", datetime(2024, 1, 5)),
        ("January 5 2024", datetime(2024, 1, 5)),
        ("March 2024", datetime(2024, 3, 1)),
    ],
)
def test_parse_date_fallback_chain(cell, expected):
    parsed = parse_date(cell)
    assert parsed is not None
    assert parsed.tzinfo is None
    assert parsed == pd.Timestamp(expected)


@pytest.mark.parametrize(
    "cell",
    ["", "1", "12", "abc", "2024", "100.5", "$1,234.50", "hello world", "2024-13-45", "NaT", None],
)
def test_parse_date_rejects_noise(cell):
    assert parse_date(cell) is None


def test_parse_date_column_matches_parse_date():
    cells = [
        "2024-01-01",
        "2024-1-5",
        "2024-01-02T01:00:00+02:00",
        "2024-01-01T23:30:00Z",
        "03/04/2024",
        "25.12.2023",
        "Jan 5 2024",
        "March 2024",
        "2024-13-45",
        "2024",
        "100.5",
        "hello world",
        "",
        None,
    ]

    column = parse_date_column(cells)

    assert pd.api.types.is_datetime64_any_dtype(column)
    assert len(column) == len(cells)
    for cell, parsed in zip(cells, column):
        expected = parse_date(cell)
        if expected is None:
            assert pd.isna(parsed), cell
        else:
            assert parsed == expected, cell


def test_parse_date_column_handles_empty_input():
    column = parse_date_column([])

    assert column.empty
    assert pd.api.types.is_datetime64_any_dtype(column)


def test_parse_date_column_is_fast_on_text_heavy_columns():
    notes = [f"note number {i} about nothing" for i in range(20000)]
    dates = [f"01/{(i % 28) + 1:02d}/2024" for i in range(20000)]

    started = time.perf_counter()
    parsed_notes = parse_date_column(notes)
    parsed_dates = parse_date_column(dates)
    elapsed = time.perf_counter() - started

    assert parsed_notes.isna().all()
    assert parsed_dates.notna().all()
    assert elapsed < 10.0


def test_raw_table_pads_and_truncates_rows():
    table = RawTable.from_grid(
        [["Day", "Price"], ["2024-01-01"], ["2024-01-02", "5", "extra"], [None, 7.0]]
    )

    assert table.headers == ("Day", "Price")
    assert table.rows == (
        ("2024-01-01", ""),
        ("2024-01-02", "5"),
        ("", "7"),
    )
    assert table.row_count == 3
    assert table.column_count == 2
    assert table.column(1) == ["", "5", "7"]


def test_raw_table_without_header_is_empty_dataset():
    with pytest.raises(EmptyDatasetError) as excinfo:
        RawTable.from_grid([])
    assert excinfo.value.kind == "EmptyDataset"


def test_read_raw_table_csv_keeps_strings():
    csv_text = "\n".join(
        [
            "\ufeffDay,Price,Note",
            "2024-01-01,\"$1,200.50\",ok",
            "2024-01-02,,",
            "2024-01-03,99",
            "",
        ]
    )

    table = read_raw_table(_BytesFile(csv_text.encode("utf-8"), name="prices.csv"))

    assert table.headers == ("Day", "Price", "Note")
    assert table.rows[0] == ("2024-01-01", "$1,200.50", "ok")
    assert table.rows[1] == ("2024-01-02", "", "")
    assert table.rows[2] == ("2024-01-03", "99", "")


def test_read_raw_table_semicolon_bytes():
    csv_text = "Datum;Umsatz\n2024-02-01;10\n2024-02-02;12\n"

    table = read_raw_table(csv_text.encode("utf-8"), name="umsatz.csv")

    assert table.headers == ("Datum", "Umsatz")
    assert table.column(1) == ["10", "12"]


def test_read_raw_table_xlsx_converts_native_cells():
    wb = Workbook()
    ws = wb.active
    ws.append(["Day", "Sales"])
    ws.append([datetime(2024, 1, 1), 100])
    ws.append([datetime(2024, 1, 2), None])
    ws.append([datetime(2024, 1, 3), 120.5])
    buffer = BytesIO()
    wb.save(buffer)

    table = read_raw_table(_BytesFile(buffer.getvalue(), name="sales.xlsx"))

    assert table.headers == ("Day", "Sales")
    assert table.column(0) == [
        "2024-01-01T00:00:00",
        "2024-01-02T00:00:00",
        "2024-01-03T00:00:00",
    ]
    assert table.column(1) == ["100", "", "120.5"]


def test_read_raw_table_empty_csv_is_empty_dataset():
    with pytest.raises(EmptyDatasetError):
        read_raw_table(b"", name="empty.csv")


def test_read_raw_table_bad_workbook_raises_value_error():
    with pytest.raises(ValueError):
        read_raw_table(b"not a workbook", name="broken.xlsx")
