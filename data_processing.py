import csv
import io
import math
import os
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

if __package__:
    from .intake_errors import EmptyDatasetError
else:
    from intake_errors import EmptyDatasetError

# Debug toggler: set SI_DEBUG=1 to enable verbose parse logs
DEBUG = os.getenv("SI_DEBUG", "0") == "1"


def dprint(*args, **kwargs):
    if DEBUG:
        print(*args, **kwargs)


_ZERO_WIDTH_CHARS = ("\ufeff", "\u200b", "\u200c", "\u200d")

# Symbols removed from numeric cells before parsing. Whitespace is always removed.
STRIPPED_SYMBOLS: Tuple[str, ...] = ("$", "€", "£", "¥", ",")

# Shorter date cells are rejected outright (stray digits, two-letter codes).
MIN_DATE_LENGTH = 4

# Tried in order after ISO-8601. Month-first layouts win over day-first ones,
# so "03/04/2024" reads as March 4th.
DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%Y-%b-%d %H:%M",
    "%Y-%b-%d",
    "%d-%b-%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%b %Y",
    "%B %Y",
)

CSV_SEPARATORS: Tuple[str, ...] = (",", "\t", ";", "|")
EXCEL_SUFFIXES = (".xlsx", ".xlsm")

_NUMBER_RE = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?$")
_BARE_NUMBER_RE = re.compile(r"^[-+]?\d+(?:[.,]\d+)?$")
_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{1,2}(?!\d)")


def _strip_bom_and_zero_width(text: str) -> str:
    for ch in _ZERO_WIDTH_CHARS:
        text = text.replace(ch, "")
    return text


def _norm(s: str) -> str:
    """Normalise unicode text by stripping noise and collapsing whitespace."""

    s = unicodedata.normalize("NFKC", _strip_bom_and_zero_width(s or ""))
    s = s.strip()
    s = re.sub(r"\s+", " ", s)
    return s


def parse_numeric(
    cell: object, strip_symbols: Sequence[str] = STRIPPED_SYMBOLS
) -> Optional[float]:
    """Return a float parsed from a messy numeric cell, or ``None``.

    Currency signs and thousands separators listed in ``strip_symbols`` are
    dropped along with any whitespace. Anything left that is not a plain
    decimal (optionally signed, optionally with an exponent) fails.
    """

    if cell is None:
        return None

    text = _strip_bom_and_zero_width(str(cell))
    for symbol in strip_symbols:
        text = text.replace(symbol, "")
    text = re.sub(r"\s+", "", text)
    if not text or not _NUMBER_RE.match(text):
        return None

    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _to_timestamp(text: str, fmt: str) -> Optional[pd.Timestamp]:
    try:
        parsed = pd.to_datetime(text, format=fmt)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed


def parse_date(cell: object) -> Optional[pd.Timestamp]:
    """Return a naive timestamp for a date-like cell, or ``None``.

    Text shaped like ``YYYY-MM...`` is read as ISO-8601 first, then
    ``DATE_FORMATS`` are tried in order. Offset-aware values are converted to
    UTC. Bare numbers such as ``2024`` are rejected so that numeric metric
    columns never look like dates.
    """

    if cell is None:
        return None

    text = _norm(str(cell))
    if len(text) < MIN_DATE_LENGTH or _BARE_NUMBER_RE.match(text):
        return None

    if _ISO_PREFIX_RE.match(text):
        parsed = _to_timestamp(text, "ISO8601")
        if parsed is not None:
            return parsed

    for fmt in DATE_FORMATS:
        parsed = _to_timestamp(text, fmt)
        if parsed is not None:
            return parsed

    return None


def parse_date_column(cells: Sequence[object]) -> pd.Series:
    """Vectorised :func:`parse_date` over a whole column.

    Returns a ``datetime64`` series aligned with ``cells`` holding ``NaT``
    wherever :func:`parse_date` would return ``None``. Each layout is only
    tried on the cells that are still unparsed.
    """

    text = pd.Series(
        ["" if cell is None else _norm(str(cell)) for cell in cells], dtype=object
    )
    result = pd.Series(pd.NaT, index=text.index, dtype=object)
    if text.empty:
        return pd.to_datetime(result)

    eligible = (text.str.len() >= MIN_DATE_LENGTH) & ~text.str.match(_BARE_NUMBER_RE.pattern)
    pending = text.index[eligible]

    iso_mask = text.loc[pending].str.match(_ISO_PREFIX_RE.pattern)
    iso_idx = pending[iso_mask.to_numpy(dtype=bool)]
    if len(iso_idx):
        parsed = pd.to_datetime(text.loc[iso_idx], format="ISO8601", errors="coerce", utc=True)
        hits = parsed.dropna().dt.tz_localize(None)
        result.loc[hits.index] = hits.astype(object)
        pending = pending.difference(hits.index)

    for fmt in DATE_FORMATS:
        if pending.empty:
            break
        parsed = pd.to_datetime(text.loc[pending], format=fmt, errors="coerce")
        hits = parsed.dropna()
        if hits.empty:
            continue
        result.loc[hits.index] = hits.astype(object)
        pending = pending.difference(hits.index)

    dprint(f"[parse_date_column] {len(text)} cells, {int(result.notna().sum())} dates")
    return pd.to_datetime(result)


def _cell_text(value: object) -> str:
    """Return the string form of a decoded cell as the parsers expect it."""

    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return _strip_bom_and_zero_width(str(value)).strip()


@dataclass(frozen=True)
class RawTable:
    """Header labels plus string rows, aligned by position.

    Rows shorter than the header are padded with empty strings and extra
    trailing cells are dropped, so every row has ``len(headers)`` cells.
    """

    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]

    def __post_init__(self) -> None:
        headers = tuple(_cell_text(h) for h in self.headers)
        width = len(headers)
        rows = []
        for row in self.rows:
            cells = [_cell_text(cell) for cell in list(row)[:width]]
            cells.extend([""] * (width - len(cells)))
            rows.append(tuple(cells))
        object.__setattr__(self, "headers", headers)
        object.__setattr__(self, "rows", tuple(rows))

    @classmethod
    def from_grid(cls, grid: Iterable[Sequence[object]]) -> "RawTable":
        """Build a table from a 2-D grid whose first row holds the headers."""

        lines = [list(row) for row in grid]
        if not lines:
            raise EmptyDatasetError(
                "Dataset is too small to analyze.",
                {"row_count": 0, "column_count": 0},
            )
        return cls(headers=tuple(lines[0]), rows=tuple(tuple(r) for r in lines[1:]))

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def column(self, index: int) -> List[str]:
        return [row[index] for row in self.rows]


def _detect_separator(text: str) -> Optional[str]:
    sample = text[:8192]
    try:
        return csv.Sniffer().sniff(sample, delimiters="".join(CSV_SEPARATORS)).delimiter
    except csv.Error:
        return None


def _read_csv_grid(text: str) -> List[List[object]]:
    """Return the CSV text as a grid of cells, trying several separators."""

    cleaned = _strip_bom_and_zero_width(text)
    if not cleaned.strip():
        return []

    detected = _detect_separator(cleaned)
    separators = list(dict.fromkeys([s for s in (detected, *CSV_SEPARATORS) if s]))
    for sep in separators:
        try:
            df = pd.read_csv(
                io.StringIO(cleaned),
                engine="python",
                sep=sep,
                header=None,
                on_bad_lines="skip",
                dtype=str,
                keep_default_na=False,
                index_col=False,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error, ValueError) as exc:
            dprint(f"[read_csv] separator {sep!r} failed: {exc}")
            continue
        dprint(f"[read_csv] separator {sep!r} -> {df.shape}")
        return df.fillna("").values.tolist()
    return []


def _read_excel_grid(raw: bytes) -> List[List[object]]:
    """Return the first worksheet as a grid of native cell values."""

    try:
        df = pd.read_excel(
            io.BytesIO(raw), sheet_name=0, header=None, dtype=object, engine="openpyxl"
        )
    except Exception as exc:
        raise ValueError("Failed to read spreadsheet upload") from exc
    dprint(f"[read_excel] first sheet -> {df.shape}")
    return df.astype(object).values.tolist()


def read_raw_table(file_obj, name: Optional[str] = None) -> RawTable:
    """Decode an uploaded CSV or XLSX file into a :class:`RawTable`.

    Parameters
    ----------
    file_obj:
        Raw bytes or a file-like object exposing ``getvalue()`` or ``read()``
        (a Streamlit ``UploadedFile`` works as is).
    name:
        File name used to pick the decoder. Defaults to ``file_obj.name``;
        anything that is not an Excel workbook is read as delimited text.
    """

    if isinstance(file_obj, (bytes, bytearray)):
        raw = bytes(file_obj)
    else:
        getter = getattr(file_obj, "getvalue", None)
        raw = getter() if callable(getter) else file_obj.read()
        name = name or getattr(file_obj, "name", None)

    suffix = Path(name or "").suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        grid = _read_excel_grid(raw)
    else:
        text = raw.decode("utf-8-sig", errors="replace") if isinstance(raw, bytes) else str(raw)
        grid = _read_csv_grid(text)

    return RawTable.from_grid(grid)


__all__ = [
    "CSV_SEPARATORS",
    "DATE_FORMATS",
    "MIN_DATE_LENGTH",
    "RawTable",
    "STRIPPED_SYMBOLS",
    "parse_date",
    "parse_date_column",
    "parse_numeric",
    "read_raw_table",
]
