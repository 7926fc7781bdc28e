"""Gap filling for ordered metric values."""

from typing import List, Optional, Sequence

import numpy as np

# Value used when a sequence has no known values at all.
ALL_MISSING_FILL = 0.0


def interpolate_gaps(values: Sequence[Optional[float]]) -> List[float]:
    """Return ``values`` with every missing entry filled.

    ``None`` and NaN both count as missing. A gap between two known values is
    filled on the straight line between them, measured in sequence positions.
    Leading gaps take the first known value and trailing gaps the last one. A
    sequence with nothing known is filled with ``ALL_MISSING_FILL``.
    """

    series = np.array(
        [np.nan if value is None else float(value) for value in values], dtype=float
    )
    n = len(series)
    if n == 0:
        return []

    missing = np.isnan(series)
    if not np.any(missing):
        return series.tolist()

    known_idx = np.flatnonzero(~missing)
    if known_idx.size == 0:
        return [ALL_MISSING_FILL] * n

    # np.interp clamps outside the known range, which carries the edge anchors
    # backward and forward.
    missing_idx = np.flatnonzero(missing)
    filled = series.copy()
    filled[missing_idx] = np.interp(missing_idx, known_idx, series[known_idx])
    return filled.tolist()


__all__ = ["ALL_MISSING_FILL", "interpolate_gaps"]
