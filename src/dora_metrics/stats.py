"""Statistics, calendar and rounding helpers for metric reporting.

This module provides utilities for:
- Computing linear-interpolation percentiles from pre-sorted samples.
- Computing the median of unsorted samples, with ``0`` for no samples.
- Counting business days (Monday to Friday) between two instants.
- Rounding metric values up or down to a fixed number of decimals.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Union

Number = Union[int, float]


def calculate_percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input sequence is expected to already be sorted in ascending order.
    - Empty input returns ``None``.
    - ``p <= 0`` returns the first value.
    - ``p >= 100`` returns the last value.
    - Otherwise, percentile is linearly interpolated between adjacent ranks.

    Args:
        sorted_values: Sorted numeric samples.
        p: Percentile in the inclusive range ``[0, 100]``.

    Returns:
        Percentile value as ``float`` or ``None`` when input is empty.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return sorted_values[0]

    if p >= 100:
        return sorted_values[-1]

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return sorted_values[int(position)]

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return lower_value + (upper_value - lower_value) * (position - lower_index)


def median(samples: Iterable[Number]) -> float:
    """Return the median of ``samples``.

    For an even count this is the mean of the two central values. No samples is
    a normal outcome (nothing finished in the window) and yields ``0``.
    """
    result = calculate_percentile(sorted(samples), 50)
    return 0 if result is None else result


def count_business_days(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """Count Monday-to-Friday calendar days from ``start`` to ``end`` inclusive.

    Time of day is ignored, so a start and end on the same weekday count as 1.
    Callers must pass ``start <= end``.
    """
    current = start.date() if isinstance(start, datetime) else start
    last = end.date() if isinstance(end, datetime) else end

    count = 0
    while current <= last:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def _quantize(value: Number, places: int, rounding: str) -> float:
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=rounding))


def round_up(value: Number, places: int) -> float:
    """Round towards positive infinity at ``places`` decimals."""
    return _quantize(value, places, ROUND_CEILING)


def round_down(value: Number, places: int) -> float:
    """Round towards negative infinity at ``places`` decimals."""
    return _quantize(value, places, ROUND_FLOOR)


def round_half_up(value: Number, places: int) -> float:
    return _quantize(value, places, ROUND_HALF_UP)
