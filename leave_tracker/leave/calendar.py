"""Working-day arithmetic for leave requests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Union

from leave_tracker.common.constants import WEEKEND_DAYS

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    # datetime is a date subclass; drop the time-of-day component
    if isinstance(value, datetime):
        return value.date()
    return value


def working_days(
    start: DateLike,
    end: DateLike,
    holidays: Iterable[DateLike] = (),
) -> int:
    """Count the days in ``[start, end]`` that are neither Saturday/Sunday
    nor a listed holiday.

    Holidays are matched by calendar date, ignoring any time component.
    Returns 0 when ``end`` is before ``start``.
    """
    first, last = _as_date(start), _as_date(end)
    if last < first:
        return 0

    holiday_dates = {_as_date(h) for h in holidays}
    count = 0
    current = first
    while current <= last:
        if current.weekday() not in WEEKEND_DAYS and current not in holiday_dates:
            count += 1
        current += timedelta(days=1)
    return count
