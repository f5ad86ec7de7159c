"""Calendar-month arithmetic used by the billing window."""

import calendar
from datetime import date

MONTH_NAMES = tuple(calendar.month_name)[1:]


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """
    Shift a date by whole calendar months, clamping the day to the target month.

    Examples:
        >>> add_months(date(2024, 1, 31), 1)
        datetime.date(2024, 2, 29)
        >>> add_months(date(2024, 11, 15), 3)
        datetime.date(2025, 2, 15)
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Number of calendar-month boundaries from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def month_label(value: date) -> str:
    """Canonical label of the month containing value, e.g. 'January 2024'."""
    return f"{MONTH_NAMES[value.month - 1]} {value.year}"


def parse_month_label(label: str) -> date:
    """
    Parse a label produced by month_label back to the first day of that month.

    Raises ValueError on anything else.
    """
    parts = label.strip().split()
    if len(parts) != 2:
        raise ValueError(f"Invalid month label: {label!r}")
    name, year = parts
    try:
        month = MONTH_NAMES.index(name.capitalize()) + 1
    except ValueError:
        raise ValueError(f"Invalid month name in label: {label!r}") from None
    if not year.isdigit() or len(year) != 4:
        raise ValueError(f"Invalid year in label: {label!r}")
    return date(int(year), month, 1)


def remaining_months_and_days(as_of: date, end: date) -> tuple[int, int]:
    """Split the span [as_of, end) into whole months plus leftover days."""
    if as_of >= end:
        return 0, 0
    months = months_between(as_of, end)
    if add_months(as_of, months) > end:
        months -= 1
    days = (end - add_months(as_of, months)).days
    return months, days
