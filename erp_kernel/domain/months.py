"""
Month arithmetic for "YYYY-MM" codes.

BOM versions, price sets and inventory snapshots are all keyed by month
code.  String ordering of valid codes equals chronological ordering, which
the baseline lookup relies on (``month < current_month``).
"""

import calendar
import re
from datetime import date, timedelta

from erp_kernel.exceptions import InvalidMonthError

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> tuple[int, int]:
    """Split a month code into (year, month), rejecting malformed codes."""
    if not isinstance(month, str):
        raise InvalidMonthError(str(month))
    match = _MONTH_RE.match(month)
    if match is None:
        raise InvalidMonthError(month)
    return int(match.group(1)), int(match.group(2))


def validate_month(month: str) -> str:
    parse_month(month)
    return month


def month_of(d: date) -> str:
    """Month code containing a date."""
    return f"{d.year:04d}-{d.month:02d}"


def first_day(month: str) -> date:
    year, mon = parse_month(month)
    return date(year, mon, 1)


def last_day(month: str) -> date:
    year, mon = parse_month(month)
    return date(year, mon, calendar.monthrange(year, mon)[1])


def next_month(month: str) -> str:
    year, mon = parse_month(month)
    if mon == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{mon + 1:02d}"


def next_month_start(month: str) -> date:
    """First day of the month after ``month`` (baseline replay window start)."""
    return first_day(next_month(month))


def day_before(d: date) -> date:
    return d - timedelta(days=1)
