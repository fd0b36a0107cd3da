"""teamcity_rest.utils

Utility helpers shared across the teamcity_rest package.

TeamCity uses a non-ISO date format in locators and payloads:
``20240319T154501+0000`` (date, literal ``T``, time, offset without colon).
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from .exceptions import DateParseError

__all__ = [
    "TEAMCITY_DATE_FORMAT",
    "format_teamcity_date",
    "parse_teamcity_date",
]


#: strftime/strptime pattern equivalent to ``yyyyMMdd'T'HHmmssZZZZ``.
TEAMCITY_DATE_FORMAT = "%Y%m%dT%H%M%S%z"

_date_re = re.compile(r"\d{8}T\d{6}[+-]\d{4}")


def format_teamcity_date(dt: datetime) -> str:
    """Format a datetime as a TeamCity date string.

    Sub-second precision is dropped. Naive datetimes are taken to be in the
    local timezone. Offsets that are not whole minutes (historical LMT zones,
    for instance) cannot be written as ``+HHMM`` and are converted to UTC.
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        dt = dt.astimezone()
    if dt.utcoffset() % timedelta(minutes=1):
        dt = dt.astimezone(timezone.utc)
    # %Y is not zero-padded below year 1000 on every platform
    return f"{dt.year:04d}" + dt.strftime("%m%dT%H%M%S%z")


def parse_teamcity_date(value: str) -> datetime:
    """Parse a TeamCity date string into an aware datetime.

    Raises:
        DateParseError: If ``value`` does not match the TeamCity pattern.
    """
    if not isinstance(value, str) or not _date_re.fullmatch(value):
        raise DateParseError(value)
    try:
        return datetime.strptime(value, TEAMCITY_DATE_FORMAT)
    except ValueError as exc:
        raise DateParseError(value) from exc
