"""Conversion between epoch seconds and ODIM date/time strings (always UTC)."""
from __future__ import annotations

import calendar
import re
import time
from typing import Tuple

from ..h5.errors import BadValueError

_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_TIME = re.compile(r"^(\d{2})(\d{2})(\d{2})$")


def strings_to_time(date: str, time_: str) -> int:
    """Combine a `YYYYMMDD` date and a `HHMMSS` time into UTC epoch seconds.

    Raises:
        BadValueError: if either string is malformed or out of range
    """
    d, t = _DATE.match(date), _TIME.match(time_)
    if d is None or t is None:
        raise BadValueError(
            "parse date/time", name=f"{date} {time_}", reason="expected YYYYMMDD HHMMSS"
        )
    year, month, day = map(int, d.groups())
    hour, minute, second = map(int, t.groups())
    if not (
        1 <= month <= 12
        and 1 <= day <= calendar.monthrange(year, month)[1]
        and hour < 24
        and minute < 60
        and second < 61
    ):
        raise BadValueError(
            "parse date/time", name=f"{date} {time_}", reason="value out of range"
        )
    return calendar.timegm((year, month, day, hour, minute, second, 0, 0, 0))


def time_to_strings(t: int) -> Tuple[str, str]:
    """Split UTC epoch seconds into a `YYYYMMDD` date and a `HHMMSS` time."""
    tm = time.gmtime(t)
    return (
        f"{tm.tm_year:04d}{tm.tm_mon:02d}{tm.tm_mday:02d}",
        f"{tm.tm_hour:02d}{tm.tm_min:02d}{tm.tm_sec:02d}",
    )
