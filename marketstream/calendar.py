"""
Trading hours of the venue behind the lemon.markets streams (Lang & Schwarz).

All hours are Europe/Berlin local time. The open bound is inclusive, the
close bound exclusive:

    Mon-Fri  07:30 - 23:00
    Sat      10:00 - 13:00
    Sun      17:00 - 19:00
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

EXCHANGE_TZ = ZoneInfo("Europe/Berlin")

# weekday() -> (open, close)
TRADING_HOURS: dict[int, tuple[time, time]] = {
    0: (time(7, 30), time(23, 0)),
    1: (time(7, 30), time(23, 0)),
    2: (time(7, 30), time(23, 0)),
    3: (time(7, 30), time(23, 0)),
    4: (time(7, 30), time(23, 0)),
    5: (time(10, 0), time(13, 0)),
    6: (time(17, 0), time(19, 0)),
}


def is_exchange_open(when: Optional[datetime] = None) -> bool:
    """
    Check whether the exchange is trading at `when` (default: now).

    Naive datetimes are read as Berlin local time, aware ones are converted.
    """
    if when is None:
        local = datetime.now(EXCHANGE_TZ)
    elif when.tzinfo is None:
        local = when.replace(tzinfo=EXCHANGE_TZ)
    else:
        local = when.astimezone(EXCHANGE_TZ)

    opens, closes = TRADING_HOURS[local.weekday()]
    return opens <= local.time() < closes
