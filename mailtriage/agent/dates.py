"""
Clock and calendar-day helpers shared by the scorer and the renderer.

Everything date-dependent takes an explicit ``now`` so tests can pin it.
"""

import math
from datetime import date, datetime, time, timezone
from typing import Callable

Clock = Callable[[], datetime]

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_until(deadline: date, now: datetime) -> int:
    """
    Whole days from ``now`` to the start of ``deadline``, rounded up.

    The deadline is taken at 00:00 in ``now``'s timezone, so a deadline
    tomorrow seen at 10:00 today is 1 day away, and one seen at exactly
    midnight is also 1.
    """
    start_of_deadline = datetime.combine(deadline, time.min, tzinfo=now.tzinfo)
    return math.ceil((start_of_deadline - now).total_seconds() / SECONDS_PER_DAY)
