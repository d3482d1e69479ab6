"""
Timezone helpers
Local (Israel) time handling for timestamps, websocket events and exports
"""

import pytz
from datetime import datetime
from typing import Optional

from ..core.config import settings

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)


def now(tz: Optional[pytz.BaseTzInfo] = None) -> datetime:
    """
    Current time, local timezone by default

    Args:
        tz: timezone; None means the configured local timezone

    Returns:
        datetime: naive local time, or an aware datetime when tz is given
    """
    if tz is None:
        return datetime.now(LOCAL_TZ).replace(tzinfo=None)
    return datetime.now(tz)


def utc_now() -> datetime:
    """Naive UTC time"""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def now_iso() -> str:
    """Local time as an ISO-8601 string (websocket message timestamps)"""
    return now().isoformat()


def get_timezone_info() -> dict:
    """
    Timezone summary logged at start-up

    Returns:
        dict: local time, UTC time and the offset between them
    """
    local_time = now()
    utc_time = utc_now()
    time_diff = local_time - utc_time

    return {
        "local_time": local_time,
        "utc_time": utc_time,
        "timezone": settings.TIMEZONE,
        "offset": datetime.now(LOCAL_TZ).strftime("%z"),
        "time_difference_hours": round(time_diff.total_seconds() / 3600, 2),
    }
