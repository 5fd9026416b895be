"""
Timezone helpers. Violation timestamps are recorded in the configured
assessment timezone (Asia/Almaty by default).
"""
from datetime import datetime
from functools import lru_cache
import pytz
from typing import Optional

from ..core.config import settings


@lru_cache(maxsize=16)
def get_timezone(name: Optional[str] = None):
    return pytz.timezone(name or settings.default_timezone)


def get_local_now(tz_name: Optional[str] = None) -> datetime:
    """Current time in the assessment timezone"""
    return datetime.now(get_timezone(tz_name))


def utc_to_local(utc_dt: datetime, tz_name: Optional[str] = None) -> datetime:
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=pytz.UTC)
    return utc_dt.astimezone(get_timezone(tz_name))


def format_local_time(dt: datetime, format_str: Optional[str] = None) -> str:
    """Format a datetime in the assessment timezone"""
    return utc_to_local(dt).strftime(format_str or settings.timezone_display_format)


def format_duration(seconds: int) -> str:
    """MM:SS, as shown on the fullscreen countdown"""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
