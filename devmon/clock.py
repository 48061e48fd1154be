"""Time source and timestamp formatting for DevMon."""

from datetime import datetime, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Jakarta"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
TIME_OF_DAY_FORMAT = "%H:%M:%S"
FILE_TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M%S"


@lru_cache(maxsize=None)
def get_timezone(name: str = DEFAULT_TIMEZONE) -> tzinfo:
    """Resolve an IANA timezone name (raises ZoneInfoNotFoundError if unknown)."""
    return ZoneInfo(name)


def format_timestamp(ts: datetime, tz: tzinfo | None = None) -> str:
    """Format an aware datetime as ``YYYY-MM-DD HH:mm:ss`` in the display timezone."""
    return ts.astimezone(tz or get_timezone()).strftime(TIMESTAMP_FORMAT)


def format_time_of_day(ts: datetime, tz: tzinfo | None = None) -> str:
    return ts.astimezone(tz or get_timezone()).strftime(TIME_OF_DAY_FORMAT)


def format_file_timestamp(ts: datetime, tz: tzinfo | None = None) -> str:
    return ts.astimezone(tz or get_timezone()).strftime(FILE_TIMESTAMP_FORMAT)


class Clock:
    """Wall clock bound to the display timezone.

    The engine takes a Clock so tests can substitute one whose time only
    moves when told to.
    """

    def __init__(self, timezone: str = DEFAULT_TIMEZONE):
        self.tz = get_timezone(timezone)

    def now(self) -> datetime:
        """Return the current time as an aware datetime."""
        return datetime.now(self.tz)

    def format(self, ts: datetime) -> str:
        return format_timestamp(ts, self.tz)

    def timestamp(self) -> str:
        """Return the current time formatted for published events."""
        return self.format(self.now())
