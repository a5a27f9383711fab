"""
Time-window partitioning for marketplace fetches.

Marketplace APIs disagree on date-range semantics: some treat `from == to` as
an empty range, some cap records per call, some cap the span at 30 days. Every
fetch therefore goes through a DateWindow produced here, and each endpoint
declares a WindowPolicy describing how its request bounds relate to the window
we actually want.

All calendar dates are Korea Standard Time (UTC+9, no DST).
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

KST = timezone(timedelta(hours=9), "KST")

# Naver sends one to three fractional digits; fromisoformat wants three or six
_FRACTION = re.compile(r"\.(\d{1,6})(?=[+-]\d{2}:?\d{2}$|$)")

T = TypeVar("T")


class Granularity(str, Enum):
    """How a calendar range is cut into fetch windows."""
    DAY = "day"
    DAY_STATUS = "day_status"


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar range, optionally scoped to one status."""
    start: date
    end: date
    status: Optional[str] = None

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        span = self.start.isoformat() if self.start == self.end else f"{self.start}..{self.end}"
        return f"{span}/{self.status}" if self.status else span


@dataclass(frozen=True)
class WindowPolicy:
    """
    Boundary behaviour of one endpoint.

    widen_days: extra days added to the upper request bound.
    filter_by_record_time: drop records whose own timestamp falls outside the window.
    """
    widen_days: int = 0
    filter_by_record_time: bool = True


# ==================== Date helpers ====================

def kst_now() -> datetime:
    return datetime.now(KST)


def kst_today() -> date:
    return kst_now().date()


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD (or YYYYMMDD)."""
    value = value.strip()
    if len(value) == 8 and value.isdigit():
        return datetime.strptime(value, "%Y%m%d").date()
    return date.fromisoformat(value[:10])


def to_kst(value: Any) -> Optional[datetime]:
    """
    Normalize a marketplace timestamp to an aware KST datetime.

    Accepts epoch milliseconds, ISO-8601 strings and datetimes. Naive values
    are taken to be KST already, which is what Coupang returns.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone(KST)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc).astimezone(KST)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0"), text)
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=KST)
    return parsed.astimezone(KST)


def date_range(start: date, end: date) -> List[date]:
    """Every calendar day from start to end, inclusive."""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def rolling_window(days_back: int, today: Optional[date] = None) -> Tuple[date, date]:
    """(today - days_back, today) in KST."""
    today = today or kst_today()
    return today - timedelta(days=days_back), today


# ==================== Partitioning ====================

def partition(
    start: date,
    end: date,
    granularity: Granularity = Granularity.DAY,
    statuses: Optional[Sequence[str]] = None,
    max_span_days: int = 1,
) -> List[DateWindow]:
    """
    Split [start, end] into ordered fetch windows.

    DAY yields consecutive windows of at most max_span_days days.
    DAY_STATUS yields one window per day and status, statuses in the given order.
    """
    if start > end:
        raise ValueError(f"Window start {start} is after end {end}")
    if max_span_days < 1:
        raise ValueError("max_span_days must be at least 1")

    if granularity == Granularity.DAY_STATUS:
        if not statuses:
            raise ValueError("DAY_STATUS partitioning needs at least one status")
        return [
            DateWindow(day, day, status)
            for day in date_range(start, end)
            for status in statuses
        ]

    windows = []
    cursor = start
    while cursor <= end:
        chunk_end = min(cursor + timedelta(days=max_span_days - 1), end)
        windows.append(DateWindow(cursor, chunk_end))
        cursor = chunk_end + timedelta(days=1)
    return windows


def request_bounds(window: DateWindow, policy: WindowPolicy) -> Tuple[date, date]:
    """Bounds to send to the API for this window."""
    return window.start, window.end + timedelta(days=policy.widen_days)


def filter_to_window(
    records: Iterable[T],
    window: DateWindow,
    timestamp_fn: Callable[[T], Any],
) -> List[T]:
    """
    Keep records whose own timestamp falls on a KST date inside the window.

    Records without a timestamp are kept; there is nothing to judge them by.
    """
    kept = []
    dropped = 0
    for record in records:
        stamp = to_kst(timestamp_fn(record))
        if stamp is None or window.contains(stamp.date()):
            kept.append(record)
        else:
            dropped += 1
    if dropped:
        logger.debug(f"Window {window}: dropped {dropped} records outside the boundary")
    return kept
