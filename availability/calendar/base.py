from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MAX_QUERY_RANGE_DAYS = 30


class CalendarApi(Protocol):
    async def freebusy_query(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Run a freeBusy query and return the raw response payload."""

    async def insert_event(
        self,
        calendar_id: str,
        body: Dict[str, Any],
        *,
        conference_data_version: int,
        send_updates: str,
    ) -> Dict[str, Any]:
        """Insert an event and return the created event resource."""


class AuthProvider(Protocol):
    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing it when needed."""


@dataclass(frozen=True)
class TimeInterval:
    start: datetime
    end: datetime

    @property
    def is_valid(self) -> bool:
        return self.start <= self.end

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def abuts_start(self, other: "TimeInterval") -> bool:
        return self.end == other.start


def parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def to_rfc3339(value: datetime) -> str:
    return value.isoformat()


def get_zone(time_zone: str) -> ZoneInfo:
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {time_zone}") from exc


def parse_in_zone(value: str, zone: ZoneInfo) -> datetime:
    """Parse an ISO timestamp and express it in ``zone``.

    Timestamps without an offset are read as wall-clock time in ``zone``.
    """
    parsed = parse_rfc3339(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed.astimezone(zone)


def to_interval(window: Dict[str, str], zone: ZoneInfo) -> Optional[TimeInterval]:
    try:
        interval = TimeInterval(
            parse_in_zone(window["start"], zone),
            parse_in_zone(window["end"], zone),
        )
    except (AttributeError, KeyError, TypeError, ValueError):
        return None
    return interval if interval.is_valid else None


def merge_intervals(intervals: Iterable[TimeInterval]) -> list[TimeInterval]:
    """Collapse overlapping, nested and touching intervals.

    Invalid intervals are dropped; the result is sorted and disjoint.
    """
    ordered = sorted(
        (interval for interval in intervals if interval.is_valid),
        key=lambda interval: interval.start,
    )
    merged: list[TimeInterval] = []
    for interval in ordered:
        if not merged:
            merged.append(interval)
            continue
        last = merged[-1]
        if (
            last.overlaps(interval)
            or last.contains(interval)
            or interval.contains(last)
            or last.abuts_start(interval)
        ):
            merged[-1] = TimeInterval(
                min(last.start, interval.start), max(last.end, interval.end)
            )
        else:
            merged.append(interval)
    return merged


def subtract_intervals(
    span: TimeInterval, busy: Iterable[TimeInterval]
) -> list[TimeInterval]:
    """Return the parts of ``span`` not covered by ``busy``.

    ``busy`` must be sorted and disjoint, as produced by ``merge_intervals``.
    """
    free: list[TimeInterval] = []
    cursor = span.start
    for interval in busy:
        if interval.end <= span.start or interval.start >= span.end:
            continue
        overlap = TimeInterval(max(interval.start, span.start), min(interval.end, span.end))
        if not overlap.is_valid:
            continue
        if cursor < overlap.start:
            free.append(TimeInterval(cursor, overlap.start))
        cursor = max(cursor, overlap.end)
    if cursor < span.end:
        free.append(TimeInterval(cursor, span.end))
    return free


def clamp_time_range(
    time_min_iso: str,
    time_max_iso: str,
    zone: ZoneInfo,
    max_days: int = MAX_QUERY_RANGE_DAYS,
) -> tuple[str, str]:
    """Limit a query range to ``max_days`` from its start.

    Ranges within the limit are returned untouched.
    """
    start = parse_in_zone(time_min_iso, zone)
    end = parse_in_zone(time_max_iso, zone)
    if end - start > timedelta(days=max_days):
        return to_rfc3339(start), to_rfc3339(start + timedelta(days=max_days))
    return time_min_iso, time_max_iso
