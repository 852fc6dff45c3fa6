from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional
from zoneinfo import ZoneInfo

from availability.calendar.base import (
    TimeInterval,
    get_zone,
    merge_intervals,
    parse_in_zone,
    subtract_intervals,
    to_interval,
    to_rfc3339,
)

SLOT_STEP = timedelta(minutes=30)
MIN_SLOTS_PER_DAY = 8


@dataclass(frozen=True)
class SlotOptions:
    """Shape of the candidate slots to generate.

    duration_minutes: length of every slot.
    min_buffer_minutes: gap kept free after each slot before busy time.
    day_start_hour / day_end_hour: local working hours, end exclusive.
    max_candidates: hard cap on the number of slots returned.
    """

    duration_minutes: int
    min_buffer_minutes: int = 5
    day_start_hour: int = 9
    day_end_hour: int = 18
    max_candidates: int = 30

    def __post_init__(self) -> None:
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        if self.min_buffer_minutes < 0:
            raise ValueError("min_buffer_minutes must not be negative")
        if not 0 <= self.day_start_hour < self.day_end_hour <= 24:
            raise ValueError(
                "day hours must satisfy 0 <= day_start_hour < day_end_hour <= 24"
            )
        if self.max_candidates <= 0:
            raise ValueError("max_candidates must be positive")

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.min_buffer_minutes)

    def to_params(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Slot:
    start_iso: str
    end_iso: str

    def to_dict(self) -> Dict[str, str]:
        return {"startISO": self.start_iso, "endISO": self.end_iso}


def build_day_intervals(
    window: TimeInterval, day_start_hour: int, day_end_hour: int
) -> list[TimeInterval]:
    """Working-hour intervals for every calendar day touched by ``window``."""
    days: list[TimeInterval] = []
    day = window.start.replace(hour=0, minute=0, second=0, microsecond=0)
    while day < window.end:
        clipped = TimeInterval(
            max(day + timedelta(hours=day_start_hour), window.start),
            min(day + timedelta(hours=day_end_hour), window.end),
        )
        if clipped.start < clipped.end:
            days.append(clipped)
        day += timedelta(days=1)
    return days


def _snap_to_half_hour(value: datetime) -> datetime:
    minute = 0 if value.minute <= 30 else 30
    return value.replace(minute=minute, second=0, microsecond=0)


def expand_free_intervals(
    free: Iterable[TimeInterval], options: SlotOptions
) -> list[Slot]:
    by_day: Dict[str, list[TimeInterval]] = {}
    for interval in free:
        by_day.setdefault(interval.start.date().isoformat(), []).append(interval)
    if not by_day:
        return []

    per_day = max(MIN_SLOTS_PER_DAY, options.max_candidates // len(by_day))
    duration = options.duration
    buffer = options.buffer
    slots: list[Slot] = []
    for intervals in by_day.values():
        day_count = 0
        for interval in intervals:
            if interval.length < duration + 2 * buffer:
                continue
            pointer = _snap_to_half_hour(interval.start + buffer)
            while pointer < interval.start:
                pointer += SLOT_STEP
            latest_start = interval.end - duration - buffer
            while (
                pointer <= latest_start
                and day_count < per_day
                and len(slots) < options.max_candidates
            ):
                slots.append(Slot(to_rfc3339(pointer), to_rfc3339(pointer + duration)))
                day_count += 1
                pointer += SLOT_STEP
            if len(slots) >= options.max_candidates:
                break
        if len(slots) >= options.max_candidates:
            break
    return slots


def compute_free_slots(
    busy_windows: Iterable[Dict[str, str]],
    time_min_iso: str,
    time_max_iso: str,
    time_zone: str,
    options: SlotOptions,
    zone: Optional[ZoneInfo] = None,
) -> list[Slot]:
    zone = zone or get_zone(time_zone)
    window = TimeInterval(
        parse_in_zone(time_min_iso, zone), parse_in_zone(time_max_iso, zone)
    )
    if window.start >= window.end:
        return []

    busy = merge_intervals(
        interval
        for interval in (to_interval(window_dict, zone) for window_dict in busy_windows)
        if interval is not None
    )
    free = [
        interval
        for day in build_day_intervals(window, options.day_start_hour, options.day_end_hour)
        for interval in subtract_intervals(day, busy)
    ]
    return expand_free_intervals(free, options)
