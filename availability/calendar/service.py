from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from availability.calendar.base import (
    MAX_QUERY_RANGE_DAYS,
    AuthProvider,
    CalendarApi,
    clamp_time_range,
    get_zone,
    parse_in_zone,
)
from availability.calendar.cache import (
    BUSY_WINDOWS_TTL_SECONDS,
    FREE_SLOTS_TTL_SECONDS,
    CalendarCache,
)
from availability.calendar.errors import (
    ComputationError,
    EventCreationError,
    UpstreamFetchError,
    is_tls_error,
)
from availability.calendar.slots import Slot, SlotOptions, compute_free_slots
from availability.config import DEFAULT_CALENDAR_ID
from availability.observability import elapsed_ms, emit_metric, get_logger, log_json

SEND_UPDATES_VALUES = ("all", "externalOnly", "none")


@dataclass(frozen=True)
class CreatedEvent:
    event_id: str
    html_link: str
    meet_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"eventId": self.event_id, "htmlLink": self.html_link, "meetUrl": self.meet_url}


class CalendarAvailabilityService:
    """Free/busy lookups, slot synthesis and Meet bookings for one calendar.

    Busy windows and slot lists are cached in the injected ``CalendarCache``.
    Failures are always raised; no placeholder availability is ever returned.
    """

    def __init__(
        self,
        api: CalendarApi,
        auth: AuthProvider,
        *,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        cache: Optional[CalendarCache] = None,
        logger: Optional[logging.Logger] = None,
        max_range_days: int = MAX_QUERY_RANGE_DAYS,
    ) -> None:
        self.api = api
        self.auth = auth
        self.calendar_id = calendar_id
        self.cache = cache if cache is not None else CalendarCache()
        self.logger = logger or get_logger(__name__)
        self.max_range_days = max_range_days

    async def get_busy_windows(
        self, time_min_iso: str, time_max_iso: str, time_zone: str
    ) -> list[Dict[str, str]]:
        zone = get_zone(time_zone)
        if parse_in_zone(time_min_iso, zone) > parse_in_zone(time_max_iso, zone):
            raise ValueError("time_min_iso must not be after time_max_iso")

        range_min, range_max = clamp_time_range(
            time_min_iso, time_max_iso, zone, self.max_range_days
        )
        if (range_min, range_max) != (time_min_iso, time_max_iso):
            log_json(
                self.logger,
                "info",
                "calendar_range_clamped",
                requested_min=time_min_iso,
                requested_max=time_max_iso,
                clamped_max=range_max,
                max_days=self.max_range_days,
            )

        cache_key = self.cache.key(
            "busy_windows",
            {"timeMinISO": range_min, "timeMaxISO": range_max, "timeZone": time_zone},
        )
        cached = self.cache.get(cache_key)
        if cached is not None:
            self._record_cache("busy_windows", hit=True, key=cache_key)
            return cached
        self._record_cache("busy_windows", hit=False, key=cache_key)

        log_json(
            self.logger,
            "info",
            "calendar_freebusy_request",
            calendar_id=self.calendar_id,
            time_min=range_min,
            time_max=range_max,
            time_zone=time_zone,
        )
        query_start = time.time()
        try:
            response = await self.api.freebusy_query(
                {
                    "timeMin": range_min,
                    "timeMax": range_max,
                    "timeZone": time_zone,
                    "items": [{"id": self.calendar_id}],
                    "groupExpansionMax": 1,
                    "calendarExpansionMax": 1,
                }
            )
            busy = self._normalize_busy(response)
        except Exception as exc:
            self._log_failure(
                "calendar_busy_windows_fetch_fail",
                exc,
                duration_ms=elapsed_ms(query_start),
                time_min=time_min_iso,
                time_max=time_max_iso,
            )
            raise UpstreamFetchError(f"Failed to fetch busy windows: {exc}") from exc

        duration_ms = elapsed_ms(query_start)
        emit_metric("FreeBusyQueryDurationMs", duration_ms, "Milliseconds")
        log_json(
            self.logger,
            "info",
            "calendar_freebusy_response",
            count=len(busy),
            duration_ms=duration_ms,
        )
        self.cache.set(cache_key, busy, BUSY_WINDOWS_TTL_SECONDS)
        return busy

    async def get_free_slots(
        self,
        time_min_iso: str,
        time_max_iso: str,
        time_zone: str,
        duration_minutes: Optional[int] = None,
        *,
        options: Optional[SlotOptions] = None,
        **option_overrides: int,
    ) -> list[Slot]:
        if options is None:
            if duration_minutes is None:
                raise ValueError("duration_minutes is required")
            options = SlotOptions(duration_minutes=duration_minutes, **option_overrides)
        elif duration_minutes is not None or option_overrides:
            raise ValueError("Pass either options or individual slot settings, not both")
        zone = get_zone(time_zone)

        cache_key = self.cache.key(
            "free_slots",
            {
                "timeMinISO": time_min_iso,
                "timeMaxISO": time_max_iso,
                "timeZone": time_zone,
                **options.to_params(),
            },
        )
        cached = self.cache.get(cache_key)
        if cached is not None:
            self._record_cache("free_slots", hit=True, key=cache_key)
            return cached
        self._record_cache("free_slots", hit=False, key=cache_key)

        busy = await self.get_busy_windows(time_min_iso, time_max_iso, time_zone)
        # Slots stop where the fetched busy data stops.
        range_min, range_max = clamp_time_range(
            time_min_iso, time_max_iso, zone, self.max_range_days
        )

        compute_start = time.time()
        try:
            slots = compute_free_slots(
                busy, range_min, range_max, time_zone, options, zone=zone
            )
        except Exception as exc:
            self._log_failure("calendar_free_slots_compute_fail", exc, busy_count=len(busy))
            raise ComputationError(f"Failed to compute free slots: {exc}") from exc

        emit_metric("FreeSlotsComputed", len(slots))
        log_json(
            self.logger,
            "info",
            "calendar_free_slots_computed",
            busy_count=len(busy),
            count=len(slots),
            duration_ms=elapsed_ms(compute_start),
            **options.to_params(),
        )
        self.cache.set(cache_key, slots, FREE_SLOTS_TTL_SECONDS)
        return slots

    async def create_calendar_event_with_meet(
        self,
        start_iso: str,
        end_iso: str,
        time_zone: str,
        summary: str,
        attendee_email: str,
        *,
        description: Optional[str] = None,
        attendee_name: Optional[str] = None,
        send_updates: str = "all",
    ) -> CreatedEvent:
        if send_updates not in SEND_UPDATES_VALUES:
            raise ValueError(f"send_updates must be one of {', '.join(SEND_UPDATES_VALUES)}")

        attendee: Dict[str, str] = {"email": attendee_email}
        if attendee_name:
            attendee["displayName"] = attendee_name
        body: Dict[str, Any] = {
            "summary": summary,
            "location": "Google Meet",
            "start": {"dateTime": start_iso, "timeZone": time_zone},
            "end": {"dateTime": end_iso, "timeZone": time_zone},
            "attendees": [attendee],
            "conferenceData": {
                "createRequest": {
                    "requestId": str(uuid.uuid4()),
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
        }
        if description is not None:
            body["description"] = description

        try:
            await self.auth.get_access_token()
            event = await self.api.insert_event(
                self.calendar_id,
                body,
                conference_data_version=1,
                send_updates=send_updates,
            )
        except Exception as exc:
            self._log_failure(
                "calendar_event_create_fail", exc, start=start_iso, end=end_iso
            )
            raise EventCreationError(f"Failed to create calendar event: {exc}") from exc

        created = CreatedEvent(
            event_id=event.get("id", ""),
            html_link=event.get("htmlLink", ""),
            meet_url=_meet_url(event),
        )
        log_json(
            self.logger,
            "info",
            "calendar_event_created",
            event_id=created.event_id,
            has_meet_url=bool(created.meet_url),
        )
        return created

    def clear_calendar_cache(self) -> None:
        self.cache.clear()
        log_json(self.logger, "info", "calendar_cache_cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def _normalize_busy(self, response: Dict[str, Any]) -> list[Dict[str, str]]:
        calendar = (response.get("calendars") or {}).get(self.calendar_id) or {}
        errors = calendar.get("errors")
        if errors:
            reasons = ", ".join(str(error.get("reason", error)) for error in errors)
            raise ValueError(f"Calendar {self.calendar_id} returned errors: {reasons}")
        return [
            {"start": window["start"], "end": window["end"]}
            for window in calendar.get("busy") or []
        ]

    def _record_cache(self, cache_name: str, *, hit: bool, key: str) -> None:
        emit_metric("CalendarCacheHit" if hit else "CalendarCacheMiss", 1, dims={"Cache": cache_name})
        log_json(
            self.logger,
            "debug",
            "calendar_cache_hit" if hit else "calendar_cache_miss",
            cache=cache_name,
            key=key,
        )

    def _log_failure(self, msg: str, exc: Exception, **fields: Any) -> None:
        log_json(
            self.logger,
            "error",
            msg,
            error_type=type(exc).__name__,
            error_message=str(exc),
            calendar_id=self.calendar_id,
            **fields,
        )
        if is_tls_error(exc):
            log_json(self.logger, "warning", "calendar_tls_error_detected", source=msg)


def _meet_url(event: Dict[str, Any]) -> str:
    entry_points = (event.get("conferenceData") or {}).get("entryPoints") or []
    for entry_point in entry_points:
        if entry_point.get("entryPointType") == "video" and entry_point.get("uri"):
            return entry_point["uri"]
    return event.get("hangoutLink") or ""

