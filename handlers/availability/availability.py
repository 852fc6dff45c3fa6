import asyncio
import json
from typing import Any, Dict, Optional

from availability.calendar.errors import CalendarError
from availability.calendar.registry import get_service
from availability.calendar.service import CalendarAvailabilityService
from availability.config import CalendarSettings
from availability.observability import get_logger, log_exception, log_json

logger = get_logger(__name__)

_SETTINGS: Optional[CalendarSettings] = None
_SERVICE: Optional[CalendarAvailabilityService] = None
_LOOP: Optional[asyncio.AbstractEventLoop] = None

_SLOT_OPTION_FIELDS = {
    "minBufferMinutes": "min_buffer_minutes",
    "dayStartHour": "day_start_hour",
    "dayEndHour": "day_end_hour",
    "maxCandidates": "max_candidates",
}


def _get_settings() -> CalendarSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = CalendarSettings.from_env()
    return _SETTINGS


def _get_service() -> CalendarAvailabilityService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = get_service(_get_settings())
    return _SERVICE


def _run(coro):
    # The service's HTTP client is bound to the loop it first ran on.
    global _LOOP
    if _LOOP is None or _LOOP.is_closed():
        _LOOP = asyncio.new_event_loop()
    return _LOOP.run_until_complete(coro)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    try:
        payload = _parse_body(event)
        action = payload.get("action")
        log_json(logger, "info", "availability_request", action=action)
        result = _dispatch(action, payload)
    except ValueError as exc:
        log_exception(logger, "availability_bad_request", error_message=str(exc))
        return _response(400, {"error": str(exc)})
    except CalendarError as exc:
        log_exception(
            logger,
            "availability_upstream_error",
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        return _response(502, {"error": str(exc)})
    return _response(200, result)


def _dispatch(action: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    service = _get_service()
    if action == "free_slots":
        options = {
            field: _int_field(payload, key)
            for key, field in _SLOT_OPTION_FIELDS.items()
            if payload.get(key) is not None
        }
        slots = _run(
            service.get_free_slots(
                _required(payload, "timeMin"),
                _required(payload, "timeMax"),
                _time_zone(payload),
                _int_field(payload, "durationMinutes"),
                **options,
            )
        )
        return {"slots": [slot.to_dict() for slot in slots]}
    if action == "busy_windows":
        busy = _run(
            service.get_busy_windows(
                _required(payload, "timeMin"),
                _required(payload, "timeMax"),
                _time_zone(payload),
            )
        )
        return {"busy": busy}
    if action == "book":
        created = _run(
            service.create_calendar_event_with_meet(
                _required(payload, "startISO"),
                _required(payload, "endISO"),
                _time_zone(payload),
                _required(payload, "summary"),
                _required(payload, "attendeeEmail"),
                description=payload.get("description"),
                attendee_name=payload.get("attendeeName"),
                send_updates=payload.get("sendUpdates", "all"),
            )
        )
        return created.to_dict()
    if action == "cache_stats":
        return service.get_cache_stats()
    if action == "clear_cache":
        service.clear_calendar_cache()
        return {"cleared": True}
    raise ValueError(f"Unknown action: {action}")


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    body = event.get("body", event)
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ValueError("Request body is not valid JSON") from exc
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def _required(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not value:
        raise ValueError(f"{key} is required")
    return value


def _int_field(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None:
        raise ValueError(f"{key} is required")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be an integer") from exc


def _time_zone(payload: Dict[str, Any]) -> str:
    return payload.get("timeZone") or _get_settings().default_time_zone


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
