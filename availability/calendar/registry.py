from __future__ import annotations

from typing import Callable, Dict, Optional

import httpx

from availability.calendar.cache import CalendarCache
from availability.calendar.google import GoogleCalendarApi, GoogleOAuthTokenProvider
from availability.calendar.service import CalendarAvailabilityService
from availability.config import CalendarSettings


def _build_google(settings: CalendarSettings) -> CalendarAvailabilityService:
    client_secret_name, user_secret_name = settings.require_google_secrets()
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    auth = GoogleOAuthTokenProvider(
        client_secret_name=client_secret_name,
        user_secret_name=user_secret_name,
        http_client=http_client,
    )
    return CalendarAvailabilityService(
        GoogleCalendarApi(auth, http_client),
        auth,
        calendar_id=settings.calendar_id,
        cache=CalendarCache(),
    )


_PROVIDERS: Dict[str, Callable[[CalendarSettings], CalendarAvailabilityService]] = {
    "google": _build_google,
}


def get_service(settings: Optional[CalendarSettings] = None) -> CalendarAvailabilityService:
    settings = settings or CalendarSettings.from_env()
    builder = _PROVIDERS.get(settings.provider)
    if not builder:
        raise ValueError(f"Unknown calendar provider: {settings.provider}")
    return builder(settings)
