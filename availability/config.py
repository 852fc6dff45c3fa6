from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIME_ZONE = "America/New_York"


@dataclass(frozen=True)
class CalendarSettings:
    calendar_id: str = DEFAULT_CALENDAR_ID
    provider: str = "google"
    client_secret_name: Optional[str] = None
    user_secret_name: Optional[str] = None
    http_timeout_seconds: float = 10.0
    default_time_zone: str = DEFAULT_TIME_ZONE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CalendarSettings":
        env = os.environ if environ is None else environ
        timeout_value = env.get("CALENDAR_HTTP_TIMEOUT_SECONDS", "10")
        try:
            http_timeout_seconds = float(timeout_value)
        except ValueError as exc:
            raise ValueError(
                f"CALENDAR_HTTP_TIMEOUT_SECONDS is not a number: {timeout_value}"
            ) from exc
        return cls(
            calendar_id=env.get("GOOGLE_CALENDAR_ID") or DEFAULT_CALENDAR_ID,
            provider=env.get("CALENDAR_PROVIDER", "google").lower(),
            client_secret_name=env.get("GOOGLE_OAUTH_CLIENT_SECRET_NAME"),
            user_secret_name=env.get("GOOGLE_OAUTH_USER_SECRET_NAME"),
            http_timeout_seconds=http_timeout_seconds,
            default_time_zone=env.get("DEFAULT_TIME_ZONE") or DEFAULT_TIME_ZONE,
        )

    def require_google_secrets(self) -> tuple[str, str]:
        if not self.client_secret_name:
            raise ValueError("GOOGLE_OAUTH_CLIENT_SECRET_NAME is not set")
        if not self.user_secret_name:
            raise ValueError("GOOGLE_OAUTH_USER_SECRET_NAME is not set")
        return self.client_secret_name, self.user_secret_name
