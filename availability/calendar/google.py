from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from availability.calendar.base import AuthProvider
from availability.observability import elapsed_ms, get_logger, log_json
from availability.secrets import get_json_secret

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class GoogleOAuthTokenProvider:
    """Access tokens minted from a stored refresh token.

    The OAuth client and the user's refresh token live in Secrets Manager as
    JSON documents. A token is reused until shortly before it expires.
    """

    def __init__(
        self,
        *,
        client_secret_name: str,
        user_secret_name: str,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_secret_name = client_secret_name
        self._user_secret_name = user_secret_name
        self._http = http_client
        self._clock = clock
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    async def get_access_token(self) -> str:
        if self._access_token and self._clock() < self._expires_at - TOKEN_EXPIRY_MARGIN_SECONDS:
            return self._access_token

        client_secret = await asyncio.to_thread(get_json_secret, self._client_secret_name)
        client_id = client_secret.get("client_id")
        client_secret_value = client_secret.get("client_secret")
        if not client_id or not client_secret_value:
            raise ValueError("Client secret missing client_id or client_secret")

        user_secret = await asyncio.to_thread(get_json_secret, self._user_secret_name)
        refresh_token = user_secret.get("refresh_token")
        if not refresh_token:
            raise ValueError("User secret missing refresh_token")

        response = await self._http.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret_value,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        payload = _decode_response(response, "Google OAuth")
        access_token = payload.get("access_token")
        if not access_token:
            raise ValueError("Token response missing access_token")
        self._access_token = access_token
        self._expires_at = self._clock() + float(payload.get("expires_in", 3600))
        log_json(logger, "info", "google_oauth_token_refreshed", expires_in=payload.get("expires_in"))
        return access_token


class GoogleCalendarApi:
    def __init__(
        self,
        auth: AuthProvider,
        http_client: httpx.AsyncClient,
        base_url: str = GOOGLE_CALENDAR_API,
    ) -> None:
        self._auth = auth
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    async def freebusy_query(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("/freeBusy", body)

    async def insert_event(
        self,
        calendar_id: str,
        body: Dict[str, Any],
        *,
        conference_data_version: int,
        send_updates: str,
    ) -> Dict[str, Any]:
        return await self._request(
            f"/calendars/{quote(calendar_id, safe='')}/events",
            body,
            params={
                "conferenceDataVersion": conference_data_version,
                "sendUpdates": send_updates,
            },
        )

    async def _request(
        self,
        path: str,
        body: Dict[str, Any],
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        access_token = await self._auth.get_access_token()
        request_start = time.time()
        response = await self._http.post(
            f"{self._base_url}{path}",
            json=body,
            params=params,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        log_json(
            logger,
            "debug",
            "google_calendar_response",
            path=path,
            status_code=response.status_code,
            duration_ms=elapsed_ms(request_start),
            body_prefix=_truncate_body(response.content),
        )
        return _decode_response(response, "Google Calendar API")


def _decode_response(response: httpx.Response, label: str) -> Dict[str, Any]:
    if response.status_code < 200 or response.status_code >= 300:
        raise ValueError(
            f"{label} error {response.status_code}: {_truncate_body(response.content, 256)}"
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise ValueError(f"Invalid JSON response from {label}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected response shape from {label}")
    return payload


def _truncate_body(body: bytes, limit: int = 2000) -> str:
    return body.decode(errors="replace")[:limit]
