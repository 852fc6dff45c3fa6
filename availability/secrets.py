import json
import time
from typing import Any, Dict, Tuple

from botocore.exceptions import ClientError

from availability.aws_clients import get_secretsmanager_client
from availability.observability import emit_metric, elapsed_ms, get_logger, log_json

logger = get_logger(__name__)

_SECRET_CACHE: Dict[str, Tuple[str, float]] = {}


def _fetch_secret(secret_name: str) -> str:
    client = get_secretsmanager_client()
    fetch_start = time.time()
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except Exception as exc:
        error_code = ""
        if isinstance(exc, ClientError):
            error_code = exc.response.get("Error", {}).get("Code", "")
        emit_metric("SecretFetchFailure", 1)
        log_json(
            logger,
            "warning",
            "secret_fetch_fail",
            secret_name=secret_name,
            duration_ms=elapsed_ms(fetch_start),
            error_type=type(exc).__name__,
            error_message=str(exc),
            aws_error_code=error_code,
        )
        raise
    secret_value = response.get("SecretString")
    if not secret_value:
        emit_metric("SecretFetchFailure", 1)
        log_json(
            logger,
            "warning",
            "secret_fetch_fail",
            secret_name=secret_name,
            duration_ms=elapsed_ms(fetch_start),
            error_type="ValueError",
            error_message="SecretString is empty",
            aws_error_code="",
        )
        raise ValueError("SecretString is empty")
    emit_metric("SecretFetchSuccess", 1)
    log_json(
        logger,
        "info",
        "secret_fetch_ok",
        secret_name=secret_name,
        duration_ms=elapsed_ms(fetch_start),
    )
    return secret_value


def get_secret_cached(secret_name: str, *, ttl_seconds: int = 900) -> str:
    now = time.time()
    cache_entry = _SECRET_CACHE.get(secret_name)
    if cache_entry:
        cached_value, cached_at = cache_entry
        if now - cached_at < ttl_seconds:
            log_json(
                logger,
                "debug",
                "secret_cache_hit",
                secret_name=secret_name,
                cache_age_ms=int((now - cached_at) * 1000),
            )
            return cached_value

    secret_value = _fetch_secret(secret_name)
    _SECRET_CACHE[secret_name] = (secret_value, time.time())
    log_json(logger, "debug", "secret_cache_miss", secret_name=secret_name)
    return secret_value


def get_json_secret(secret_name: str) -> Dict[str, Any]:
    try:
        secret_value = get_secret_cached(secret_name)
    except Exception as exc:
        raise ValueError(f"Missing secret: {secret_name}") from exc
    try:
        return json.loads(secret_value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Secret {secret_name} is not valid JSON") from exc


def clear_secret_cache() -> None:
    _SECRET_CACHE.clear()
