import time

import pytest
from botocore.exceptions import ClientError

from availability import secrets


class FakeSecretsClient:
    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def get_secret_value(self, SecretId):
        self.calls.append(SecretId)
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return {"SecretString": value}


@pytest.fixture(autouse=True)
def _isolated_cache(monkeypatch):
    secrets.clear_secret_cache()
    monkeypatch.setattr(secrets, "emit_metric", lambda *args, **kwargs: None)
    yield
    secrets.clear_secret_cache()


def _use_client(monkeypatch, client):
    monkeypatch.setattr(secrets, "get_secretsmanager_client", lambda: client)


def test_cache_hit_skips_secrets_manager(monkeypatch):
    secrets._SECRET_CACHE["oauth-client"] = ("cached", time.time() - 5)

    def fail_client():
        raise AssertionError("Secrets Manager should not be called on cache hit")

    monkeypatch.setattr(secrets, "get_secretsmanager_client", fail_client)

    assert secrets.get_secret_cached("oauth-client", ttl_seconds=10) == "cached"


def test_cache_miss_fetches_once(monkeypatch):
    client = FakeSecretsClient(["fresh"])
    _use_client(monkeypatch, client)

    assert secrets.get_secret_cached("oauth-client") == "fresh"
    assert secrets.get_secret_cached("oauth-client") == "fresh"
    assert client.calls == ["oauth-client"]


def test_ttl_expiry_refetches(monkeypatch):
    client = FakeSecretsClient(["value-1"])
    _use_client(monkeypatch, client)
    secrets._SECRET_CACHE["oauth-client"] = ("stale", time.time() - 100)

    assert secrets.get_secret_cached("oauth-client", ttl_seconds=1) == "value-1"


def test_client_error_is_logged_and_raised(monkeypatch):
    log_calls = []
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "GetSecretValue")
    _use_client(monkeypatch, FakeSecretsClient([error]))
    monkeypatch.setattr(secrets, "log_json", lambda *args, **kwargs: log_calls.append(kwargs))

    with pytest.raises(ClientError):
        secrets.get_secret_cached("oauth-client")

    assert log_calls[-1]["aws_error_code"] == "AccessDenied"


def test_empty_secret_string_raises(monkeypatch):
    _use_client(monkeypatch, FakeSecretsClient([""]))

    with pytest.raises(ValueError, match="SecretString is empty"):
        secrets.get_secret_cached("oauth-client")


def test_get_json_secret_parses_documents(monkeypatch):
    _use_client(monkeypatch, FakeSecretsClient(['{"refresh_token": "abc"}']))

    assert secrets.get_json_secret("oauth-user") == {"refresh_token": "abc"}


def test_get_json_secret_rejects_invalid_json(monkeypatch):
    _use_client(monkeypatch, FakeSecretsClient(["not json"]))

    with pytest.raises(ValueError, match="not valid JSON"):
        secrets.get_json_secret("oauth-user")


def test_get_json_secret_wraps_fetch_failures(monkeypatch):
    _use_client(monkeypatch, FakeSecretsClient([RuntimeError("timeout")]))

    with pytest.raises(ValueError, match="Missing secret: oauth-user"):
        secrets.get_json_secret("oauth-user")
