import json
import logging
import time

from availability import observability


def test_get_logger_respects_log_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    logger = observability.get_logger("test-logger")
    assert logger.level == logging.DEBUG


def test_log_json_emits_payload(caplog):
    logger = logging.getLogger("observability-test")
    logger.setLevel(logging.INFO)
    with caplog.at_level(logging.INFO):
        observability.log_json(logger, "warning", "hello", foo="bar", when=time)

    record = caplog.records[-1]
    payload = json.loads(record.message)
    assert record.levelno == logging.WARNING
    assert payload["msg"] == "hello"
    assert payload["foo"] == "bar"


def test_log_json_unknown_level_falls_back_to_info(caplog):
    logger = logging.getLogger("observability-test")
    logger.setLevel(logging.INFO)
    with caplog.at_level(logging.INFO):
        observability.log_json(logger, "chatty", "hello")

    assert caplog.records[-1].levelno == logging.INFO


def test_log_exception_includes_traceback(caplog):
    logger = logging.getLogger("observability-test")
    with caplog.at_level(logging.ERROR):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            observability.log_exception(logger, "failed", step="fetch")

    record = caplog.records[-1]
    assert record.exc_info is not None
    assert json.loads(record.message) == {"msg": "failed", "step": "fetch"}


def test_emit_metric_prints_emf(capsys, monkeypatch):
    monkeypatch.setenv("STAGE", "dev")
    observability.emit_metric("CalendarCacheHit", 1, unit="Count", dims={"Cache": "free_slots"})
    metric = json.loads(capsys.readouterr().out.strip())

    assert metric["CalendarCacheHit"] == 1
    assert metric["Stage"] == "dev"
    assert metric["Cache"] == "free_slots"
    directive = metric["_aws"]["CloudWatchMetrics"][0]
    assert directive["Namespace"] == "CalendarAvailability"
    assert directive["Dimensions"] == [["Stage", "Cache"]]


def test_elapsed_ms_returns_int():
    start = time.time()
    time.sleep(0.001)
    elapsed = observability.elapsed_ms(start)
    assert isinstance(elapsed, int)
    assert elapsed >= 0
