"""Tests for the logging setup and the ambient context filter."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from logctx import bind_meta, extra, string, with_meta
from logctx.config import get_settings
from logctx.log import (
    ContextFilter,
    DailyFileHandler,
    get_logger,
    init_logging,
    set_level,
    shutdown_logging,
)
from logctx.meta import Meta


@pytest.fixture(autouse=True)
def _reset_logging() -> None:
    shutdown_logging()
    yield
    shutdown_logging()


def _read_entries(directory: Path) -> list[dict]:
    (path,) = directory.glob("*.jsonl")
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def _record(**attrs: object) -> logging.LogRecord:
    record = logging.LogRecord("logctx.tests", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_filter_adds_ambient_metadata() -> None:
    record = _record()

    with bind_meta(user_id="u1", request_id="r1"):
        assert ContextFilter().filter(record) is True

    assert record.context == {"user_id": "u1", "request_id": "r1"}
    assert set(record.context_text.split()) == {"user_id=u1", "request_id=r1"}


def test_filter_without_metadata_leaves_record_plain() -> None:
    record = _record()

    assert ContextFilter().filter(record) is True

    assert record.context_text == ""
    assert not hasattr(record, "context")


def test_filter_keeps_explicit_context_field() -> None:
    record = _record(context=Meta(user_id="explicit"))

    with bind_meta(user_id="ambient"):
        ContextFilter().filter(record)

    assert record.context == {"user_id": "explicit"}
    assert record.context_text == "user_id=explicit "


def test_filter_runs_once_per_record() -> None:
    record = _record()
    with bind_meta(user_id="u1"):
        ContextFilter().filter(record)
    ContextFilter().filter(record)

    assert record.context == {"user_id": "u1"}
    assert record.context_text == "user_id=u1 "


def test_json_file_output_carries_ambient_metadata(tmp_path: Path) -> None:
    init_logging(console=False, queue=False, json=True, log_dir=tmp_path, level="DEBUG")
    logger = get_logger("logctx.tests.setup")

    with bind_meta(user_id="u1"):
        logger.info("inside", extra={"action": "signup", "event": "raw"})
    logger.info("outside")
    shutdown_logging()

    inside, outside = _read_entries(tmp_path)
    assert inside["msg"] == "inside"
    assert inside["action"] == "signup"
    assert inside["field_event"] == "raw"
    assert inside["context"] == {"user_id": "u1"}
    assert "context" not in outside


def test_queue_listener_keeps_emitting_thread_metadata(tmp_path: Path) -> None:
    init_logging(console=False, queue=True, json=True, log_dir=tmp_path)
    logger = get_logger("logctx.tests.queue")
    ctx = with_meta(None, {"deal_id": "xyz"})

    with bind_meta(user_id="u1"):
        logger.info("queued")
    logger.info("explicit", extra=extra(ctx, string("step", "2")))
    shutdown_logging()

    queued, explicit = _read_entries(tmp_path)
    assert queued["context"] == {"user_id": "u1"}
    assert explicit["context"] == {"deal_id": "xyz"}
    assert explicit["step"] == "2"


def test_level_filters_file_output(tmp_path: Path) -> None:
    init_logging(console=False, queue=False, json=True, log_dir=tmp_path, level="WARNING")
    logger = get_logger("logctx.tests.level")

    logger.info("dropped")
    logger.warning("kept")
    shutdown_logging()

    (entry,) = _read_entries(tmp_path)
    assert entry["msg"] == "kept"


def test_text_file_output_prefixes_metadata(tmp_path: Path) -> None:
    init_logging(console=False, queue=False, json=False, log_dir=tmp_path)
    logger = get_logger("logctx.tests.text")

    with bind_meta(request_id="r1"):
        logger.info("handled")
    shutdown_logging()

    (path,) = tmp_path.glob("*.log")
    line = path.read_text(encoding="utf-8").strip()
    assert line.endswith("| request_id=r1 handled")


def test_queued_json_output_keeps_exception(tmp_path: Path) -> None:
    init_logging(console=False, queue=True, json=True, log_dir=tmp_path)
    logger = get_logger("logctx.tests.queue_exc")

    try:
        raise ValueError("bad value")
    except ValueError:
        logger.exception("failed %s", "twice")
    shutdown_logging()

    (entry,) = _read_entries(tmp_path)
    assert entry["level"] == "error"
    assert entry["msg"] == "failed twice"
    assert "ValueError: bad value" in entry["exception"]


@pytest.mark.parametrize("queue", [True, False])
def test_set_level_reaches_every_sink(tmp_path: Path, queue: bool) -> None:
    init_logging(console=False, queue=queue, json=True, log_dir=tmp_path, level="INFO")
    logger = get_logger("logctx.tests.set_level")

    logger.debug("hidden")
    set_level("DEBUG")
    logger.debug("shown")
    shutdown_logging()

    assert [entry["msg"] for entry in _read_entries(tmp_path)] == ["shown"]


def test_daily_file_handler_switches_file_on_new_day(tmp_path: Path) -> None:
    handler = DailyFileHandler(tmp_path)
    handler.setFormatter(logging.Formatter("%(message)s"))
    today = _record(msg="today")
    tomorrow = _record(msg="tomorrow")
    tomorrow.created = (datetime.now() + timedelta(days=1)).timestamp()

    handler.handle(today)
    handler.handle(tomorrow)
    handler.close()

    first, second = sorted(tmp_path.glob("*.log"))
    assert first.read_text(encoding="utf-8") == "today\n"
    assert second.read_text(encoding="utf-8") == "tomorrow\n"
    assert second.name == datetime.fromtimestamp(tomorrow.created).strftime("%Y_%m_%d.log")


def test_get_logger_configures_from_settings(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("LOGCTX_APP_NAME", "billing")
    monkeypatch.setenv("LOGCTX_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOGCTX_JSON", "1")
    monkeypatch.setenv("LOGCTX_CONSOLE", "0")
    monkeypatch.setenv("LOGCTX_QUEUE", "0")
    get_settings.cache_clear()

    try:
        logger = get_logger()
        with bind_meta(user_id="u1"):
            logger.info("configured")
        shutdown_logging()
    finally:
        get_settings.cache_clear()

    assert logger.name == "billing"
    (entry,) = _read_entries(tmp_path)
    assert entry["context"] == {"user_id": "u1"}
