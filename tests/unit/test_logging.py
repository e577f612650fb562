"""Tests for structured logging setup."""

import json
import logging
import os
import time

import pytest
import structlog

from hybridsearch.config.schema import LoggingConfig
from hybridsearch.observability.logging import (
    TimedRotatingFileHandler,
    configure_from_config,
    configure_logging,
    get_logger,
    operation_context,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def read_events(log_dir):
    for handler in logging.getLogger().handlers:
        handler.flush()
    lines = (log_dir / "hybridsearch.log").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines if line.startswith("{")]


def test_json_file_logging(tmp_path):
    configure_logging(level="INFO", json_logs=True, log_dir=tmp_path, enable_file=True)

    get_logger("tests").info("document_indexed", path="a.md", chunk_count=3)

    events = read_events(tmp_path)
    assert events[-1]["event"] == "document_indexed"
    assert events[-1]["path"] == "a.md"
    assert events[-1]["app"] == "hybridsearch"
    assert events[-1]["level"] == "info"


def test_level_filtering(tmp_path):
    configure_logging(level="WARNING", json_logs=True, log_dir=tmp_path, enable_file=True)
    logger = get_logger("tests")

    logger.info("hidden_event")
    logger.warning("shown_event")

    names = [event["event"] for event in read_events(tmp_path)]
    assert "shown_event" in names
    assert "hidden_event" not in names


def test_operation_context_binds_fields(tmp_path):
    configure_logging(level="INFO", json_logs=True, log_dir=tmp_path, enable_file=True)
    logger = get_logger("tests")

    with operation_context("search", query="pooling"):
        logger.info("search_started")
    logger.info("after_block")

    started, after = read_events(tmp_path)[-2:]
    assert started["operation"] == "search"
    assert started["query"] == "pooling"
    assert len(started["operation_id"]) == 12
    assert "operation_id" not in after


def test_file_logging_disabled_by_config(tmp_path):
    configure_from_config(LoggingConfig(log_dir=tmp_path, enable_file=False))

    get_logger("tests").info("console_only")

    assert not (tmp_path / "hybridsearch.log").exists()


def test_rotation_cleanup_removes_expired_files(tmp_path):
    handler = TimedRotatingFileHandler(str(tmp_path / "app.log"), max_days=1, encoding="utf-8")
    expired = tmp_path / "app.log.2020-01-01"
    recent = tmp_path / "app.log.2099-01-01"
    unrelated = tmp_path / "other.log.2020-01-01"
    for path in (expired, recent, unrelated):
        path.write_text("x", encoding="utf-8")
    old = time.time() - 3 * 86400
    os.utime(expired, (old, old))
    os.utime(unrelated, (old, old))

    handler._cleanup_old_files()
    handler.close()

    assert not expired.exists()
    assert recent.exists()
    assert unrelated.exists()
