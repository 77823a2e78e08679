"""Structured JSON log output."""

import asyncio
import json
import logging

import pytest

from support_relay.shared.infrastructure.logging import (
    REDACTED,
    CustomJsonFormatter,
    get_context_logger,
    log_latency,
)


def render(record_fields, environment="test"):
    formatter = CustomJsonFormatter("%(name)s %(levelname)s %(message)s", environment=environment)
    record = logging.makeLogRecord({
        "name": "support_relay.test",
        "levelname": "INFO",
        "levelno": logging.INFO,
        "msg": "Ticket message",
        **record_fields,
    })
    return json.loads(formatter.format(record))


def test_adds_timestamp_and_environment():
    data = render({})

    assert data["message"] == "Ticket message"
    assert data["environment"] == "test"
    assert data["timestamp"]


def test_extra_fields_are_included():
    data = render({"ticket_id": 42, "correlation_id": "abc"})

    assert data["ticket_id"] == 42
    assert data["correlation_id"] == "abc"


def test_secrets_are_redacted():
    data = render({"api_key": "sk-123", "bot_token": "t", "password": "p", "prompt_tokens": 10})

    assert data["api_key"] == REDACTED
    assert data["bot_token"] == REDACTED
    assert data["password"] == REDACTED
    assert data["prompt_tokens"] == 10


def test_context_logger_carries_correlation_id():
    adapter = get_context_logger("support_relay.test", "abc")

    assert isinstance(adapter, logging.LoggerAdapter)
    assert adapter.extra == {"correlation_id": "abc"}
    assert isinstance(get_context_logger("support_relay.test"), logging.Logger)


def test_log_latency_emits_record(caplog):
    logger = logging.getLogger("support_relay.test")

    with caplog.at_level(logging.INFO, logger="support_relay.test"):
        with log_latency(logger, "knowledge_answer", user_id="12345"):
            pass

    [record] = caplog.records
    assert record.getMessage() == "knowledge_answer completed"
    assert record.operation == "knowledge_answer"
    assert record.user_id == "12345"
    assert record.latency_ms >= 0
    assert record.outcome == "ok"
    assert record.levelno == logging.INFO


def test_context_logger_keeps_call_extra(caplog):
    adapter = get_context_logger("support_relay.test", "abc")

    with caplog.at_level(logging.INFO, logger="support_relay.test"):
        adapter.info("Message triaged", extra={"outcome": "rejected"})

    [record] = caplog.records
    assert record.correlation_id == "abc"
    assert record.outcome == "rejected"


def test_log_latency_reports_failure_and_reraises(caplog):
    logger = logging.getLogger("support_relay.test")

    with caplog.at_level(logging.INFO, logger="support_relay.test"):
        with pytest.raises(asyncio.TimeoutError):
            with log_latency(logger, "knowledge_answer", user_id="12345"):
                raise asyncio.TimeoutError()

    [record] = caplog.records
    assert record.getMessage() == "knowledge_answer failed"
    assert record.levelno == logging.WARNING
    assert record.outcome == "error"
    assert record.error_type == "TimeoutError"
    assert record.user_id == "12345"
    assert record.latency_ms >= 0
