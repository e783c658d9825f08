"""Tests for logging helpers: masking, structured fields and timing."""

import logging

import pytest

from estate.utils.logging import (
    get_structured_logger,
    log_timing,
    mask_sensitive_data,
    mask_user_id,
    sanitize_message_text,
    timed,
)
from estate.utils.logging_config import LoggingConfig


@pytest.fixture
def masking_on(monkeypatch):
    monkeypatch.setattr(LoggingConfig, "LOG_MASK_SENSITIVE", True)
    monkeypatch.setattr(LoggingConfig, "LOG_MESSAGE_CONTENT", True)


@pytest.mark.unit
def test_mask_sensitive_data(masking_on):
    text = (
        "Contact jane@example.com or +1 (555) 010-7788. "
        "License: 3f2b8c0d9e7a41b6a5c4d3e2f1a0b9c8"
    )

    masked = mask_sensitive_data(text)

    assert "jane@example.com" not in masked
    assert "[REDACTED_EMAIL]" in masked
    assert "[REDACTED_PHONE]" in masked
    assert "[REDACTED_LICENSE]" in masked
    assert "3f2b8c0d" not in masked


@pytest.mark.unit
def test_mask_sensitive_data_disabled(monkeypatch):
    monkeypatch.setattr(LoggingConfig, "LOG_MASK_SENSITIVE", False)

    assert mask_sensitive_data("jane@example.com") == "jane@example.com"


@pytest.mark.unit
def test_mask_user_id(masking_on):
    masked = mask_user_id("01HXAMPLE0000000000000000Z")

    assert masked.startswith("01HX...")
    assert masked == mask_user_id("01HXAMPLE0000000000000000Z")
    assert mask_user_id("short") == "short"


@pytest.mark.unit
def test_sanitize_message_text_truncates(masking_on):
    sanitized = sanitize_message_text("x" * 600)

    assert sanitized.endswith("...")
    assert len(sanitized) == 503


@pytest.mark.unit
def test_sanitize_message_text_disabled(monkeypatch):
    monkeypatch.setattr(LoggingConfig, "LOG_MESSAGE_CONTENT", False)

    assert sanitize_message_text("Your agent request has been approved.") is None


@pytest.mark.unit
def test_structured_logger_adds_fields(caplog):
    logger = get_structured_logger("estate.test")

    with caplog.at_level(logging.INFO, logger="estate.test"):
        logger.info("Property created", property_id="p1", message_preview="Listing created")

    record = caplog.records[-1]
    assert record.getMessage() == "Property created"
    assert record.property_id == "p1"
    assert record.message_preview == "Listing created"
    assert record.timestamp


@pytest.mark.unit
def test_log_timing_warns_on_slow_operation(monkeypatch, caplog):
    monkeypatch.setattr(LoggingConfig, "LOG_SLOW_OPERATION_THRESHOLD_MS", -1)
    logger = get_structured_logger("estate.timing")

    with caplog.at_level(logging.DEBUG, logger="estate.timing"):
        with log_timing("store.find", logger=logger, collection="users"):
            pass

    messages = [r.getMessage() for r in caplog.records]
    assert "Completed store.find" in messages
    assert "Slow operation detected: store.find" in messages


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timed_decorator_preserves_result():
    @timed("demo.op")
    async def compute(x):
        return x * 2

    assert await compute(21) == 42
    assert compute.__name__ == "compute"
