"""Unit tests for structured logging and correlation ids."""

import json
import logging

from conditional_access_provider.observability.logging import (
    CorrelationIDFilter,
    ProviderLogger,
    StructuredFormatter,
    get_correlation_id,
    set_correlation_id,
    setup_structured_logging,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname=__file__, lineno=1,
        msg=message, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def test_includes_structured_fields(self):
        record = _record(
            resource_type="azuread_named_location",
            resource_id="loc-1",
            poll_state="Pending",
            correlation_id="abcd1234",
        )

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["correlation_id"] == "abcd1234"
        assert data["resource_type"] == "azuread_named_location"
        assert data["poll_state"] == "Pending"
        assert "http_status" not in data

    def test_unknown_extras_are_not_emitted(self):
        data = json.loads(StructuredFormatter().format(_record(secret="s3cret")))
        assert "secret" not in data


class TestCorrelationIds:
    """Test correlation id propagation."""

    def test_filter_uses_context_value(self):
        set_correlation_id("fixed-id")
        record = _record()

        assert CorrelationIDFilter().filter(record)
        assert record.correlation_id == "fixed-id"

    def test_operation_start_sets_correlation_id(self):
        logger = ProviderLogger("test")

        correlation_id = logger.log_operation_start(
            "azuread_named_location", "read", "loc-1"
        )

        assert len(correlation_id) == 8
        assert get_correlation_id() == correlation_id


class TestSetup:
    """Test root logger configuration."""

    def test_setup_installs_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_structured_logging(log_level="DEBUG", enable_json_formatting=True)
            setup_structured_logging(log_level="DEBUG", enable_json_formatting=True)

            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
