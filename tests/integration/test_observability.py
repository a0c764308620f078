"""
Integration tests for salestrack/observability.py

Tests structured logging, correlation IDs, timers and scan stats.
"""
import json
import logging
import time as time_module

import pytest

from salestrack.observability import (
    HumanReadableFormatter,
    ScanStats,
    StructuredFormatter,
    Timer,
    correlation_context,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("salestrack.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Tests for correlation ID management."""

    def test_generate_correlation_id_not_empty(self):
        """Generated ID is short and non-empty."""
        cid = generate_correlation_id()
        assert cid
        assert len(cid) == 8

    def test_set_and_get_correlation_id(self):
        """Can set and retrieve correlation ID."""
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_context_restores_previous(self):
        """correlation_context resets the ID on exit."""
        set_correlation_id("outer")
        with correlation_context("inner") as cid:
            assert cid == "inner"
            assert get_correlation_id() == "inner"
        assert get_correlation_id() == "outer"

    def test_context_generates_when_missing(self):
        """correlation_context without an ID makes one up."""
        with correlation_context() as cid:
            assert cid
            assert get_correlation_id() == cid


class TestFormatters:
    """Tests for log formatters."""

    def test_structured_formatter_json(self):
        """JSON output carries message, level and extras."""
        output = StructuredFormatter().format(_record("Scanned tables", tables=3))
        data = json.loads(output)
        assert data["message"] == "Scanned tables"
        assert data["level"] == "INFO"
        assert data["tables"] == 3

    def test_structured_formatter_correlation(self):
        """JSON output includes the active correlation ID."""
        with correlation_context("abc12345"):
            data = json.loads(StructuredFormatter().format(_record()))
        assert data["correlation_id"] == "abc12345"

    def test_human_formatter(self):
        """Human output includes level, logger and extras."""
        with correlation_context("abc12345"):
            output = HumanReadableFormatter().format(_record("Read table", table="01-06-2025-Morning"))
        assert "INFO" in output
        assert "salestrack.test [abc12345]" in output
        assert "01-06-2025-Morning" in output

    def test_setup_logging_installs_handler(self):
        """setup_logging replaces root handlers with one formatter."""
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging(level="DEBUG", json_format=True)
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestTimer:
    """Tests for Timer context manager."""

    def test_measures_elapsed_time(self):
        """Timer measures elapsed time."""
        with Timer("test_operation") as timer:
            time_module.sleep(0.05)

        assert timer.elapsed_ms >= 45
        assert timer.name == "test_operation"

    def test_logs_slow_operations_as_warning(self, caplog):
        """Operations over the threshold log at WARNING."""
        logger = get_logger("salestrack.timer_test")
        with caplog.at_level(logging.DEBUG, logger="salestrack.timer_test"):
            with Timer("slow_scan", logger, warn_threshold_ms=0):
                time_module.sleep(0.01)
        assert any(r.levelno == logging.WARNING and "slow_scan" in r.getMessage() for r in caplog.records)


class TestScanStats:
    """Tests for ScanStats counters."""

    def test_counts_per_query(self):
        """Counters are kept per query name."""
        stats = ScanStats()
        stats.record_read("insights")
        stats.record_read("insights")
        stats.record_missing("insights")
        stats.record_failure("summary")
        stats.record_degraded("summary")

        snapshot = stats.get_stats()
        assert snapshot["tables_read"] == {"insights": 2}
        assert snapshot["tables_missing"] == {"insights": 1}
        assert snapshot["tables_failed"] == {"summary": 1}
        assert snapshot["queries_degraded"] == {"summary": 1}

    def test_reset(self):
        """Reset clears every counter."""
        stats = ScanStats()
        stats.record_read("q")
        stats.reset()
        assert stats.get_stats()["tables_read"] == {}
