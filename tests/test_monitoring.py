"""
Tests for metrics and structured logging (src/monitoring/)
"""

import json
import logging

import pytest

from monitoring import LoggingContext, MetricsCollector, configure_logging, get_logger
from monitoring.logging import (
    ConsoleFormatter,
    JSONFormatter,
    get_request_context,
    redact_sensitive_data,
    redact_string,
)
from monitoring.middleware import _normalize_path

ADDRESS = "0x" + "ab12" + "0" * 32 + "cd34"


def make_record(message, level=logging.INFO, **extra):
    record = logging.LogRecord("collection", level, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ============================================================
# Metrics Tests
# ============================================================

class TestMetricsCollector:
    """Tests for counters, gauges, histograms and export."""

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_counters_by_label(self, collector):
        collector.increment("mints_total", labels={"currency": "native"})
        collector.increment("mints_total", 2, labels={"currency": "native"})
        collector.increment("mints_total", labels={"currency": "usdc"})

        assert collector.get_counter("mints_total", labels={"currency": "native"}) == 3
        assert collector.get_counter("mints_total", labels={"currency": "usdc"}) == 1
        assert collector.get_counter("mints_total") == 0

    def test_gauges(self, collector):
        collector.set_gauge("registered_collections", 4)
        collector.increment_gauge("http_requests_active")
        collector.increment_gauge("http_requests_active")
        collector.decrement_gauge("http_requests_active")

        assert collector.get_gauge("registered_collections") == 4
        assert collector.get_gauge("http_requests_active") == 1

    def test_timer_records_histogram(self, collector):
        with collector.timer("cross_collection_execution_ms", labels={"mixed": "true"}):
            pass

        histogram = collector.get_all()["histograms"]["cross_collection_execution_ms"]
        assert histogram['mixed="true"']["count"] == 1

    def test_timer_records_on_failure(self, collector):
        with pytest.raises(RuntimeError):
            with collector.timer("cross_collection_execution_ms"):
                raise RuntimeError("boom")

        assert collector.get_all()["histograms"]["cross_collection_execution_ms"]["_total"]["count"] == 1

    def test_prometheus_export(self, collector):
        collector.increment("mints_total", labels={"currency": "native", "entrypoint": "mint"})
        collector.timing("cross_collection_execution_ms", 12.0)

        text = collector.to_prometheus()

        assert "# TYPE dropmint_mints_total counter" in text
        assert 'dropmint_mints_total{currency="native",entrypoint="mint"} 1' in text
        assert 'dropmint_cross_collection_execution_ms_bucket{le="25"} 1' in text
        assert 'dropmint_cross_collection_execution_ms_bucket{le="10"} 0' in text
        assert "dropmint_cross_collection_execution_ms_count 1" in text

    def test_reset(self, collector):
        collector.increment("mints_total")
        collector.reset()

        assert collector.get_all()["counters"] == {}


# ============================================================
# Logging Tests
# ============================================================

class TestRedaction:
    """Tests for secret redaction and address shortening."""

    def test_redacts_fields(self):
        data = {"api_key": "abc", "nested": {"Authorization": "Bearer x"}, "amount": 5}

        result = redact_sensitive_data(data)

        assert result["api_key"] == "[REDACTED]"
        assert result["nested"]["Authorization"] == "[REDACTED]"
        assert result["amount"] == 5

    def test_redacts_strings(self):
        assert "[REDACTED]" in redact_string("api_key=supersecret")
        assert redact_string("0x" + "f" * 64) == "[REDACTED_PRIVATE_KEY]"

    def test_shortens_addresses(self):
        assert redact_string(f"paid {ADDRESS}") == "paid 0xab12...cd34"


class TestFormatters:
    """Tests for JSON and console output."""

    def test_json_formatter_includes_extras(self):
        record = make_record(f"Minted on {ADDRESS}", collection=ADDRESS, amount_paid=100)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "collection"
        assert entry["message"] == "Minted on 0xab12...cd34"
        assert entry["collection"] == "0xab12...cd34"
        assert entry["amount_paid"] == 100
        assert "location" not in entry

    def test_json_formatter_location_for_warnings(self):
        entry = json.loads(JSONFormatter().format(make_record("rejected", logging.WARNING)))

        assert entry["location"]["line"] == 10

    def test_console_formatter(self):
        text = ConsoleFormatter().format(make_record("hello", amount_paid=7))

        assert "[collection]" in text
        assert "hello" in text
        assert "amount_paid=7" in text

    def test_logging_context(self):
        with LoggingContext(collection=ADDRESS):
            with LoggingContext(caller="buyer"):
                assert get_request_context() == {"collection": ADDRESS, "caller": "buyer"}
            assert get_request_context() == {"collection": ADDRESS}
        assert get_request_context() == {}

    def test_context_in_json_output(self):
        with LoggingContext(request_id="r1"):
            entry = json.loads(JSONFormatter().format(make_record("hi")))

        assert entry["context"] == {"request_id": "r1"}

    def test_configure_logging(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            configure_logging("WARNING", json_output=True)

            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert get_logger("resolver") is logging.getLogger("resolver")
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestNormalizePath:
    @pytest.mark.parametrize("path,expected", [
        ("/", "/"),
        ("/health", "/health"),
        (f"/collections/{ADDRESS}/drops/3", "/collections/:address/drops/:id"),
        ("/estimate/mixed", "/estimate/mixed"),
    ])
    def test_normalize(self, path, expected):
        assert _normalize_path(path) == expected
