"""
Tests for metrics and structured logging (src/monitoring/)
"""

import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from monitoring.logging import (
    ConsoleFormatter,
    JSONFormatter,
    LoggingContext,
    clear_request_context,
    configure_logging,
    get_request_context,
    redact_sensitive_data,
)
from monitoring.metrics import MetricsCollector


def make_record(msg, level=logging.INFO, **extra):
    record = logging.LogRecord("issuance_controller", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestMetricsCollector:

    def test_counters_with_labels(self):
        collector = MetricsCollector()
        collector.increment("rejected_operations_total", labels={"operation": "mint", "code": "not_authorized"})
        collector.increment("rejected_operations_total", labels={"code": "not_authorized", "operation": "mint"})
        collector.increment("mints_total", 3)

        assert collector.get_counter(
            "rejected_operations_total", labels={"operation": "mint", "code": "not_authorized"}
        ) == 2
        assert collector.get_counter("mints_total") == 3
        assert collector.get_counter("never_touched") == 0

    def test_gauges(self):
        collector = MetricsCollector()
        collector.set_gauge("active_issuers", 4)
        collector.increment_gauge("http_requests_active")
        collector.decrement_gauge("http_requests_active")

        assert collector.get_gauge("active_issuers") == 4
        assert collector.get_gauge("http_requests_active") == 0

    def test_timer_records_histogram(self):
        collector = MetricsCollector()
        with collector.timer("sweep_duration_ms"):
            pass

        histogram = collector.get_all()["histograms"]["sweep_duration_ms"]["_total"]
        assert histogram["count"] == 1
        assert histogram["buckets"]["+Inf"] == 1

    def test_prometheus_export(self):
        collector = MetricsCollector()
        collector.increment("mints_total")
        collector.set_gauge("total_supply", 1000)
        collector.timing("http_request_duration_ms", 7, labels={"route": "/mint"})

        text = collector.to_prometheus()

        assert "# HELP issuance_mints_total Successful mint operations" in text
        assert "# TYPE issuance_mints_total counter" in text
        assert "issuance_mints_total 1" in text
        assert "issuance_total_supply 1000" in text
        assert 'issuance_http_request_duration_ms_bucket{route="/mint",le="10"} 1' in text
        assert 'issuance_http_request_duration_ms_bucket{route="/mint",le="5"} 0' in text

    def test_reset(self):
        collector = MetricsCollector()
        collector.increment("mints_total")
        collector.reset()

        assert collector.get_all()["counters"] == {}


class TestLogging:

    def test_json_formatter_includes_extras(self):
        record = make_record("Mint executed", issuer="0xAlice", minted=500)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Mint executed"
        assert entry["level"] == "INFO"
        assert entry["issuer"] == "0xAlice"
        assert entry["minted"] == 500
        assert "location" not in entry

    def test_json_formatter_warning_location(self):
        entry = json.loads(JSONFormatter().format(make_record("Rejected", level=logging.WARNING)))

        assert entry["location"]["line"] == 10

    def test_json_formatter_redacts_secrets(self):
        record = make_record("Using api_key=supersecret", api_key="supersecret")

        entry = json.loads(JSONFormatter().format(record))

        assert "supersecret" not in entry["message"]
        assert entry["api_key"] == "[REDACTED]"

    def test_identities_are_not_redacted(self):
        assert redact_sensitive_data({"issuer": "0x" + "ab" * 20}) == {"issuer": "0x" + "ab" * 20}

    def test_console_formatter(self):
        text = ConsoleFormatter().format(make_record("Issuer authorized", issuer="0xAlice"))

        assert "Issuer authorized" in text
        assert "issuer=0xAlice" in text

    def test_logging_context(self):
        clear_request_context()

        with LoggingContext(operation="sweep"):
            assert get_request_context() == {"operation": "sweep"}

        assert get_request_context() == {}

    def test_configure_logging(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            configure_logging(level="debug", json_output=True, log_file=str(tmp_path / "app.log"))

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
