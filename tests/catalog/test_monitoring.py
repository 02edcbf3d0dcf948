"""
Tests for index divergence tracking.
"""

from datetime import datetime, timedelta

from structlog.testing import capture_logs

from catalog.monitoring import IndexSyncMonitor


class TestIndexSyncMonitor:
    """Test cases for IndexSyncMonitor class."""

    def test_failure_marks_book_divergent(self):
        monitor = IndexSyncMonitor()

        record = monitor.record_failure(1, "put", "connection refused")

        assert record.book_id == 1
        assert record.operation == "put"
        assert record.failure_count == 1
        assert monitor.divergent_ids() == [1]

    def test_repeated_failures_are_counted(self):
        monitor = IndexSyncMonitor()

        monitor.record_failure(1, "put", "timeout")
        record = monitor.record_failure(1, "delete", "timeout")

        assert record.failure_count == 2
        assert record.operation == "delete"
        assert monitor.snapshot() == {
            "divergent_count": 1,
            "total_failures": 2,
            "failures_by_operation": {"put": 1, "delete": 1},
        }

    def test_success_resolves_divergence(self):
        with capture_logs() as logs:
            monitor = IndexSyncMonitor()
            monitor.record_failure(3, "put", "timeout")
            monitor.record_success(3)

        assert monitor.get(3) is None
        assert monitor.divergent_ids() == []
        assert [entry["event"] for entry in logs] == [
            "Search index divergence",
            "Search index divergence resolved",
        ]

    def test_success_for_clean_book_logs_nothing(self):
        with capture_logs() as logs:
            monitor = IndexSyncMonitor()
            monitor.record_success(3)

        assert logs == []

    def test_warnings_are_rate_limited(self):
        """Test that warnings stop once the hourly cap is reached."""
        with capture_logs() as logs:
            monitor = IndexSyncMonitor(max_alerts_per_hour=2)
            for book_id in range(5):
                monitor.record_failure(book_id, "put", "timeout")

        warnings = [entry for entry in logs if entry["log_level"] == "warning"]
        assert len(warnings) == 2
        assert warnings[0]["book_id"] == 0
        assert warnings[0]["component"] == "index_sync_monitor"
        assert monitor.divergent_ids() == [0, 1, 2, 3, 4]

    def test_rate_limit_window_rolls_over(self):
        monitor = IndexSyncMonitor(max_alerts_per_hour=1)
        monitor._alert_history = [datetime.utcnow() - timedelta(hours=2)]

        assert monitor._check_rate_limit(datetime.utcnow()) is True
        assert monitor._alert_history == []

    def test_clear(self):
        monitor = IndexSyncMonitor()
        monitor.record_failure(1, "put", "timeout")

        monitor.clear()

        assert monitor.divergent_ids() == []
