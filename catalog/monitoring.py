"""
Divergence tracking between the primary store and the search index.

This module provides:
- Recording of failed index writes per book identifier
- Clearing of divergence once a later mirror write succeeds
- Rate-limited warning logs for operators
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class DivergenceRecord:
    """Last failed mirror write for one book."""
    book_id: int
    operation: str
    error: str
    failed_at: datetime
    failure_count: int = 1


class IndexSyncMonitor:
    """
    Keeps the set of books whose search index copy is known to be stale.

    An entry exists from the first failed ``put``/``delete`` mirror write until
    a later mirror write for the same identifier succeeds.
    """

    def __init__(self, max_alerts_per_hour: int = 10):
        """
        Initialize the monitor.

        Args:
            max_alerts_per_hour: Cap on divergence warning logs per rolling hour
        """
        self.max_alerts_per_hour = max_alerts_per_hour
        self.logger = logger.bind(component="index_sync_monitor")
        self.total_failures = 0
        self.failures_by_operation: Dict[str, int] = {}
        self._divergent: Dict[int, DivergenceRecord] = {}
        self._alert_history: List[datetime] = []

    def record_failure(self, book_id: int, operation: str, error: str) -> DivergenceRecord:
        """Remember that the index copy of ``book_id`` may be stale."""
        now = datetime.utcnow()
        self.total_failures += 1
        self.failures_by_operation[operation] = self.failures_by_operation.get(operation, 0) + 1

        previous = self._divergent.get(book_id)
        record = DivergenceRecord(
            book_id=book_id,
            operation=operation,
            error=error,
            failed_at=now,
            failure_count=previous.failure_count + 1 if previous else 1,
        )
        self._divergent[book_id] = record

        if self._check_rate_limit(now):
            self.logger.warning(
                "Search index divergence",
                book_id=book_id,
                operation=operation,
                error=error,
                divergent_count=len(self._divergent),
            )
            self._alert_history.append(now)
        return record

    def record_success(self, book_id: int) -> None:
        """Forget a previously divergent book once its mirror write succeeded."""
        if self._divergent.pop(book_id, None) is not None:
            self.logger.info("Search index divergence resolved", book_id=book_id)

    def get(self, book_id: int) -> Optional[DivergenceRecord]:
        return self._divergent.get(book_id)

    def divergent_ids(self) -> List[int]:
        return sorted(self._divergent)

    def snapshot(self) -> Dict:
        """Summary suitable for health checks and operator output."""
        return {
            "divergent_count": len(self._divergent),
            "total_failures": self.total_failures,
            "failures_by_operation": dict(self.failures_by_operation),
        }

    def clear(self) -> None:
        self._divergent.clear()

    def _check_rate_limit(self, now: datetime) -> bool:
        """Check if another alert fits in the rolling one-hour window."""
        hour_ago = now - timedelta(hours=1)
        self._alert_history = [time for time in self._alert_history if time > hour_ago]
        return len(self._alert_history) < self.max_alerts_per_hour
