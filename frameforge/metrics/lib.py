"""Operation and session metrics for frameforge.

Keeps a bounded, time-limited record of recent tool operations and the
set of currently open sessions, and rolls them up into per-operation
aggregates (success rate, mean latency, p95/p99).
"""

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATIONS = 1000
DEFAULT_RETENTION = timedelta(hours=24)
RECENT_OPERATIONS_LIMIT = 50


# =============================================================================
# Records
# =============================================================================


@dataclass
class OperationMetric:
    """A single recorded operation."""

    operation_name: str
    duration_ms: float
    success: bool
    timestamp: datetime
    error_type: str | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class SessionMetric:
    """Lifecycle record for an open session."""

    session_id: str
    created_at: datetime
    operation_count: int = 0


@dataclass
class AggregatedMetrics:
    """Rollup of all retained records for one operation name.

    Attributes:
        total_operations: Number of retained records.
        successful_operations: Records with success=True.
        failed_operations: Records with success=False.
        success_rate: successful / total, 0 when empty.
        error_rate: failed / total, 0 when empty.
        average_latency_ms: Mean duration, rounded to an integer.
        p95_latency_ms: sorted[floor(n * 0.95)].
        p99_latency_ms: sorted[floor(n * 0.99)].
        errors_by_type: Failure counts keyed by error type.
    """

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    success_rate: float = 0.0
    error_rate: float = 0.0
    average_latency_ms: int = 0
    p95_latency_ms: float = 0
    p99_latency_ms: float = 0
    errors_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MetricsSnapshot:
    """Point-in-time view of all metrics."""

    timestamp: datetime
    active_sessions: int
    total_sessions_created: int
    total_sessions_closed: int
    operation_metrics: dict[str, AggregatedMetrics]
    recent_operations: list[OperationMetric]
    uptime_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "active_sessions": self.active_sessions,
            "total_sessions_created": self.total_sessions_created,
            "total_sessions_closed": self.total_sessions_closed,
            "operation_metrics": {
                name: metrics.to_dict()
                for name, metrics in self.operation_metrics.items()
            },
            "recent_operations": [op.to_dict() for op in self.recent_operations],
            "uptime_ms": self.uptime_ms,
        }


# =============================================================================
# Collector
# =============================================================================


def _percentile(sorted_values: list[float], fraction: float) -> float:
    if not sorted_values:
        return 0
    index = int(len(sorted_values) * fraction)
    return sorted_values[min(index, len(sorted_values) - 1)]


class MetricsCollector:
    """In-memory metrics collector.

    Operations are pruned on insert: anything older than the retention
    window is dropped, and the record never holds more than
    ``max_operations`` entries (oldest evicted first).

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.record_session_created("abc")
        >>> metrics.record_operation("generate_image", 1250.0, True, session_id="abc")
        >>> metrics.get_operation_metrics("generate_image").success_rate
        1.0

    Args:
        max_operations: Count ceiling for retained operation records.
        retention: Maximum age of a retained operation record.
        clock: Returns the current UTC time. Injected for tests.
    """

    def __init__(
        self,
        max_operations: int = DEFAULT_MAX_OPERATIONS,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] | None = None,
    ):
        self._max_operations = max_operations
        self._retention = retention
        self._clock = clock or (lambda: datetime.now(UTC))
        self._operations: deque[OperationMetric] = deque(maxlen=max_operations)
        self._sessions: dict[str, SessionMetric] = {}
        self._sessions_created = 0
        self._sessions_closed = 0
        self._started = time.monotonic()

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record_operation(
        self,
        operation_name: str,
        duration_ms: float,
        success: bool,
        error_type: str | None = None,
        session_id: str | None = None,
    ) -> None:
        """Record one completed operation.

        Args:
            operation_name: Tool or operation name.
            duration_ms: Wall time in milliseconds.
            success: Whether the operation succeeded.
            error_type: Error classification for failures.
            session_id: Session the operation ran against, if any.
        """
        now = self._clock()
        self._prune(now)
        self._operations.append(
            OperationMetric(
                operation_name=operation_name,
                duration_ms=duration_ms,
                success=success,
                timestamp=now,
                error_type=error_type,
                session_id=session_id,
            )
        )

        if session_id and session_id in self._sessions:
            self._sessions[session_id].operation_count += 1

        if not success and error_type:
            logger.warning(
                f"Operation failed: {operation_name} ({error_type}) "
                f"after {duration_ms:.0f}ms"
                + (f" [session {session_id}]" if session_id else "")
            )

    def record_session_created(self, session_id: str) -> None:
        """Mark a session as open."""
        self._sessions[session_id] = SessionMetric(
            session_id=session_id, created_at=self._clock()
        )
        self._sessions_created += 1
        logger.debug(f"Session opened: {session_id} ({len(self._sessions)} active)")

    def record_session_closed(self, session_id: str) -> None:
        """Mark a session as closed. Unknown ids are ignored."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        self._sessions_closed += 1
        lifetime = self._clock() - session.created_at
        logger.debug(
            f"Session closed: {session_id} after {lifetime.total_seconds():.1f}s, "
            f"{session.operation_count} operations"
        )

    def _prune(self, now: datetime) -> None:
        cutoff = now - self._retention
        removed = 0
        while self._operations and self._operations[0].timestamp <= cutoff:
            self._operations.popleft()
            removed += 1
        if removed:
            logger.debug(f"Pruned {removed} expired operation records")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_active_session_count(self) -> int:
        return len(self._sessions)

    def get_session_operation_count(self, session_id: str) -> int:
        session = self._sessions.get(session_id)
        return session.operation_count if session else 0

    def get_operation_metrics(self, operation_name: str) -> AggregatedMetrics:
        """Aggregate retained records for one operation name."""
        records = [
            op for op in self._operations if op.operation_name == operation_name
        ]
        if not records:
            return AggregatedMetrics()

        total = len(records)
        failed = [op for op in records if not op.success]
        latencies = sorted(op.duration_ms for op in records)

        errors_by_type: dict[str, int] = {}
        for op in failed:
            if op.error_type:
                errors_by_type[op.error_type] = errors_by_type.get(op.error_type, 0) + 1

        return AggregatedMetrics(
            total_operations=total,
            successful_operations=total - len(failed),
            failed_operations=len(failed),
            success_rate=(total - len(failed)) / total,
            error_rate=len(failed) / total,
            average_latency_ms=round(sum(latencies) / total),
            p95_latency_ms=_percentile(latencies, 0.95),
            p99_latency_ms=_percentile(latencies, 0.99),
            errors_by_type=errors_by_type,
        )

    def get_all_operation_metrics(self) -> dict[str, AggregatedMetrics]:
        names = dict.fromkeys(op.operation_name for op in self._operations)
        return {name: self.get_operation_metrics(name) for name in names}

    def get_snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            timestamp=self._clock(),
            active_sessions=len(self._sessions),
            total_sessions_created=self._sessions_created,
            total_sessions_closed=self._sessions_closed,
            operation_metrics=self.get_all_operation_metrics(),
            recent_operations=list(self._operations)[-RECENT_OPERATIONS_LIMIT:],
            uptime_ms=int((time.monotonic() - self._started) * 1000),
        )

    def get_summary(self) -> str:
        """Render the snapshot as a human-readable report."""
        snapshot = self.get_snapshot()
        lines = [
            "=== FrameForge Metrics Summary ===",
            f"Uptime: {round(snapshot.uptime_ms / 1000 / 60)} minutes",
            f"Active Sessions: {snapshot.active_sessions}",
            f"Total Sessions Created: {snapshot.total_sessions_created}",
            f"Total Sessions Closed: {snapshot.total_sessions_closed}",
            "",
            "Operation Metrics:",
        ]

        for name, metrics in snapshot.operation_metrics.items():
            lines.append(f"  {name}:")
            lines.append(f"    Total: {metrics.total_operations}")
            lines.append(f"    Success Rate: {metrics.success_rate * 100:.1f}%")
            lines.append(f"    Error Rate: {metrics.error_rate * 100:.1f}%")
            lines.append(f"    Avg Latency: {metrics.average_latency_ms}ms")
            lines.append(f"    P95 Latency: {metrics.p95_latency_ms:g}ms")
            lines.append(f"    P99 Latency: {metrics.p99_latency_ms:g}ms")
            if metrics.errors_by_type:
                lines.append("    Errors by Type:")
                for error_type, count in metrics.errors_by_type.items():
                    lines.append(f"      {error_type}: {count}")

        return "\n".join(lines)

    def reset(self) -> None:
        """Drop all records and restart the uptime clock."""
        self._operations.clear()
        self._sessions.clear()
        self._sessions_created = 0
        self._sessions_closed = 0
        self._started = time.monotonic()
        logger.info("Metrics reset")


__all__ = [
    "OperationMetric",
    "SessionMetric",
    "AggregatedMetrics",
    "MetricsSnapshot",
    "MetricsCollector",
]
