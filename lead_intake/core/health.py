"""
Process-wide health state for the mailbox lane.

Components write through three hooks; the monitoring surface reads snapshots.
"""

import threading
from collections import deque
from datetime import datetime, timezone

from lead_intake.core.models import HealthError, HealthStatus

MAX_ERRORS = 5


class HealthState:
    """Thread-safe health state owned by the pipeline."""

    def __init__(self, max_errors: int = MAX_ERRORS):
        self._lock = threading.Lock()
        self._connected = False
        self._last_message_timestamp: datetime | None = None
        self._last_processed_uid: int | None = None
        self._messages_processed = 0
        self._errors: deque[HealthError] = deque(maxlen=max_errors)

    def set_connected(self, connected: bool) -> None:
        with self._lock:
            self._connected = connected

    def record_message(self, uid: int) -> None:
        """Count a processed message."""
        with self._lock:
            self._last_message_timestamp = datetime.now(timezone.utc)
            self._last_processed_uid = uid
            self._messages_processed += 1

    def record_error(self, message: str) -> None:
        """Append to the error ring; the oldest entry is evicted past the limit."""
        with self._lock:
            self._errors.append(HealthError(timestamp=datetime.now(timezone.utc), message=message))

    def snapshot(self) -> HealthStatus:
        with self._lock:
            return HealthStatus(
                connected=self._connected,
                last_message_timestamp=self._last_message_timestamp,
                last_processed_uid=self._last_processed_uid,
                messages_processed=self._messages_processed,
                errors=tuple(self._errors),
            )
