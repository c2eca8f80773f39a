"""Run counters shared by concurrent ticket workflows."""

import threading
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the run counters."""
    tickets_processed: int = 0
    prs_created: int = 0
    retries: int = 0
    generation_failures: int = 0
    validation_failures: int = 0
    quality_gate_failures: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"tickets={self.tickets_processed} prs={self.prs_created} "
            f"retries={self.retries} generation_failures={self.generation_failures} "
            f"validation_failures={self.validation_failures} "
            f"gate_failures={self.quality_gate_failures}"
        )


class RunMetrics:
    """Monotonically increasing counters, safe to bump from threads and tasks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tickets_processed = 0
        self._prs_created = 0
        self._retries = 0
        self._generation_failures = 0
        self._validation_failures = 0
        self._quality_gate_failures = 0

    def inc_tickets_processed(self) -> None:
        with self._lock:
            self._tickets_processed += 1

    def inc_prs_created(self) -> None:
        with self._lock:
            self._prs_created += 1

    def add_retries(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._retries += count

    def inc_generation_failures(self) -> None:
        with self._lock:
            self._generation_failures += 1

    def inc_validation_failures(self) -> None:
        with self._lock:
            self._validation_failures += 1

    def inc_quality_gate_failures(self) -> None:
        with self._lock:
            self._quality_gate_failures += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                tickets_processed=self._tickets_processed,
                prs_created=self._prs_created,
                retries=self._retries,
                generation_failures=self._generation_failures,
                validation_failures=self._validation_failures,
                quality_gate_failures=self._quality_gate_failures,
            )
