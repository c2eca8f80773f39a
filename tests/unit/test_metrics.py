"""Tests for run metrics."""

import threading

from ai_intern.core.metrics import MetricsSnapshot, RunMetrics


def test_counters_start_at_zero():
    assert RunMetrics().snapshot() == MetricsSnapshot()


def test_increments_show_in_snapshot():
    metrics = RunMetrics()
    metrics.inc_tickets_processed()
    metrics.inc_prs_created()
    metrics.inc_prs_created()
    metrics.add_retries(3)
    metrics.inc_generation_failures()
    metrics.inc_validation_failures()
    metrics.inc_quality_gate_failures()

    snapshot = metrics.snapshot()

    assert snapshot.tickets_processed == 1
    assert snapshot.prs_created == 2
    assert snapshot.retries == 3
    assert snapshot.generation_failures == 1
    assert snapshot.validation_failures == 1
    assert snapshot.quality_gate_failures == 1
    assert "prs=2" in snapshot.summary()


def test_non_positive_retries_ignored():
    metrics = RunMetrics()
    metrics.add_retries(0)
    metrics.add_retries(-4)

    assert metrics.snapshot().retries == 0


def test_snapshot_is_a_copy():
    metrics = RunMetrics()
    before = metrics.snapshot()
    metrics.inc_prs_created()

    assert before.prs_created == 0
    assert metrics.snapshot().to_dict()["prs_created"] == 1


def test_thread_safe_increments():
    metrics = RunMetrics()

    def bump():
        for _ in range(1000):
            metrics.add_retries(1)

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert metrics.snapshot().retries == 8000
