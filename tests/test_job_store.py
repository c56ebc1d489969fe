# tests/test_job_store.py
"""
Tests for the durable JobStore.

Focus
-----
- Creation yields a PENDING row with the captured payload.
- Transitions only fire from the expected source state (compare-and-swap).
- Timestamps: started_at on claim, completed_at on the terminal transition.
- The watchdog force-fails stale PROCESSING jobs and nothing else.
"""

from __future__ import annotations

import threading
from datetime import timedelta
from pathlib import Path

from sqlalchemy import DateTime, update
from sqlmodel import col

from classlens.api.job_store import JobStore, get_job_store
from classlens.api.schemas import JobSnapshot
from classlens.db import AnalysisJob, JobStatus, init_db, make_engine, session_scope, utcnow


def test_create_job_is_pending(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {"foo": "bar"})

    job = store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.PENDING.value
    assert job.request_data == {"foo": "bar"}
    assert job.started_at is None
    assert job.completed_at is None
    assert job.result is None
    assert job.error_message is None


def test_get_job_unknown_returns_none(store: JobStore) -> None:
    assert store.get_job("no-such-job") is None


def test_get_job_for_class_is_scoped(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {})

    assert store.get_job_for_class(job_id, "class-1") is not None
    assert store.get_job_for_class(job_id, "class-2") is None


def test_claim_sets_processing_and_started_at(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {})

    job = store.claim(job_id)

    assert job is not None
    assert job.status == JobStatus.PROCESSING.value
    assert job.started_at is not None


def test_second_claim_returns_nothing(store: JobStore) -> None:
    """Two workers racing for the same job: only the first wins."""
    job_id = store.create_job("class-1", "basic", {})

    first = store.claim(job_id)
    second = store.claim(job_id)

    assert first is not None
    assert second is None


def test_claim_missing_job_returns_none(store: JobStore) -> None:
    assert store.claim("ghost") is None


def test_mark_completed_requires_processing(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {})

    # Still PENDING: nothing happens
    assert store.mark_completed(job_id, "report") is False
    assert store.get_job(job_id).status == JobStatus.PENDING.value  # type: ignore[union-attr]

    store.claim(job_id)
    assert store.mark_completed(job_id, "report") is True

    job = store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.COMPLETED.value
    assert job.result == "report"
    assert job.completed_at is not None
    assert job.started_at is not None and job.completed_at >= job.started_at


def test_terminal_state_is_final(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {})
    store.claim(job_id)
    assert store.mark_failed(job_id, "boom") is True

    # Neither a late completion nor a second failure may rewrite the row
    assert store.mark_completed(job_id, {"late": True}) is False
    assert store.mark_failed(job_id, "again") is False

    job = store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.FAILED.value
    assert job.error_message == "boom"
    assert job.result is None


def test_structured_result_round_trips(store: JobStore) -> None:
    job_id = store.create_job("class-1", "announcement", {})
    store.claim(job_id)
    store.mark_completed(job_id, {"content": "안내장", "items": [1, 2]})

    job = store.get_job(job_id)
    assert job is not None
    assert job.result == {"content": "안내장", "items": [1, 2]}


def test_next_pending_id_is_oldest_first(store: JobStore) -> None:
    first = store.create_job("class-1", "basic", {})
    second = store.create_job("class-1", "overview", {})

    assert store.next_pending_id() == first
    store.claim(first)
    assert store.next_pending_id() == second
    store.claim(second)
    assert store.next_pending_id() is None


def _backdate_start(job_id: str, seconds: float) -> None:
    with session_scope() as session:
        session.exec(  # type: ignore[call-overload]
            update(AnalysisJob)
            .where(col(AnalysisJob.id) == job_id)
            .values(started_at=utcnow() - timedelta(seconds=seconds))
        )


def test_watchdog_fails_stale_processing_job(store: JobStore) -> None:
    stale = store.create_job("class-1", "basic", {})
    fresh = store.create_job("class-1", "basic", {})
    waiting = store.create_job("class-1", "basic", {})
    store.claim(stale)
    store.claim(fresh)
    _backdate_start(stale, 700)

    failed = store.fail_stale_jobs(600)

    assert failed == [stale]
    stale_job = store.get_job(stale)
    assert stale_job is not None
    assert stale_job.status == JobStatus.FAILED.value
    assert stale_job.error_message == "Analysis timed out after 600 seconds"
    assert stale_job.completed_at is not None

    assert store.get_job(fresh).status == JobStatus.PROCESSING.value  # type: ignore[union-attr]
    assert store.get_job(waiting).status == JobStatus.PENDING.value  # type: ignore[union-attr]


def test_late_completion_after_watchdog_changes_nothing(store: JobStore) -> None:
    job_id = store.create_job("class-1", "basic", {})
    store.claim(job_id)
    _backdate_start(job_id, 1000)
    store.fail_stale_jobs(600)

    assert store.mark_completed(job_id, "too late") is False

    job = store.get_job(job_id)
    assert job is not None
    assert job.status == JobStatus.FAILED.value
    assert job.result is None


def test_get_job_store_returns_singleton() -> None:
    assert get_job_store() is get_job_store()
    assert isinstance(get_job_store(), JobStore)


def test_timestamps_are_stored_timezone_aware(store: JobStore) -> None:
    for name in ("created_at", "started_at", "completed_at"):
        column_type = AnalysisJob.__table__.c[name].type  # type: ignore[attr-defined]
        assert isinstance(column_type, DateTime)
        assert column_type.timezone is True

    job_id = store.create_job("class-1", "basic", {})
    store.claim(job_id)
    store.mark_completed(job_id, "done")

    job = store.get_job(job_id)
    assert job is not None
    snapshot = JobSnapshot.from_job(job)
    assert snapshot.created_at.utcoffset() == timedelta(0)
    assert snapshot.started_at is not None and snapshot.completed_at is not None
    assert snapshot.created_at <= snapshot.started_at <= snapshot.completed_at


def test_concurrent_claims_have_exactly_one_winner(tmp_path: Path) -> None:
    """Many threads claim the same job at once; the conditional update lets one through.

    Uses a file database so every thread gets its own connection.
    """
    engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    init_db(engine)
    race_store = JobStore(engine)
    job_id = race_store.create_job("class-1", "basic", {})

    contenders = 8
    barrier = threading.Barrier(contenders)
    wins: list[bool] = []
    lock = threading.Lock()

    def contend() -> None:
        barrier.wait()
        claimed = race_store.claim(job_id) is not None
        with lock:
            wins.append(claimed)

    threads = [threading.Thread(target=contend) for _ in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    try:
        assert len(wins) == contenders
        assert wins.count(True) == 1
        job = race_store.get_job(job_id)
        assert job is not None
        assert job.status == JobStatus.PROCESSING.value
    finally:
        engine.dispose()
