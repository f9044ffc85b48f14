"""
Concurrent transition tests.

Threads are released together from a Barrier so requests really overlap.
The job row lock (FOR UPDATE on PostgreSQL, BEGIN IMMEDIATE on SQLite)
must make each job's state changes serial, and the per-year invoice lock
must keep concurrent completions from sharing a number.

Expected Behavior:
- Two conflicting transitions from the same state: exactly one succeeds,
  the other is rejected against the winner's state.
- The audit trail has no duplicate sequence numbers.
- Concurrent completions of different jobs get distinct, gap-free numbers.
- A request that cannot get the job lock within its bound comes back as a
  retryable LOCK_TIMEOUT and leaves the job and its audit trail untouched.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from threading import Barrier

import pytest
from sqlalchemy import func, select

from jobflow_kernel.db.engine import session_scope
from jobflow_kernel.domain.dtos import TransitionOptions, TransitionStatus
from jobflow_kernel.models import Invoice, Job, JobStateTransition
from jobflow_kernel.services.job_state_machine import JobStateMachine

pytestmark = pytest.mark.slow_locks

STARTED = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
FINISHED = datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc)


def _race(state_machine, requests):
    """Run (job_id, to_state) requests at the same moment; return results in order."""
    barrier = Barrier(len(requests))

    def _run(request):
        job_id, to_state = request
        barrier.wait()
        return state_machine.transition(
            job_id, to_state, TransitionOptions(actor_id="race")
        )

    with ThreadPoolExecutor(max_workers=len(requests)) as executor:
        return list(executor.map(_run, requests))


class TestSameJobRaces:

    def test_conflicting_moves_from_scheduled(self, state_machine, make_job, load_job):
        job_id = make_job(
            "scheduled",
            scheduled_date=date(2024, 1, 10),
            assigned_crew=["c1"],
        )

        results = _race(state_machine, [(job_id, "en_route"), (job_id, "in_progress")])

        winners = [r for r in results if r.ok]
        losers = [r for r in results if not r.ok]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].status == TransitionStatus.ILLEGAL_TRANSITION
        assert load_job(job_id).status == winners[0].job.status

    def test_repeated_completion_drafts_one_invoice(
        self, state_machine, make_job, load_job, session_factory
    ):
        job_id = make_job("in_progress", work_start_time=STARTED, work_end_time=FINISHED)

        results = _race(state_machine, [(job_id, "completed")] * 4)

        assert sum(1 for r in results if r.ok) == 1
        assert all(
            r.status == TransitionStatus.ILLEGAL_TRANSITION for r in results if not r.ok
        )
        with session_scope(session_factory) as session:
            invoices = session.execute(
                select(func.count(Invoice.id)).where(Invoice.job_id == job_id)
            ).scalar_one()
        assert invoices == 1
        assert load_job(job_id).invoice_id is not None

    def test_audit_sequences_stay_unique(self, state_machine, make_job, session_factory):
        job_id = make_job(
            "scheduled",
            scheduled_date=date(2024, 1, 10),
            assigned_crew=["c1"],
        )

        _race(
            state_machine,
            [(job_id, "en_route"), (job_id, "weather_hold"), (job_id, "cancelled")],
        )

        with session_scope(session_factory) as session:
            sequences = session.execute(
                select(JobStateTransition.sequence)
                .where(JobStateTransition.job_id == job_id)
                .order_by(JobStateTransition.sequence)
            ).scalars().all()
        assert sequences == list(range(1, len(sequences) + 1))


class TestInvoiceNumberRaces:

    @pytest.mark.parametrize("job_count", [2, 6])
    def test_concurrent_completions_get_distinct_numbers(
        self, state_machine, make_job, session_factory, collaborators, job_count
    ):
        job_ids = [
            make_job("in_progress", work_start_time=STARTED, work_end_time=FINISHED)
            for _ in range(job_count)
        ]

        results = _race(state_machine, [(job_id, "completed") for job_id in job_ids])

        assert all(r.ok for r in results)
        with session_scope(session_factory) as session:
            numbers = session.execute(select(Invoice.invoice_number)).scalars().all()
        assert sorted(numbers) == [f"INV-2024-{n:04d}" for n in range(1, job_count + 1)]
        assert len(collaborators.reminders.scheduled) == job_count


class TestLockTimeouts:

    def _audit_count(self, session_factory, job_id) -> int:
        with session_scope(session_factory) as session:
            return session.execute(
                select(func.count(JobStateTransition.id)).where(
                    JobStateTransition.job_id == job_id
                )
            ).scalar_one()

    def test_held_job_lock_times_out_cleanly(
        self, session_factory, deterministic_clock, schedulable_job, load_job
    ):
        job_id = schedulable_job()
        before = self._audit_count(session_factory, job_id)
        machine = JobStateMachine(
            session_factory, clock=deterministic_clock, job_lock_timeout_ms=200
        )

        holder = session_factory()
        try:
            holder.execute(
                select(Job).where(Job.id == job_id).with_for_update()
            ).scalar_one()
            t0 = time.monotonic()
            result = machine.transition(job_id, "scheduled", TransitionOptions(actor_id="late"))
            waited = time.monotonic() - t0
        finally:
            holder.rollback()
            holder.close()

        assert result.status == TransitionStatus.LOCK_TIMEOUT
        assert result.error_code == "LOCK_TIMEOUT"
        assert result.retryable is True
        # bounded by the machine's 200 ms, not the engine-wide busy timeout
        assert waited < 5
        assert load_job(job_id).status == "draft"
        assert self._audit_count(session_factory, job_id) == before

        retried = machine.transition(job_id, "scheduled", TransitionOptions(actor_id="late"))
        assert retried.ok
        assert self._audit_count(session_factory, job_id) == before + 1
