"""
Tests for read-side queries (jobflow_kernel/selectors/).

TransitionHistorySelector: audit trail ordering and transition options.
JobSelector / JobRelationsSelector: snapshots, enrichment, related lookups.
"""

from datetime import date
from uuid import uuid4

import pytest

from jobflow_kernel.db.engine import session_scope
from jobflow_kernel.domain.dtos import ChangeSource, TransitionOptions
from jobflow_kernel.domain.job_states import JobState
from jobflow_kernel.exceptions import JobNotFoundError
from jobflow_kernel.models import Invoice
from jobflow_kernel.selectors import (
    JobRelationsSelector,
    JobSelector,
    TransitionHistorySelector,
)


class TestHistory:

    def test_new_job_has_creation_row(self, session_factory, make_job):
        job_id = make_job()
        with session_scope(session_factory) as session:
            history = TransitionHistorySelector(session).history(job_id)

        assert len(history) == 1
        creation = history[0]
        assert creation.sequence == 1
        assert creation.from_state is None
        assert creation.to_state == "draft"
        assert creation.change_source == ChangeSource.SYSTEM.value
        assert creation.reason == "Job created"

    def test_newest_first_and_chained(self, session_factory, state_machine, schedulable_job):
        job_id = schedulable_job()
        for target in ("scheduled", "weather_hold", "scheduled", "cancelled"):
            options = TransitionOptions(
                actor_id="dispatcher-1",
                job_updates={"weather_hold_reason": "Ice storm"} if target == "weather_hold" else {},
            )
            assert state_machine.transition(job_id, target, options).ok

        with session_scope(session_factory) as session:
            history = TransitionHistorySelector(session).history(job_id)

        assert [r.to_state for r in history] == [
            "cancelled",
            "scheduled",
            "weather_hold",
            "scheduled",
            "draft",
        ]
        assert [r.sequence for r in history] == [5, 4, 3, 2, 1]
        for newer, older in zip(history, history[1:]):
            assert newer.from_state == older.to_state

    def test_unknown_job(self, session_factory):
        with session_scope(session_factory) as session:
            with pytest.raises(JobNotFoundError):
                TransitionHistorySelector(session).history(uuid4())

    def test_records_are_jsonable(self, session_factory, make_job):
        job_id = make_job("scheduled")
        with session_scope(session_factory) as session:
            record = TransitionHistorySelector(session).history(job_id)[0]

        data = record.to_dict()
        assert data["job_id"] == str(job_id)
        assert data["from_state"] == "draft"
        assert data["to_state"] == "scheduled"
        assert data["created_at"] == "2024-01-01T12:00:00+00:00"


class TestAllowedTransitions:

    def test_options_in_state_order_with_reasons(self, session_factory, make_job):
        job_id = make_job("draft")
        with session_scope(session_factory) as session:
            view = TransitionHistorySelector(session).allowed_transitions_for(job_id)

        assert view.current_state == "draft"
        assert view.current_state_name == "Draft"
        assert [o.state for o in view.transitions] == [
            JobState.NEEDS_PERMIT,
            JobState.WAITING_ON_CLIENT,
            JobState.SCHEDULED,
            JobState.CANCELLED,
        ]
        verdicts = {o.state: o for o in view.transitions}
        assert not verdicts[JobState.NEEDS_PERMIT].allowed
        assert verdicts[JobState.WAITING_ON_CLIENT].allowed
        assert verdicts[JobState.SCHEDULED].blocked_reasons == (
            "scheduled_date is required to schedule a job",
            "assigned_crew is required and must contain at least one crew member",
        )
        assert verdicts[JobState.CANCELLED].allowed
        assert verdicts[JobState.CANCELLED].blocked_reasons == ()

    def test_terminal_job_has_no_options(self, session_factory, make_job):
        job_id = make_job("paid")
        with session_scope(session_factory) as session:
            view = TransitionHistorySelector(session).allowed_transitions_for(job_id)
        assert view.current_state_name == "Paid"
        assert view.transitions == ()

    def test_forms_block_start(self, session_factory, make_job, add_form):
        job_id = make_job(
            "on_site",
            scheduled_date=date(2024, 1, 10),
            assigned_crew=["c1"],
        )
        add_form(job_id, "Tree risk survey")
        add_form(job_id, "Customer waiver", status="completed")

        with session_scope(session_factory) as session:
            view = TransitionHistorySelector(session).allowed_transitions_for(job_id)

        start = next(o for o in view.transitions if o.state is JobState.IN_PROGRESS)
        assert not start.allowed
        assert start.blocked_reasons == (
            "All job forms must be completed before starting work "
            "(1 incomplete: Tree risk survey)",
        )

    def test_unknown_job(self, session_factory):
        with session_scope(session_factory) as session:
            with pytest.raises(JobNotFoundError):
                TransitionHistorySelector(session).allowed_transitions_for(uuid4())


class TestJobSelector:

    def test_get_and_find(self, session_factory, make_job):
        job_id = make_job("scheduled", assigned_crew=["c1", "c2"])
        with session_scope(session_factory) as session:
            selector = JobSelector(session)
            snapshot = selector.get(job_id)
            assert selector.find(uuid4()) is None
            with pytest.raises(JobNotFoundError):
                selector.get(uuid4())

        assert snapshot.state is JobState.SCHEDULED
        assert snapshot.assigned_crew == ("c1", "c2")

    def test_completed_job_count(self, session_factory, make_job, make_client):
        client_id = make_client()
        for status in ("completed", "invoiced", "paid", "cancelled", "in_progress"):
            make_job(status, client_id=client_id)
        make_job("paid", client_id=make_client())

        with session_scope(session_factory) as session:
            assert JobSelector(session).completed_job_count(client_id) == 3

    def test_enriched_without_relations(self, session_factory, make_job):
        job_id = make_job()
        with session_scope(session_factory) as session:
            enriched = JobSelector(session).enriched(job_id)

        assert enriched.job.id == job_id
        assert enriched.client is None
        assert enriched.property is None
        assert enriched.quote_pricing is None
        assert enriched.invoice is None

    def test_enriched_with_relations(
        self, session_factory, make_job, make_client, make_property, make_quote
    ):
        client_id = make_client()
        property_id = make_property(client_id)
        quote_id = make_quote([{"description": "Remove oak", "price": "500", "selected": True}])
        job_id = make_job(
            "draft",
            client_id=client_id,
            property_id=property_id,
            quote_id=quote_id,
        )

        with session_scope(session_factory) as session:
            enriched = JobSelector(session).enriched(job_id).to_dict()

        assert enriched["client"]["name"] == "Dana Birch"
        assert enriched["client"]["category"] == "potential_client"
        assert enriched["property"]["zip_code"] == "97477"
        assert enriched["quote_pricing"]["line_items"][0]["description"] == "Remove oak"
        assert enriched["job"]["status"] == "draft"


class TestJobRelationsSelector:

    def test_invoice_exists(self, session_factory):
        with session_scope(session_factory) as session:
            invoice = Invoice(invoice_number="INV-2024-0001")
            session.add(invoice)
            session.flush()
            invoice_id = invoice.id

        with session_scope(session_factory) as session:
            reader = JobRelationsSelector(session)
            assert reader.invoice_exists(invoice_id)
            assert not reader.invoice_exists(uuid4())

    def test_incomplete_forms_sorted_by_name(self, session_factory, make_job, add_form):
        job_id = make_job()
        add_form(job_id, "Waiver")
        add_form(job_id, "Site survey")
        add_form(job_id, "Permit copy", status="completed")

        with session_scope(session_factory) as session:
            names = JobRelationsSelector(session).incomplete_form_names(job_id)

        assert names == ["Site survey", "Waiver"]
