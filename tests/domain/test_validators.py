"""
Tests for destination-state validators (jobflow_kernel/domain/validators.py).

Pure: jobs are JobSnapshot instances and related aggregates come from an
in-memory reader.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from jobflow_kernel.domain.dtos import JobSnapshot
from jobflow_kernel.domain.job_states import JobState
from jobflow_kernel.domain.validators import STATE_VALIDATORS, validate_destination

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeRelations:
    def __init__(self, invoices=(), incomplete_forms=()):
        self.invoices = set(invoices)
        self.incomplete_forms = list(incomplete_forms)

    def invoice_exists(self, invoice_id):
        return invoice_id in self.invoices

    def incomplete_form_names(self, job_id):
        return list(self.incomplete_forms)


def _job(**fields) -> JobSnapshot:
    return JobSnapshot(id=uuid4(), status="draft", **fields)


def _ready_to_start(**fields) -> JobSnapshot:
    values = {"scheduled_date": date(2024, 1, 10), "assigned_crew": ("c1",)}
    values.update(fields)
    return _job(**values)


def test_every_state_has_a_validator():
    assert set(STATE_VALIDATORS) == set(JobState)


@pytest.mark.parametrize(
    "state", [JobState.DRAFT, JobState.WAITING_ON_CLIENT, JobState.CANCELLED]
)
def test_topology_only_states_accept_anything(state):
    assert validate_destination(_job(), state, FakeRelations()).is_valid


class TestScheduled:

    def test_reports_every_missing_precondition(self):
        job = _job(
            permit_required=True,
            permit_status="pending",
            deposit_required=True,
            deposit_status="requested",
        )
        result = validate_destination(job, JobState.SCHEDULED, FakeRelations())
        assert not result
        assert result.errors == (
            "scheduled_date is required to schedule a job",
            "assigned_crew is required and must contain at least one crew member",
            "Permit must be approved before scheduling",
            "Deposit must be received or waived before scheduling",
        )

    def test_passes_with_approved_permit_and_waived_deposit(self):
        job = _ready_to_start(
            permit_required=True,
            permit_status="approved",
            deposit_required=True,
            deposit_status="waived",
        )
        assert validate_destination(job, JobState.SCHEDULED, FakeRelations()).is_valid

    def test_deposit_received_is_enough(self):
        job = _ready_to_start(deposit_required=True, deposit_status="received")
        assert validate_destination(job, JobState.SCHEDULED, FakeRelations()).is_valid

    def test_empty_crew_is_rejected(self):
        job = _job(scheduled_date=date(2024, 1, 10), assigned_crew=())
        result = validate_destination(job, JobState.SCHEDULED, FakeRelations())
        assert result.errors == (
            "assigned_crew is required and must contain at least one crew member",
        )


class TestInProgress:

    def test_minimal_job_passes(self):
        assert validate_destination(_ready_to_start(), JobState.IN_PROGRESS, FakeRelations())

    def test_jha_required_but_missing_and_unacknowledged(self):
        job = _ready_to_start(jha_required=True)
        result = validate_destination(job, JobState.IN_PROGRESS, FakeRelations())
        assert result.errors == (
            "Job Hazard Analysis must be completed before starting work",
            "Job Hazard Analysis must be acknowledged before starting work",
        )

    def test_jha_present_but_unacknowledged(self):
        job = _ready_to_start(jha_required=True, jha={"hazards": ["power lines"]})
        result = validate_destination(job, JobState.IN_PROGRESS, FakeRelations())
        assert result.errors == (
            "Job Hazard Analysis must be acknowledged before starting work",
        )

    def test_jha_complete(self):
        job = _ready_to_start(
            jha_required=True,
            jha={"hazards": ["power lines"]},
            jha_acknowledged_at=NOW,
        )
        assert validate_destination(job, JobState.IN_PROGRESS, FakeRelations()).is_valid

    def test_incomplete_forms_listed(self):
        reader = FakeRelations(incomplete_forms=["Site survey", "Waiver"])
        result = validate_destination(_ready_to_start(), JobState.IN_PROGRESS, reader)
        assert result.errors == (
            "All job forms must be completed before starting work "
            "(2 incomplete: Site survey, Waiver)",
        )

    def test_unscheduled_uncrewed(self):
        result = validate_destination(_job(), JobState.IN_PROGRESS, FakeRelations())
        assert result.errors == (
            "Job must be scheduled before starting work",
            "Crew must be assigned before starting work",
        )


class TestCompleted:

    def test_unchecked_items_counted(self):
        job = _job(
            work_start_time=NOW,
            work_end_time=NOW,
            completion_checklist=(
                {"item": "haul debris", "checked": False},
                {"item": "rake lawn", "checked": True},
            ),
        )
        result = validate_destination(job, JobState.COMPLETED, FakeRelations())
        assert result.errors == ("Completion checklist has 1 unchecked items",)

    def test_all_failures_reported(self):
        job = _job(completion_checklist=({"item": "haul debris", "checked": False},))
        result = validate_destination(job, JobState.COMPLETED, FakeRelations())
        assert len(result.errors) == 3
        assert "work_end_time is required to mark job as completed" in result.errors
        assert "Work must be started before it can be completed" in result.errors

    def test_empty_checklist_passes(self):
        job = _job(work_start_time=NOW, work_end_time=NOW)
        assert validate_destination(job, JobState.COMPLETED, FakeRelations()).is_valid


class TestBilling:

    def test_invoiced_requires_invoice_id(self):
        result = validate_destination(_job(), JobState.INVOICED, FakeRelations())
        assert result.errors == ("invoice_id is required to mark job as invoiced",)

    def test_invoiced_requires_existing_invoice(self):
        job = _job(invoice_id=uuid4())
        result = validate_destination(job, JobState.INVOICED, FakeRelations())
        assert result.errors == ("Referenced invoice does not exist",)

    def test_invoiced_passes_when_invoice_resolves(self):
        invoice_id = uuid4()
        job = _job(invoice_id=invoice_id)
        reader = FakeRelations(invoices=[invoice_id])
        assert validate_destination(job, JobState.INVOICED, reader).is_valid

    def test_paid_requires_payment_and_invoice(self):
        result = validate_destination(_job(), JobState.PAID, FakeRelations())
        assert result.errors == (
            "payment_received_at is required to mark job as paid",
            "Job must be invoiced before marking as paid",
        )

    def test_paid_passes(self):
        job = _job(invoice_id=uuid4(), payment_received_at=NOW)
        assert validate_destination(job, JobState.PAID, FakeRelations()).is_valid


class TestHoldsAndTravel:

    def test_needs_permit_requires_flag(self):
        result = validate_destination(_job(), JobState.NEEDS_PERMIT, FakeRelations())
        assert result.errors == ("permit_required must be true to use this state",)
        assert validate_destination(
            _job(permit_required=True), JobState.NEEDS_PERMIT, FakeRelations()
        )

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_weather_hold_requires_reason(self, reason):
        result = validate_destination(
            _job(weather_hold_reason=reason), JobState.WEATHER_HOLD, FakeRelations()
        )
        assert result.errors == (
            "weather_hold_reason is required when placing job on weather hold",
        )

    def test_weather_hold_with_reason(self):
        job = _job(weather_hold_reason="High winds")
        assert validate_destination(job, JobState.WEATHER_HOLD, FakeRelations()).is_valid

    def test_en_route_and_on_site_need_schedule_and_crew(self):
        en_route = validate_destination(_job(), JobState.EN_ROUTE, FakeRelations())
        on_site = validate_destination(_job(), JobState.ON_SITE, FakeRelations())
        assert en_route.errors == (
            "Job must be scheduled before the crew is en route",
            "Crew must be assigned before the crew is en route",
        )
        assert on_site.errors == (
            "Job must be scheduled before the crew is on site",
            "Crew must be assigned before the crew is on site",
        )
        assert validate_destination(_ready_to_start(), JobState.EN_ROUTE, FakeRelations())


class TestSnapshotUpdates:

    def test_updates_are_seen_by_validators(self):
        job = _job().with_updates({"weather_hold_reason": "Lightning"})
        assert validate_destination(job, JobState.WEATHER_HOLD, FakeRelations()).is_valid

    def test_crew_list_becomes_tuple(self):
        job = _job().with_updates({"assigned_crew": ["c1", "c2"]})
        assert job.assigned_crew == ("c1", "c2")
