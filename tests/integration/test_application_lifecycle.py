"""Integration tests for the application state machine against the test database"""

import pytest
from sqlalchemy.orm import Session
from loan_origination.domain.exceptions import (
    ComplianceViolationError,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from loan_origination.domain.loan_terms import calculate_loan_terms
from loan_origination.domain.models import AffordabilityStatus, AuditAction, Channel, LoanStatus, SessionStatus
from loan_origination.infrastructure.database.models import ChannelSession
from loan_origination.infrastructure.database.repositories import AuditRepository
from loan_origination.services.affordability import AffordabilityEngine
from loan_origination.services.applications import ApplicationStateMachine
from loan_origination.services.compliance import ComplianceValidator

pytestmark = pytest.mark.integration

CONSUMER = "consumer_thandi"

BANK_DETAILS = {"bankName": "Capitec", "accountNumber": "1234567890", "accountHolderName": "Thandi Nkosi"}


@pytest.fixture
def machine(db: Session, clock) -> ApplicationStateMachine:
    return ApplicationStateMachine(db, clock=clock)


def add_salary(machine: ApplicationStateMachine, consumer_id: str = CONSUMER):
    machine.affordability.add_income(consumer_id, "Employment", "Salary", 20000)
    machine.affordability.add_expense(consumer_id, "Housing", "Rent", 4000, is_essential=True)
    machine.affordability.add_expense(consumer_id, "Entertainment", "Streaming", 2000)
    return machine.sync_affordability(consumer_id)


def complete_draft(machine: ApplicationStateMachine, consumer_id: str = CONSUMER):
    application = machine.create_draft(consumer_id, Channel.WEB)
    for step, payload in [
        (0, {"amount": 10000}),
        (1, {"termMonths": 12}),
        (2, {"purpose": "Education"}),
        (3, {}),
        (4, {}),
        (5, BANK_DETAILS),
    ]:
        application = machine.advance_step(application.id, consumer_id, step, payload)
    return application


def test_create_draft_from_web(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    assert application.status == LoanStatus.DRAFT
    assert application.current_step == 0
    assert application.step_data == {}
    assert application.web_initiated_at is not None
    assert application.conversational_initiated_at is None
    assert application.version == 1


def test_new_draft_cancels_previous_draft(machine: ApplicationStateMachine):
    first = machine.create_draft(CONSUMER, Channel.WEB)
    second = machine.create_draft(CONSUMER, Channel.CONVERSATIONAL, "27820000000")

    assert first.status == LoanStatus.CANCELLED
    assert second.status == LoanStatus.DRAFT
    assert [a.id for a in machine.applications.list_drafts(CONSUMER)] == [second.id]


def test_superseded_draft_is_audited_and_its_session_closed(machine: ApplicationStateMachine, db: Session):
    first = machine.create_draft(CONSUMER, Channel.CONVERSATIONAL, "27820000000")
    first_session_id = first.channel_session_id

    second = machine.create_draft(CONSUMER, Channel.WEB)

    assert first.status == LoanStatus.CANCELLED
    assert second.status == LoanStatus.DRAFT
    actions = [e.action for e in AuditRepository(db).list_for_entity(first.id)]
    assert actions == [AuditAction.APPLICATION_CREATED, AuditAction.LOAN_CANCELLED]

    session = db.get(ChannelSession, first_session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.completed_at is not None
    assert session.notes == "Superseded by a newer draft"


def test_step_data_merges_across_calls(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    machine.advance_step(application.id, CONSUMER, 3, {"a": 1})
    application = machine.advance_step(application.id, CONSUMER, 3, {"b": 2})

    assert application.step_data == {"a": 1, "b": 2}


def test_step_counter_never_moves_backwards(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    machine.advance_step(application.id, CONSUMER, 2, {"purpose": "Home"})
    application = machine.advance_step(application.id, CONSUMER, 0, {"amount": 3000})

    assert application.current_step == 2
    assert application.amount == 3000


def test_affordability_step_snapshots_assessment(machine: ApplicationStateMachine):
    add_salary(machine)
    application = machine.create_draft(CONSUMER, Channel.WEB)

    application = machine.advance_step(application.id, CONSUMER, 3, {})

    assert application.affordability_included is True
    assert application.affordability_status == AffordabilityStatus.AFFORDABLE
    assert "healthy" in application.affordability_notes


def test_preview_step_prices_the_loan(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)
    machine.advance_step(application.id, CONSUMER, 0, {"amount": 10000})
    machine.advance_step(application.id, CONSUMER, 1, {"termMonths": 12})

    application = machine.advance_step(application.id, CONSUMER, 4, {})

    assert application.interest_rate == pytest.approx(0.12)
    assert application.monthly_payment == 888.49
    assert application.total_amount == 10661.88


def test_changing_amount_after_preview_reprices_on_submit(machine: ApplicationStateMachine):
    application = complete_draft(machine)
    assert application.interest_rate == pytest.approx(0.12)

    application = machine.advance_step(application.id, CONSUMER, 0, {"amount": 200000})
    assert application.monthly_payment == 0.0

    application = machine.submit(application.id, CONSUMER)

    expected = calculate_loan_terms(200000, 12)
    assert application.amount == 200000
    assert application.interest_rate == pytest.approx(0.11)
    assert application.monthly_payment == expected.monthly_payment
    assert application.total_amount == expected.total_amount


def test_changing_term_after_preview_clears_quoted_terms(machine: ApplicationStateMachine):
    application = complete_draft(machine)

    application = machine.advance_step(application.id, CONSUMER, 1, {"termMonths": 36})
    application = machine.submit(application.id, CONSUMER)

    expected = calculate_loan_terms(10000, 36)
    assert application.interest_rate == pytest.approx(0.125)
    assert application.monthly_payment == expected.monthly_payment


def test_invalid_step_payload_is_rejected(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    with pytest.raises(ValidationFailedError):
        machine.advance_step(application.id, CONSUMER, 0, {"amount": 0})
    with pytest.raises(ValidationFailedError):
        machine.advance_step(application.id, CONSUMER, 8, {})


def test_other_consumer_cannot_see_application(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    with pytest.raises(NotFoundError):
        machine.advance_step(application.id, "someone_else", 0, {"amount": 1000})
    with pytest.raises(NotFoundError):
        machine.get_application(application.id, "someone_else")


def test_submission_reports_every_missing_field(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)
    machine.advance_step(application.id, CONSUMER, 0, {"amount": 10000})
    machine.advance_step(application.id, CONSUMER, 1, {"termMonths": 12})
    machine.advance_step(application.id, CONSUMER, 2, {"purpose": "Education"})

    with pytest.raises(ValidationFailedError) as exc_info:
        machine.submit(application.id, CONSUMER)

    assert exc_info.value.errors == [
        "Bank name is required",
        "Account number is required",
        "Account holder name is required",
    ]


def test_submit_moves_to_pending(machine: ApplicationStateMachine, db: Session):
    application = complete_draft(machine)

    application = machine.submit(application.id, CONSUMER)

    assert application.status == LoanStatus.PENDING
    assert application.current_step == 7
    actions = [e.action for e in AuditRepository(db).list_for_entity(application.id)]
    assert actions == [AuditAction.APPLICATION_CREATED, AuditAction.APPLICATION_SUBMITTED]


def test_submit_prices_unpriced_application(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)
    for step, payload in [(0, {"amount": 5000}), (1, {"termMonths": 6}), (2, {"purpose": "Car"}), (5, BANK_DETAILS)]:
        machine.advance_step(application.id, CONSUMER, step, payload)

    application = machine.submit(application.id, CONSUMER)

    assert application.monthly_payment > 0
    assert application.interest_rate == pytest.approx(0.12)


def test_submit_blocked_by_loan_limits(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)
    for step, payload in [(0, {"amount": 400}), (1, {"termMonths": 12}), (2, {"purpose": "Car"}), (5, BANK_DETAILS)]:
        machine.advance_step(application.id, CONSUMER, step, payload)

    with pytest.raises(ComplianceViolationError) as exc_info:
        machine.submit(application.id, CONSUMER)

    assert exc_info.value.result.error_code == "LOAN_TERMS_NON_COMPLIANT"
    assert machine.get_application(application.id, CONSUMER).status == LoanStatus.DRAFT


def test_submitted_application_is_frozen(machine: ApplicationStateMachine):
    application = complete_draft(machine)
    machine.submit(application.id, CONSUMER)

    with pytest.raises(InvalidStateTransitionError):
        machine.advance_step(application.id, CONSUMER, 0, {"amount": 20000})
    with pytest.raises(InvalidStateTransitionError):
        machine.submit(application.id, CONSUMER)


def test_expected_version_mismatch_is_a_conflict(machine: ApplicationStateMachine):
    application = machine.create_draft(CONSUMER, Channel.WEB)
    machine.advance_step(application.id, CONSUMER, 0, {"amount": 1000}, expected_version=1)

    with pytest.raises(ConflictError):
        machine.advance_step(application.id, CONSUMER, 1, {"termMonths": 12}, expected_version=1)


def test_concurrent_channel_write_is_rejected(machine: ApplicationStateMachine, clock, session_factory):
    application = machine.create_draft(CONSUMER, Channel.WEB)

    other_session = session_factory()
    try:
        other_channel = ApplicationStateMachine(other_session, clock=clock)
        stale = other_channel.get_application(application.id, CONSUMER)
        assert stale.version == 1

        machine.advance_step(application.id, CONSUMER, 0, {"amount": 1000})

        with pytest.raises(ConflictError):
            other_channel.advance_step(stale.id, CONSUMER, 0, {"amount": 9999})
    finally:
        other_session.close()

    assert machine.get_application(application.id, CONSUMER).amount == 1000


def test_resume_on_conversational_channel_opens_session(machine: ApplicationStateMachine, db: Session):
    draft = machine.create_draft(CONSUMER, Channel.WEB)

    resumed = machine.resume(CONSUMER, Channel.CONVERSATIONAL, "27820000000")

    assert resumed.id == draft.id
    assert resumed.conversational_initiated_at is not None
    session = db.get(ChannelSession, resumed.channel_session_id)
    assert session.status == SessionStatus.ACTIVE
    assert session.draft_application_id == draft.id


def test_resume_without_draft_returns_none(machine: ApplicationStateMachine):
    assert machine.resume(CONSUMER, Channel.WEB) is None


def test_resume_does_not_restamp_touched_channel(machine: ApplicationStateMachine, clock):
    draft = machine.create_draft(CONSUMER, Channel.WEB)
    first_touch = draft.web_initiated_at

    clock.advance(hours=2)
    resumed = machine.resume(CONSUMER, Channel.WEB)

    assert resumed.web_initiated_at == first_touch


def test_submit_completes_conversational_session(machine: ApplicationStateMachine, db: Session):
    draft = machine.create_draft(CONSUMER, Channel.CONVERSATIONAL, "27820000000")
    for step, payload in [(0, {"amount": 5000}), (1, {"termMonths": 6}), (2, {"purpose": "Car"}), (5, BANK_DETAILS)]:
        machine.advance_step(draft.id, CONSUMER, step, payload)

    application = machine.submit(draft.id, CONSUMER)

    session = db.get(ChannelSession, application.channel_session_id)
    assert session.status == SessionStatus.COMPLETED
    assert session.completed_at is not None


def test_cancel_draft(machine: ApplicationStateMachine):
    draft = machine.create_draft(CONSUMER, Channel.WEB)

    assert machine.cancel_draft(draft.id, CONSUMER).status == LoanStatus.CANCELLED
    with pytest.raises(InvalidStateTransitionError):
        machine.cancel_draft(draft.id, CONSUMER)


def test_review_and_approve(machine: ApplicationStateMachine):
    add_salary(machine)
    application = complete_draft(machine)
    machine.submit(application.id, CONSUMER)

    machine.start_review(application.id, "reviewer_1")
    application = machine.approve(application.id, "reviewer_1")

    assert application.status == LoanStatus.APPROVED
    assert application.approved_at is not None


def test_approve_blocked_without_affordable_income(machine: ApplicationStateMachine):
    application = complete_draft(machine)
    machine.submit(application.id, CONSUMER)
    machine.start_review(application.id, "reviewer_1")

    with pytest.raises(ComplianceViolationError) as exc_info:
        machine.approve(application.id, "reviewer_1")

    assert exc_info.value.result.error_code == "FULL_COMPLIANCE_FAILED"
    assert machine.get_application(application.id, CONSUMER).status == LoanStatus.UNDER_REVIEW


def test_approve_requires_review(machine: ApplicationStateMachine):
    application = complete_draft(machine)
    machine.submit(application.id, CONSUMER)

    with pytest.raises(InvalidStateTransitionError):
        machine.approve(application.id, "reviewer_1")


def test_reject_records_reason(machine: ApplicationStateMachine):
    application = complete_draft(machine)
    machine.submit(application.id, CONSUMER)

    application = machine.reject(application.id, "reviewer_1", "Incomplete documents")

    assert application.status == LoanStatus.REJECTED
    assert application.notes == "Incomplete documents"


def test_list_applications_newest_first(machine: ApplicationStateMachine, clock):
    first = complete_draft(machine)
    machine.submit(first.id, CONSUMER)
    clock.advance(days=1)
    second = machine.create_draft(CONSUMER, Channel.WEB)

    assert [a.id for a in machine.list_applications(CONSUMER)] == [second.id, first.id]


def test_enforcement_off_allows_out_of_range_terms(machine: ApplicationStateMachine, db: Session):
    ComplianceValidator(db).update_configuration({"enforce_compliance": False}, "admin_1")
    application = machine.create_draft(CONSUMER, Channel.WEB)
    for step, payload in [(0, {"amount": 100}), (1, {"termMonths": 3}), (2, {"purpose": "Car"}), (5, BANK_DETAILS)]:
        machine.advance_step(application.id, CONSUMER, step, payload)

    assert machine.submit(application.id, CONSUMER).status == LoanStatus.PENDING


def test_assessment_is_shared_across_channels(db: Session, clock):
    engine = AffordabilityEngine(db, clock=clock)
    engine.add_income(CONSUMER, "Employment", "Salary", 15000)
    first = engine.compute_assessment(CONSUMER)
    snapshot = (first.gross_monthly_income, first.status, first.max_recommended_loan_amount)

    clock.advance(minutes=5)
    second = engine.compute_assessment(CONSUMER)

    assert second.id == first.id
    assert (second.gross_monthly_income, second.status, second.max_recommended_loan_amount) == snapshot


def test_stale_assessment_is_recomputed(db: Session, clock):
    engine = AffordabilityEngine(db, clock=clock)
    engine.add_income(CONSUMER, "Employment", "Salary", 15000)
    assessment = engine.compute_assessment(CONSUMER)
    original_expiry = assessment.expires_at

    clock.advance(days=31)
    refreshed = engine.current_assessment(CONSUMER)

    assert refreshed.expires_at > original_expiry


def test_stored_profile_at_ratio_limit_is_affordable(db: Session, clock):
    engine = AffordabilityEngine(db, clock=clock)
    engine.add_income(CONSUMER, "Employment", "Salary", 25000)
    engine.add_expense(CONSUMER, "Housing", "Rent", 8750, is_essential=True)

    assessment = engine.compute_assessment(CONSUMER)

    assert assessment.debt_to_income_ratio == pytest.approx(0.35)
    assert assessment.status == AffordabilityStatus.AFFORDABLE
