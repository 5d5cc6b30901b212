"""
Loan application state machine shared by the web and conversational channels.

Draft → Pending → UnderReview → Approved → Disbursed, with Draft → Cancelled
and Pending/UnderReview → Rejected as alternate exits. Each public method is
one unit of work: load the aggregate, mutate it, commit.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from loan_origination.domain.exceptions import (
    ComplianceViolationError,
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from loan_origination.domain.loan_terms import calculate_loan_terms
from loan_origination.domain.models import AuditAction, Channel, LoanStatus, SessionStatus
from loan_origination.domain.steps import (
    AFFORDABILITY_REVIEW_STEP,
    PREVIEW_TERMS_STEP,
    SUBMITTED_STEP,
    merge_step_data,
    parse_step_payload,
)
from loan_origination.infrastructure.database.models import AffordabilityAssessment, ChannelSession, LoanApplication
from loan_origination.infrastructure.database.repositories import (
    AuditRepository,
    ChannelSessionRepository,
    LoanApplicationRepository,
)
from loan_origination.infrastructure.observability.logging import log_transition
from loan_origination.infrastructure.observability.metrics import (
    applications_created_counter,
    record_transition,
    steps_advanced_counter,
)
from loan_origination.services.affordability import AffordabilityEngine
from loan_origination.services.compliance import ComplianceValidator
from loan_origination.services.unit_of_work import commit
from loan_origination.utils.date_utils import utcnow

SUPERSEDED_NOTE = "Superseded by a newer draft"


def apply_loan_terms(application: LoanApplication) -> None:
    """(Re)price the application when amount and term are both known"""
    if application.amount > 0 and application.term_months > 0:
        terms = calculate_loan_terms(application.amount, application.term_months)
        application.interest_rate = terms.interest_rate
        application.monthly_payment = terms.monthly_payment
        application.total_amount = terms.total_amount


def missing_submission_fields(application: LoanApplication) -> List[str]:
    """Every missing required field, not just the first"""
    errors = []
    if not application.amount or application.amount <= 0:
        errors.append("Loan amount is required")
    if not application.term_months or application.term_months <= 0:
        errors.append("Loan term is required")
    if not application.purpose:
        errors.append("Loan purpose is required")
    if not application.bank_name:
        errors.append("Bank name is required")
    if not application.account_number:
        errors.append("Account number is required")
    if not application.account_holder_name:
        errors.append("Account holder name is required")
    return errors


class ApplicationStateMachine:
    """Owns the lifecycle of loan applications across channels"""

    def __init__(
        self,
        db: Session,
        affordability: Optional[AffordabilityEngine] = None,
        compliance: Optional[ComplianceValidator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.affordability = affordability or AffordabilityEngine(db, clock=clock)
        self.compliance = compliance or ComplianceValidator(db)
        self.applications = LoanApplicationRepository(db)
        self.sessions = ChannelSessionRepository(db)
        self.audit = AuditRepository(db)

    # ------------------------------------------------------------------ reads

    def get_application(self, application_id: uuid.UUID, consumer_id: str) -> LoanApplication:
        application = self.applications.get_owned(application_id, consumer_id)
        if application is None:
            raise NotFoundError("Application not found")
        return application

    def list_applications(self, consumer_id: str) -> List[LoanApplication]:
        return self.applications.list_by_owner(consumer_id)

    # ------------------------------------------------------------- consumer ops

    def create_draft(
        self,
        consumer_id: str,
        channel: Channel,
        contact_address: Optional[str] = None,
    ) -> LoanApplication:
        """
        Start a new draft from either channel.

        A consumer holds at most one draft: older drafts are cancelled here so
        that resume() always has a single candidate.
        """
        now = self.clock()

        for stale in self.applications.list_drafts(consumer_id):
            stale.status = LoanStatus.CANCELLED
            stale.notes = SUPERSEDED_NOTE
            self._close_session(stale, now, notes=SUPERSEDED_NOTE)
            self.audit.record(
                "LoanApplication",
                stale.id,
                AuditAction.LOAN_CANCELLED,
                consumer_id,
                {"reason": SUPERSEDED_NOTE},
            )
            record_transition(LoanStatus.CANCELLED.value)
            log_transition(stale.id, consumer_id, LoanStatus.DRAFT.value, LoanStatus.CANCELLED.value)

        application = LoanApplication(
            id=uuid.uuid4(),
            consumer_id=consumer_id,
            status=LoanStatus.DRAFT,
            channel_origin=channel,
            current_step=0,
            step_data={},
            application_date=now,
        )

        if channel == Channel.WEB:
            application.web_initiated_at = now
        else:
            application.conversational_initiated_at = now

        self.applications.save(application)

        if channel == Channel.CONVERSATIONAL and contact_address:
            session = self._open_session(consumer_id, contact_address, application.id, now)
            application.channel_session_id = session.id

        self.audit.record(
            "LoanApplication",
            application.id,
            AuditAction.APPLICATION_CREATED,
            consumer_id,
            {"channel": channel.value},
        )
        commit(self.db)

        applications_created_counter.labels(channel=channel.value).inc()
        log_transition(application.id, consumer_id, None, LoanStatus.DRAFT.value, step=0)
        return application

    def advance_step(
        self,
        application_id: uuid.UUID,
        consumer_id: str,
        step_number: int,
        payload: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> LoanApplication:
        """
        Record one wizard step.

        Raises:
            NotFoundError: application missing or not owned
            InvalidStateTransitionError: application is no longer a draft
            ValidationFailedError: unknown step or invalid field values
            ConflictError: expected_version is stale or a concurrent write won
        """
        application = self.get_application(application_id, consumer_id)
        self._require_status(application, [LoanStatus.DRAFT], "Only draft applications can be updated")

        if expected_version is not None and expected_version != application.version:
            raise ConflictError(
                f"Application is at version {application.version}, not {expected_version}; reload and retry"
            )

        step = parse_step_payload(step_number, payload)

        application.step_data = merge_step_data(application.step_data, payload)
        step.apply(application)
        application.current_step = max(application.current_step or 0, step_number)

        if step_number == AFFORDABILITY_REVIEW_STEP:
            assessment = self.affordability.compute_assessment(consumer_id, commit=False)
            self._record_affordability(application, assessment)

        if step_number == PREVIEW_TERMS_STEP:
            apply_loan_terms(application)

        commit(self.db)

        steps_advanced_counter.labels(step=str(step_number)).inc()
        logging.info(
            "Application step recorded",
            extra={"application_id": str(application.id), "consumer_id": consumer_id, "step": step_number},
        )
        return application

    def submit(self, application_id: uuid.UUID, consumer_id: str) -> LoanApplication:
        """
        Move a complete draft to Pending.

        Raises:
            ValidationFailedError: one message per missing field
            ComplianceViolationError: rate or amount/term outside the configured limits
        """
        application = self.get_application(application_id, consumer_id)
        self._require_status(application, [LoanStatus.DRAFT], "Only draft applications can be submitted")

        errors = missing_submission_fields(application)
        if errors:
            raise ValidationFailedError(errors)

        if not application.interest_rate or not application.monthly_payment:
            apply_loan_terms(application)

        terms = self.compliance.proposed_terms_for(application)
        for result in (
            self.compliance.validate_interest_rate(terms.interest_rate),
            self.compliance.validate_loan_terms(terms.term_months, terms.loan_amount),
        ):
            if not result.is_compliant:
                self.db.rollback()
                raise ComplianceViolationError(result)

        now = self.clock()
        application.status = LoanStatus.PENDING
        application.application_date = now
        application.current_step = SUBMITTED_STEP

        self._close_session(application, now)

        self.audit.record(
            "LoanApplication",
            application.id,
            AuditAction.APPLICATION_SUBMITTED,
            consumer_id,
            {"amount": application.amount, "term_months": application.term_months},
        )
        commit(self.db)

        record_transition(LoanStatus.PENDING.value)
        log_transition(application.id, consumer_id, LoanStatus.DRAFT.value, LoanStatus.PENDING.value, SUBMITTED_STEP)
        return application

    def resume(
        self,
        consumer_id: str,
        target_channel: Channel,
        contact_address: Optional[str] = None,
    ) -> Optional[LoanApplication]:
        """
        Pick up the consumer's most recent draft from another channel.

        Returns None when the consumer has no draft.
        """
        drafts = self.applications.list_drafts(consumer_id)
        if not drafts:
            return None

        application = drafts[0]
        now = self.clock()

        if target_channel == Channel.WEB and application.web_initiated_at is None:
            application.web_initiated_at = now
        elif target_channel == Channel.CONVERSATIONAL and application.conversational_initiated_at is None:
            application.conversational_initiated_at = now

            if contact_address:
                existing = (
                    self.sessions.get(application.channel_session_id)
                    if application.channel_session_id is not None
                    else None
                )
                if existing is None:
                    session = self._open_session(
                        consumer_id,
                        contact_address,
                        application.id,
                        now,
                        notes=f"Resumed from {application.channel_origin.value}",
                    )
                    application.channel_session_id = session.id
                else:
                    existing.status = SessionStatus.ACTIVE
                    existing.last_updated_at = now

        commit(self.db)

        logging.info(
            "Application resumed",
            extra={
                "application_id": str(application.id),
                "consumer_id": consumer_id,
                "from_channel": application.channel_origin.value,
                "to_channel": target_channel.value,
            },
        )
        return application

    def sync_affordability(self, consumer_id: str) -> AffordabilityAssessment:
        """Recompute the consumer-scoped assessment so both channels read the same figures"""
        try:
            return self.affordability.compute_assessment(consumer_id)
        except Exception:
            logging.exception("Failed to sync affordability", extra={"consumer_id": consumer_id})
            raise

    def cancel_draft(self, application_id: uuid.UUID, consumer_id: str) -> LoanApplication:
        application = self.get_application(application_id, consumer_id)
        self._require_status(application, [LoanStatus.DRAFT], "Only draft applications can be cancelled")
        return self._transition(application, LoanStatus.CANCELLED, consumer_id, AuditAction.LOAN_CANCELLED)

    # ----------------------------------------------------------- reviewer ops

    def start_review(self, application_id: uuid.UUID, reviewer_id: str) -> LoanApplication:
        application = self._get_any(application_id)
        self._require_status(application, [LoanStatus.PENDING], "Only pending applications can be reviewed")
        return self._transition(application, LoanStatus.UNDER_REVIEW, reviewer_id)

    def approve(self, application_id: uuid.UUID, reviewer_id: str) -> LoanApplication:
        """
        Approve an application under review, gated by the full compliance check.

        Raises:
            ComplianceViolationError: any rate/fee/term/affordability ceiling breached
        """
        application = self._get_any(application_id)
        self._require_status(application, [LoanStatus.UNDER_REVIEW], "Only applications under review can be approved")

        assessment = self.affordability.current_assessment(application.consumer_id, commit=False)
        result = self.compliance.validate_full_compliance(
            self.compliance.proposed_terms_for(application),
            assessment.gross_monthly_income,
            assessment.total_monthly_expenses,
        )
        if not result.is_compliant:
            self.db.rollback()
            raise ComplianceViolationError(result)

        application.approved_at = self.clock()
        return self._transition(application, LoanStatus.APPROVED, reviewer_id, AuditAction.APPLICATION_APPROVED)

    def reject(self, application_id: uuid.UUID, reviewer_id: str, reason: str) -> LoanApplication:
        application = self._get_any(application_id)
        self._require_status(
            application,
            [LoanStatus.PENDING, LoanStatus.UNDER_REVIEW],
            "Only pending or under-review applications can be rejected",
        )
        application.notes = reason
        return self._transition(
            application, LoanStatus.REJECTED, reviewer_id, AuditAction.APPLICATION_REJECTED, {"reason": reason}
        )

    # ---------------------------------------------------------------- helpers

    def _get_any(self, application_id: uuid.UUID) -> LoanApplication:
        application = self.applications.get(application_id)
        if application is None:
            raise NotFoundError("Application not found")
        return application

    @staticmethod
    def _require_status(application: LoanApplication, allowed: Iterable[LoanStatus], message: str) -> None:
        if application.status not in allowed:
            raise InvalidStateTransitionError(f"{message} (current status: {application.status.value})")

    def _transition(
        self,
        application: LoanApplication,
        to_status: LoanStatus,
        actor_id: str,
        action: Optional[AuditAction] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> LoanApplication:
        from_status = application.status
        application.status = to_status
        if action is not None:
            self.audit.record("LoanApplication", application.id, action, actor_id, details)
        commit(self.db)

        record_transition(to_status.value)
        log_transition(application.id, application.consumer_id, from_status.value, to_status.value)
        return application

    def _record_affordability(self, application: LoanApplication, assessment: AffordabilityAssessment) -> None:
        application.affordability_included = True
        application.affordability_status = assessment.status
        application.affordability_notes = assessment.notes

    def _close_session(self, application: LoanApplication, now: datetime, notes: Optional[str] = None) -> None:
        if application.channel_session_id is None:
            return
        session = self.sessions.get(application.channel_session_id)
        if session is not None:
            session.status = SessionStatus.COMPLETED
            session.completed_at = now
            session.last_updated_at = now
            if notes:
                session.notes = notes

    def _open_session(
        self,
        consumer_id: str,
        contact_address: str,
        application_id: uuid.UUID,
        now: datetime,
        notes: Optional[str] = None,
    ) -> ChannelSession:
        return self.sessions.save(
            ChannelSession(
                id=uuid.uuid4(),
                consumer_id=consumer_id,
                contact_address=contact_address,
                draft_application_id=application_id,
                status=SessionStatus.ACTIVE,
                created_at=now,
                last_updated_at=now,
                notes=notes,
            )
        )
