"""Affordability engine backed by the consumer's stored income and expense records"""

import logging
from typing import Callable, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from loan_origination.domain.affordability import ASSESSMENT_VALIDITY_DAYS, assess_affordability
from loan_origination.domain.models import AuditAction
from loan_origination.infrastructure.database.models import AffordabilityAssessment, ExpenseRecord, IncomeRecord
from loan_origination.infrastructure.database.repositories import (
    AssessmentRepository,
    AuditRepository,
    FinancialProfileRepository,
)
from loan_origination.infrastructure.observability.metrics import record_assessment
from loan_origination.services.unit_of_work import commit as commit_session
from loan_origination.utils.date_utils import days_from, is_past, utcnow


class AffordabilityEngine:
    """Computes and stores the consumer-scoped affordability assessment"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self.profiles = FinancialProfileRepository(db)
        self.assessments = AssessmentRepository(db)
        self.audit = AuditRepository(db)

    def add_income(
        self, consumer_id: str, category: str, description: str, amount: float, frequency: Optional[str] = "Monthly"
    ) -> IncomeRecord:
        """Stage an income line; the following assessment sync commits it"""
        return self.profiles.add_income(consumer_id, category, description, amount, frequency)

    def add_expense(
        self,
        consumer_id: str,
        category: str,
        description: str,
        amount: float,
        frequency: Optional[str] = "Monthly",
        is_essential: bool = False,
    ) -> ExpenseRecord:
        return self.profiles.add_expense(consumer_id, category, description, amount, frequency, is_essential)

    def compute_assessment(self, consumer_id: str, commit: bool = True) -> AffordabilityAssessment:
        """
        Recompute the consumer's assessment from all income and expense records.

        The previous assessment is overwritten (upsert keyed by consumer), so
        calling this from several channels at once is safe. Pass commit=False
        when running inside a larger unit of work.
        """
        summary = assess_affordability(
            self.profiles.incomes_for(consumer_id),
            self.profiles.expenses_for(consumer_id),
        )

        now = self.clock()
        assessment = self.assessments.upsert(
            consumer_id,
            summary,
            assessed_at=now,
            expires_at=days_from(now, ASSESSMENT_VALIDITY_DAYS),
        )
        self.audit.record(
            "AffordabilityAssessment",
            assessment.id,
            AuditAction.AFFORDABILITY_ASSESSED,
            consumer_id,
            {"status": summary.status.value, "max_loan": round(summary.max_recommended_loan_amount, 2)},
        )

        if commit:
            commit_session(self.db)

        record_assessment(summary.status.value)
        logging.info(
            "Affordability assessed",
            extra={
                "consumer_id": consumer_id,
                "status": summary.status.value,
                "gross_monthly_income": summary.gross_monthly_income,
                "debt_to_income_ratio": summary.debt_to_income_ratio,
                "max_recommended_loan_amount": summary.max_recommended_loan_amount,
            },
        )
        return assessment

    def current_assessment(self, consumer_id: str, commit: bool = True) -> AffordabilityAssessment:
        """Stored assessment, recomputed when missing or past its expiry"""
        assessment = self.assessments.get_for_consumer(consumer_id)
        if assessment is None or is_past(assessment.expires_at, self.clock()):
            return self.compute_assessment(consumer_id, commit=commit)
        return assessment
