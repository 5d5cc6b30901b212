"""Compliance validator reading the live regulatory configuration on every call"""

import logging
from typing import Any, Dict
from sqlalchemy.orm import Session

from loan_origination.domain import compliance as checks
from loan_origination.domain.models import AuditAction, ComplianceResult, ProposedTerms
from loan_origination.infrastructure.database.models import LoanApplication, RegulatoryConfiguration
from loan_origination.infrastructure.database.repositories import AuditRepository, RegulatoryConfigRepository
from loan_origination.infrastructure.observability.metrics import compliance_failure_counter
from loan_origination.services.unit_of_work import commit

EDITABLE_FIELDS = frozenset(
    {
        "max_interest_rate",
        "default_interest_rate",
        "max_initiation_fee",
        "initiation_fee_percentage",
        "max_monthly_service_fee",
        "default_monthly_service_fee",
        "max_debt_to_income_ratio",
        "min_safety_buffer",
        "min_loan_amount",
        "max_loan_amount",
        "min_term_months",
        "max_term_months",
        "cooling_off_period_days",
        "enforce_compliance",
        "allow_cooling_off_cancellation",
    }
)


def _tracked(result: ComplianceResult) -> ComplianceResult:
    if not result.is_compliant:
        compliance_failure_counter.labels(code=result.error_code).inc()
        logging.warning("Compliance check failed", extra={"code": result.error_code, "errors": result.errors})
    return result


class ComplianceValidator:
    """Validates proposed loan terms against regulatory ceilings"""

    def __init__(self, db: Session):
        self.db = db
        self.configs = RegulatoryConfigRepository(db)
        self.audit = AuditRepository(db)

    def configuration(self) -> RegulatoryConfiguration:
        """Current configuration, created with defaults if none exists yet"""
        return self.configs.get_or_create()

    def update_configuration(self, changes: Dict[str, Any], updated_by: str) -> RegulatoryConfiguration:
        """
        Administrative update of any subset of ceilings.

        Raises:
            ValueError: unknown field name
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        config = self.configuration()
        for name, value in changes.items():
            setattr(config, name, value)
        config.updated_by = updated_by

        self.audit.record("RegulatoryConfiguration", config.id, AuditAction.SETTINGS_CHANGED, updated_by, changes)
        commit(self.db)

        logging.info("Regulatory configuration updated", extra={"updated_by": updated_by, "fields": sorted(changes)})
        return config

    def validate_interest_rate(self, interest_rate: float) -> ComplianceResult:
        return _tracked(checks.check_interest_rate(self.configuration(), interest_rate))

    def validate_fees(self, initiation_fee: float, monthly_service_fee: float, loan_amount: float) -> ComplianceResult:
        return _tracked(checks.check_fees(self.configuration(), initiation_fee, monthly_service_fee, loan_amount))

    def validate_loan_terms(self, term_months: int, loan_amount: float) -> ComplianceResult:
        return _tracked(checks.check_loan_terms(self.configuration(), term_months, loan_amount))

    def validate_affordability(
        self, monthly_income: float, monthly_expenses: float, proposed_installment: float
    ) -> ComplianceResult:
        return _tracked(
            checks.check_affordability(self.configuration(), monthly_income, monthly_expenses, proposed_installment)
        )

    def validate_full_compliance(
        self, terms: ProposedTerms, monthly_income: float, monthly_expenses: float
    ) -> ComplianceResult:
        return _tracked(checks.check_full_compliance(self.configuration(), terms, monthly_income, monthly_expenses))

    def proposed_terms_for(self, application: LoanApplication) -> ProposedTerms:
        """
        Terms for an application as the lender would charge them.

        Application rates are stored as fractions; ceilings are in percent.
        Fees are the configured defaults, with the initiation fee at its cap.
        """
        config = self.configuration()
        return ProposedTerms(
            loan_amount=application.amount,
            term_months=application.term_months,
            interest_rate=application.interest_rate * 100,
            monthly_installment=application.monthly_payment,
            initiation_fee=checks.max_initiation_fee(config, application.amount),
            monthly_service_fee=config.default_monthly_service_fee,
        )
