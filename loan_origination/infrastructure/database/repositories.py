"""Data access layer for loan origination aggregates"""

import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from loan_origination.infrastructure.database.models import (
    AffordabilityAssessment,
    ChannelSession,
    ComplianceAuditLog,
    Contract,
    ExpenseRecord,
    IncomeRecord,
    LoanApplication,
    LoanCancellation,
    RegulatoryConfiguration,
    SigningCredential,
)
from loan_origination.domain.models import (
    AffordabilitySummary,
    AuditAction,
    ContractStatus,
    LoanStatus,
    MoneyFlow,
)


class LoanApplicationRepository:
    """Repository for loan applications"""

    def __init__(self, db: Session):
        self.db = db

    def get_owned(self, application_id: uuid.UUID, consumer_id: str) -> Optional[LoanApplication]:
        """Fetch an application only if it belongs to the consumer"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.id == application_id, LoanApplication.consumer_id == consumer_id)
            .first()
        )

    def get(self, application_id: uuid.UUID) -> Optional[LoanApplication]:
        return self.db.get(LoanApplication, application_id)

    def list_by_owner(self, consumer_id: str) -> List[LoanApplication]:
        """Consumer's applications, newest first"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.consumer_id == consumer_id)
            .order_by(LoanApplication.application_date.desc())
            .all()
        )

    def list_drafts(self, consumer_id: str) -> List[LoanApplication]:
        """Consumer's draft applications, newest first"""
        return (
            self.db.query(LoanApplication)
            .filter(LoanApplication.consumer_id == consumer_id, LoanApplication.status == LoanStatus.DRAFT)
            .order_by(LoanApplication.application_date.desc())
            .all()
        )

    def save(self, application: LoanApplication) -> LoanApplication:
        self.db.add(application)
        self.db.flush()
        return application


class ChannelSessionRepository:
    """Repository for conversational channel sessions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, session_id: uuid.UUID) -> Optional[ChannelSession]:
        return self.db.get(ChannelSession, session_id)

    def save(self, session: ChannelSession) -> ChannelSession:
        self.db.add(session)
        self.db.flush()
        return session


class FinancialProfileRepository:
    """Income and expense lines captured from either channel"""

    def __init__(self, db: Session):
        self.db = db

    def add_income(self, consumer_id: str, category: str, description: str, amount: float, frequency: Optional[str]) -> IncomeRecord:
        record = IncomeRecord(
            consumer_id=consumer_id,
            category=category,
            description=description,
            amount=amount,
            frequency=frequency,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def add_expense(
        self,
        consumer_id: str,
        category: str,
        description: str,
        amount: float,
        frequency: Optional[str],
        is_essential: bool,
    ) -> ExpenseRecord:
        record = ExpenseRecord(
            consumer_id=consumer_id,
            category=category,
            description=description,
            amount=amount,
            frequency=frequency,
            is_essential=is_essential,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def incomes_for(self, consumer_id: str) -> List[MoneyFlow]:
        rows = self.db.query(IncomeRecord).filter(IncomeRecord.consumer_id == consumer_id).all()
        return [MoneyFlow(amount=r.amount, frequency=r.frequency) for r in rows]

    def expenses_for(self, consumer_id: str) -> List[MoneyFlow]:
        rows = self.db.query(ExpenseRecord).filter(ExpenseRecord.consumer_id == consumer_id).all()
        return [MoneyFlow(amount=r.amount, frequency=r.frequency, is_essential=r.is_essential) for r in rows]


class AssessmentRepository:
    """Repository for affordability assessments (one row per consumer)"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_consumer(self, consumer_id: str) -> Optional[AffordabilityAssessment]:
        return (
            self.db.query(AffordabilityAssessment)
            .filter(AffordabilityAssessment.consumer_id == consumer_id)
            .first()
        )

    def upsert(self, consumer_id: str, summary: AffordabilitySummary, assessed_at, expires_at) -> AffordabilityAssessment:
        """Replace the consumer's assessment in place; no history is kept"""
        assessment = self.get_for_consumer(consumer_id) or AffordabilityAssessment(consumer_id=consumer_id)

        assessment.gross_monthly_income = summary.gross_monthly_income
        assessment.total_monthly_expenses = summary.total_monthly_expenses
        assessment.essential_expenses = summary.essential_expenses
        assessment.non_essential_expenses = summary.non_essential_expenses
        assessment.net_monthly_income = summary.net_monthly_income
        assessment.debt_to_income_ratio = summary.debt_to_income_ratio
        assessment.expense_to_income_ratio = summary.expense_to_income_ratio
        assessment.available_funds = summary.available_funds
        assessment.status = summary.status
        assessment.notes = summary.notes
        assessment.max_recommended_loan_amount = summary.max_recommended_loan_amount
        assessment.assessed_at = assessed_at
        assessment.expires_at = expires_at

        self.db.add(assessment)
        self.db.flush()
        return assessment


class RegulatoryConfigRepository:
    """Singleton regulatory configuration, created with defaults on first read"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self) -> RegulatoryConfiguration:
        config = self.db.query(RegulatoryConfiguration).order_by(RegulatoryConfiguration.id).first()
        if config is None:
            config = RegulatoryConfiguration()
            self.db.add(config)
            self.db.flush()
        return config


class ContractRepository:
    """Repository for contracts"""

    def __init__(self, db: Session):
        self.db = db

    def get_owned(self, contract_id: uuid.UUID, consumer_id: str) -> Optional[Contract]:
        return (
            self.db.query(Contract)
            .filter(Contract.id == contract_id, Contract.consumer_id == consumer_id)
            .first()
        )

    def find_active_agreement(self, application_id: uuid.UUID, contract_type: str) -> Optional[Contract]:
        """Latest non-cancelled contract of the given type for an application"""
        return (
            self.db.query(Contract)
            .filter(
                Contract.loan_application_id == application_id,
                Contract.contract_type == contract_type,
                Contract.status != ContractStatus.CANCELLED,
            )
            .order_by(Contract.created_at.desc())
            .first()
        )

    def list_by_owner(self, consumer_id: str) -> List[Contract]:
        return (
            self.db.query(Contract)
            .filter(Contract.consumer_id == consumer_id)
            .order_by(Contract.created_at.desc())
            .all()
        )

    def save(self, contract: Contract) -> Contract:
        self.db.add(contract)
        self.db.flush()
        return contract


class CredentialRepository:
    """Repository for signing credentials"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_contract(self, contract_id: uuid.UUID, consumer_id: Optional[str] = None) -> Optional[SigningCredential]:
        query = self.db.query(SigningCredential).filter(SigningCredential.contract_id == contract_id)
        if consumer_id is not None:
            query = query.filter(SigningCredential.consumer_id == consumer_id)
        return query.first()

    def save(self, credential: SigningCredential) -> SigningCredential:
        self.db.add(credential)
        self.db.flush()
        return credential

    def increment_failed_attempts(self, credential: SigningCredential) -> int:
        """
        Atomically bump the failure counter and return the stored value.

        Done as UPDATE ... SET failed_attempts = failed_attempts + 1 so that
        concurrent verifications never overwrite each other's increments.
        """
        self.db.execute(
            update(SigningCredential)
            .where(SigningCredential.id == credential.id)
            .values(failed_attempts=SigningCredential.failed_attempts + 1)
        )
        self.db.refresh(credential, attribute_names=["failed_attempts"])
        return credential.failed_attempts


class CancellationRepository:
    def __init__(self, db: Session):
        self.db = db

    def record(self, application_id: uuid.UUID, consumer_id: str, reason: str) -> LoanCancellation:
        cancellation = LoanCancellation(
            loan_application_id=application_id,
            consumer_id=consumer_id,
            reason=reason,
            within_cooling_off=True,
        )
        self.db.add(cancellation)
        self.db.flush()
        return cancellation


class AuditRepository:
    """Append-only compliance audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        entity_type: str,
        entity_id: Any,
        action: AuditAction,
        actor_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> ComplianceAuditLog:
        entry = ComplianceAuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            actor_id=actor_id,
            details=details,
        )
        self.db.add(entry)
        return entry

    def list_for_entity(self, entity_id: Any) -> List[ComplianceAuditLog]:
        return (
            self.db.query(ComplianceAuditLog)
            .filter(ComplianceAuditLog.entity_id == str(entity_id))
            .order_by(ComplianceAuditLog.id)
            .all()
        )
