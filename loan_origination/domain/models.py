"""Domain models - pure Python dataclasses and enums for the loan lifecycle"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class LoanStatus(str, Enum):
    """Loan application lifecycle states"""

    DRAFT = "Draft"
    PENDING = "Pending"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    DISBURSED = "Disbursed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class Channel(str, Enum):
    """Intake surface the consumer used"""

    WEB = "Web"
    CONVERSATIONAL = "Conversational"


class ContractStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    SIGNED = "Signed"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


class AffordabilityStatus(str, Enum):
    AFFORDABLE = "Affordable"
    LIMITED = "LimitedAffordability"
    NOT_AFFORDABLE = "NotAffordable"


class SessionStatus(str, Enum):
    """Conversational channel session state"""

    ACTIVE = "Active"
    COMPLETED = "Completed"


class AuditAction(str, Enum):
    APPLICATION_CREATED = "LoanApplicationCreated"
    APPLICATION_SUBMITTED = "LoanApplicationSubmitted"
    APPLICATION_APPROVED = "LoanApplicationApproved"
    APPLICATION_REJECTED = "LoanApplicationRejected"
    CONTRACT_GENERATED = "ContractGenerated"
    CONTRACT_SIGNED = "ContractSigned"
    LOAN_CANCELLED = "LoanCancelled"
    SETTINGS_CHANGED = "SettingsChanged"
    AFFORDABILITY_ASSESSED = "AffordabilityAssessed"


CREDIT_AGREEMENT = "CreditAgreement"


@dataclass
class MoneyFlow:
    """Single income or expense line as captured from the consumer"""

    amount: float
    frequency: Optional[str] = "Monthly"  # Weekly, Bi-weekly, Monthly, Annual
    is_essential: bool = False  # expenses only


@dataclass
class AffordabilitySummary:
    """Output of the affordability computation (before persistence)"""

    gross_monthly_income: float
    total_monthly_expenses: float
    essential_expenses: float
    non_essential_expenses: float
    net_monthly_income: float
    debt_to_income_ratio: float
    expense_to_income_ratio: float
    available_funds: float
    status: AffordabilityStatus
    notes: str
    max_recommended_loan_amount: float


@dataclass
class LoanTerms:
    """Derived pricing for an amount/term pair"""

    interest_rate: float  # fraction per annum, e.g. 0.12
    monthly_payment: float
    total_amount: float


@dataclass
class ProposedTerms:
    """Loan terms as presented to the compliance validator"""

    loan_amount: float
    term_months: int
    interest_rate: float  # percent per annum, e.g. 12.0
    monthly_installment: float
    initiation_fee: float = 0.0
    monthly_service_fee: float = 0.0


@dataclass
class ComplianceResult:
    """Outcome of one compliance check (or the composite)"""

    is_compliant: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls) -> "ComplianceResult":
        return cls(is_compliant=True)

    @classmethod
    def failure(cls, error_code: str, errors: List[str]) -> "ComplianceResult":
        return cls(
            is_compliant=False,
            error_code=error_code,
            error_message="; ".join(errors),
            errors=list(errors),
        )


@dataclass
class IssuedCredential:
    """Result of issuing a signing PIN"""

    contract_id: str
    destination: str
    expires_at: datetime
    delivered: bool
    pin: Optional[str] = None  # only populated in development/test mode
