"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from loan_origination.domain.models import (
    AffordabilityStatus,
    Channel,
    ContractStatus,
    LoanStatus,
)


class ErrorResponse(BaseModel):
    """Body returned for every domain error"""

    detail: str
    errors: List[str] = []
    error_code: Optional[str] = None


# ---------------------------------------------------------------- applications


class CreateApplicationRequest(BaseModel):
    """Request body for POST /v1/applications"""

    channel: Channel = Channel.WEB
    contact_address: Optional[str] = Field(None, max_length=32, description="Messaging address (conversational)")


class AdvanceStepRequest(BaseModel):
    """Request body for POST /v1/applications/{id}/steps/{step}"""

    payload: Dict[str, Any] = Field(default_factory=dict, description="Raw step fields as captured by the channel")
    expected_version: Optional[int] = Field(None, ge=1, description="Reject the write if the application moved on")


class ResumeRequest(BaseModel):
    """Request body for POST /v1/applications/resume"""

    channel: Channel
    contact_address: Optional[str] = Field(None, max_length=32)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ApplicationResponse(BaseModel):
    """Loan application as seen by either channel"""

    id: str
    consumer_id: str
    status: LoanStatus
    amount: float
    term_months: int
    interest_rate: float
    monthly_payment: float
    total_amount: float
    purpose: Optional[str] = None
    channel_origin: Channel
    current_step: int
    step_data: Dict[str, Any]
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder_name: Optional[str] = None
    affordability_included: bool
    affordability_status: Optional[AffordabilityStatus] = None
    affordability_notes: Optional[str] = None
    notes: Optional[str] = None
    web_initiated_at: Optional[datetime] = None
    conversational_initiated_at: Optional[datetime] = None
    application_date: datetime
    approved_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    version: int


class ResumeResponse(BaseModel):
    found: bool
    application: Optional[ApplicationResponse] = None


class ApplicationListResponse(BaseModel):
    consumer_id: str
    applications: List[ApplicationResponse]


# --------------------------------------------------------------- affordability


class IncomeRequest(BaseModel):
    """Request body for POST /v1/incomes"""

    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=200)
    amount: float = Field(..., ge=0)
    frequency: Optional[str] = Field("Monthly", description="Weekly, Bi-weekly, Monthly or Annual")


class ExpenseRequest(IncomeRequest):
    """Request body for POST /v1/expenses"""

    is_essential: bool = False


class AssessmentResponse(BaseModel):
    consumer_id: str
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
    assessed_at: datetime
    expires_at: datetime


# ------------------------------------------------------------------ compliance


class ConfigurationResponse(BaseModel):
    max_interest_rate: float
    default_interest_rate: float
    max_initiation_fee: float
    initiation_fee_percentage: float
    max_monthly_service_fee: float
    default_monthly_service_fee: float
    max_debt_to_income_ratio: float
    min_safety_buffer: float
    min_loan_amount: float
    max_loan_amount: float
    min_term_months: int
    max_term_months: int
    cooling_off_period_days: int
    enforce_compliance: bool
    allow_cooling_off_cancellation: bool
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None


class ConfigurationUpdateRequest(BaseModel):
    """Any subset of the ceilings; omitted fields are left unchanged"""

    max_interest_rate: Optional[float] = Field(None, gt=0)
    default_interest_rate: Optional[float] = Field(None, gt=0)
    max_initiation_fee: Optional[float] = Field(None, ge=0)
    initiation_fee_percentage: Optional[float] = Field(None, ge=0, le=100)
    max_monthly_service_fee: Optional[float] = Field(None, ge=0)
    default_monthly_service_fee: Optional[float] = Field(None, ge=0)
    max_debt_to_income_ratio: Optional[float] = Field(None, gt=0, le=100)
    min_safety_buffer: Optional[float] = Field(None, ge=0)
    min_loan_amount: Optional[float] = Field(None, gt=0)
    max_loan_amount: Optional[float] = Field(None, gt=0)
    min_term_months: Optional[int] = Field(None, gt=0)
    max_term_months: Optional[int] = Field(None, gt=0)
    cooling_off_period_days: Optional[int] = Field(None, ge=0)
    enforce_compliance: Optional[bool] = None
    allow_cooling_off_cancellation: Optional[bool] = None


class ValidateTermsRequest(BaseModel):
    """Request body for POST /v1/compliance/validate"""

    loan_amount: float = Field(..., gt=0)
    term_months: int = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0, description="Percent per annum")
    monthly_installment: float = Field(..., ge=0)
    initiation_fee: float = Field(0.0, ge=0)
    monthly_service_fee: float = Field(0.0, ge=0)
    monthly_income: float = Field(..., ge=0)
    monthly_expenses: float = Field(..., ge=0)


class ComplianceResultResponse(BaseModel):
    is_compliant: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    errors: List[str] = []


# ------------------------------------------------------------------- contracts


class ContractResponse(BaseModel):
    id: str
    loan_application_id: str
    contract_type: str
    content_ref: str
    status: ContractStatus
    created_at: datetime
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    version: int


class ContractListResponse(BaseModel):
    consumer_id: str
    contracts: List[ContractResponse]


class IssuePinRequest(BaseModel):
    """Request body for POST /v1/contracts/{id}/signing-pin"""

    destination: str = Field(..., min_length=1, max_length=32, description="Messaging address for the PIN")
    signer_name: Optional[str] = Field(None, max_length=200)


class IssuePinResponse(BaseModel):
    contract_id: str
    destination: str
    expires_at: datetime
    delivered: bool
    pin: Optional[str] = None


class VerifyPinRequest(BaseModel):
    pin: str = Field(..., min_length=1, max_length=12)


class CoolingOffStatusResponse(BaseModel):
    application_id: str
    is_within_cooling_off: bool


class CancelLoanRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class CancellationResponse(BaseModel):
    id: str
    loan_application_id: str
    reason: str
    within_cooling_off: bool
    cancelled_at: datetime
