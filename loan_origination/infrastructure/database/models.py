"""SQLAlchemy ORM models for loan applications, affordability, compliance and contracts"""

import uuid
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Float,
    DateTime,
    Integer,
    ForeignKey,
    Text,
    JSON,
    Uuid,
    Enum,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from loan_origination.domain.models import (
    AffordabilityStatus,
    AuditAction,
    Channel,
    ContractStatus,
    LoanStatus,
    SessionStatus,
)
from loan_origination.utils.date_utils import utcnow

Base = declarative_base()


def _enum(enum_cls):
    # Store the human-readable value ("UnderReview"), not the member name
    return Enum(enum_cls, native_enum=False, values_callable=lambda e: [m.value for m in e], length=32)


class LoanApplication(Base):
    """Loan application aggregate shared by the web and conversational channels"""

    __tablename__ = "loan_application"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(Text, nullable=False, index=True)
    status = Column(_enum(LoanStatus), nullable=False, default=LoanStatus.DRAFT)

    amount = Column(Float, nullable=False, default=0.0)
    term_months = Column(Integer, nullable=False, default=0)
    interest_rate = Column(Float, nullable=False, default=0.0)
    monthly_payment = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False, default=0.0)
    purpose = Column(String(50), nullable=True)

    channel_origin = Column(_enum(Channel), nullable=False)
    current_step = Column(Integer, nullable=False, default=0)
    step_data = Column(JSON, nullable=False, default=dict)

    bank_name = Column(Text, nullable=True)
    account_number = Column(Text, nullable=True)
    account_holder_name = Column(Text, nullable=True)

    affordability_included = Column(Boolean, nullable=False, default=False)
    affordability_status = Column(_enum(AffordabilityStatus), nullable=True)
    affordability_notes = Column(Text, nullable=True)

    notes = Column(Text, nullable=True)
    web_initiated_at = Column(DateTime, nullable=True)
    conversational_initiated_at = Column(DateTime, nullable=True)
    channel_session_id = Column(Uuid, nullable=True)

    application_date = Column(DateTime, nullable=False, default=utcnow)
    approved_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Optimistic concurrency token; SQLAlchemy bumps it on every UPDATE
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    contracts = relationship("Contract", back_populates="loan_application", cascade="all, delete-orphan")


class ChannelSession(Base):
    """Conversational channel session pointing back at a draft application"""

    __tablename__ = "channel_session"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(Text, nullable=False, index=True)
    contact_address = Column(String(32), nullable=False)
    draft_application_id = Column(Uuid, ForeignKey("loan_application.id", ondelete="SET NULL"), nullable=True)
    status = Column(_enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_updated_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class IncomeRecord(Base):
    __tablename__ = "income"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(Text, nullable=False, index=True)
    category = Column(String(100), nullable=False)  # Employment, SelfEmployment, GovernmentGrants, Other
    description = Column(String(200), nullable=False, default="")
    amount = Column(Float, nullable=False)
    frequency = Column(String(50), nullable=True, default="Monthly")
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class ExpenseRecord(Base):
    __tablename__ = "expense"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(Text, nullable=False, index=True)
    category = Column(String(100), nullable=False)  # Housing, Transport, Food, Debt, ...
    description = Column(String(200), nullable=False, default="")
    amount = Column(Float, nullable=False)
    frequency = Column(String(50), nullable=True, default="Monthly")
    is_essential = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class AffordabilityAssessment(Base):
    """Current assessment per consumer; recomputation overwrites the row"""

    __tablename__ = "affordability_assessment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    consumer_id = Column(Text, nullable=False, unique=True)
    gross_monthly_income = Column(Float, nullable=False, default=0.0)
    total_monthly_expenses = Column(Float, nullable=False, default=0.0)
    essential_expenses = Column(Float, nullable=False, default=0.0)
    non_essential_expenses = Column(Float, nullable=False, default=0.0)
    net_monthly_income = Column(Float, nullable=False, default=0.0)
    debt_to_income_ratio = Column(Float, nullable=False, default=0.0)
    expense_to_income_ratio = Column(Float, nullable=False, default=0.0)
    available_funds = Column(Float, nullable=False, default=0.0)
    status = Column(_enum(AffordabilityStatus), nullable=False)
    notes = Column(Text, nullable=False, default="")
    max_recommended_loan_amount = Column(Float, nullable=False, default=0.0)
    assessed_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)


class RegulatoryConfiguration(Base):
    """Singleton row of regulatory ceilings"""

    __tablename__ = "regulatory_configuration"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Rates are percent per annum
    max_interest_rate = Column(Float, nullable=False, default=27.5)
    default_interest_rate = Column(Float, nullable=False, default=24.0)

    max_initiation_fee = Column(Float, nullable=False, default=1140.0)
    initiation_fee_percentage = Column(Float, nullable=False, default=15.0)
    max_monthly_service_fee = Column(Float, nullable=False, default=60.0)
    default_monthly_service_fee = Column(Float, nullable=False, default=50.0)

    max_debt_to_income_ratio = Column(Float, nullable=False, default=35.0)  # percent
    min_safety_buffer = Column(Float, nullable=False, default=500.0)

    min_loan_amount = Column(Float, nullable=False, default=500.0)
    max_loan_amount = Column(Float, nullable=False, default=300_000.0)
    min_term_months = Column(Integer, nullable=False, default=6)
    max_term_months = Column(Integer, nullable=False, default=60)

    cooling_off_period_days = Column(Integer, nullable=False, default=5)

    enforce_compliance = Column(Boolean, nullable=False, default=True)
    allow_cooling_off_cancellation = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    updated_by = Column(Text, nullable=True)


class Contract(Base):
    """Generated credit agreement awaiting (or holding) a signature"""

    __tablename__ = "contract"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(Uuid, ForeignKey("loan_application.id", ondelete="CASCADE"), nullable=False)
    consumer_id = Column(Text, nullable=False, index=True)
    contract_type = Column(String(50), nullable=False, default="CreditAgreement")
    content_ref = Column(Text, nullable=False)
    status = Column(_enum(ContractStatus), nullable=False, default=ContractStatus.DRAFT)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    sent_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    loan_application = relationship("LoanApplication", back_populates="contracts")
    credential = relationship(
        "SigningCredential", back_populates="contract", uselist=False, cascade="all, delete-orphan"
    )


class SigningCredential(Base):
    """Hashed one-time signing PIN for a contract (one row per contract)"""

    __tablename__ = "signing_credential"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id = Column(Uuid, ForeignKey("contract.id", ondelete="CASCADE"), nullable=False, unique=True)
    consumer_id = Column(Text, nullable=False)
    method = Column(String(50), nullable=False, default="ConversationalPIN")
    pin_hash = Column(String(128), nullable=False)
    salt = Column(String(128), nullable=False)
    destination = Column(String(32), nullable=False)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    failed_attempts = Column(Integer, nullable=False, default=0)
    is_valid = Column(Boolean, nullable=False, default=False)

    # Populated when the PIN is verified
    signer_id = Column(Text, nullable=True)
    signer_name = Column(String(200), nullable=True)
    ip_address = Column(String(50), nullable=True)
    user_agent = Column(String(500), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    audit_metadata = Column(JSON, nullable=True)

    contract = relationship("Contract", back_populates="credential")


class LoanCancellation(Base):
    """Cancellation requested inside the cooling-off window"""

    __tablename__ = "loan_cancellation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(Uuid, ForeignKey("loan_application.id", ondelete="CASCADE"), nullable=False)
    consumer_id = Column(Text, nullable=False)
    reason = Column(Text, nullable=False)
    within_cooling_off = Column(Boolean, nullable=False, default=True)
    cancelled_at = Column(DateTime, nullable=False, default=utcnow)


class ComplianceAuditLog(Base):
    """Append-only compliance audit trail"""

    __tablename__ = "compliance_audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Text, nullable=False, index=True)
    action = Column(_enum(AuditAction), nullable=False)
    actor_id = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
