"""Dependency injection for FastAPI endpoints"""

import uuid
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from loan_origination.infrastructure.clients.messaging import MessagingClient
from loan_origination.infrastructure.database.session import get_db
from loan_origination.services.affordability import AffordabilityEngine
from loan_origination.services.applications import ApplicationStateMachine
from loan_origination.services.compliance import ComplianceValidator
from loan_origination.services.signing import SigningWorkflow


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_consumer_id(x_consumer_id: str | None = Header(default=None)) -> str:
    """Authenticated consumer, as forwarded by the channel gateway"""
    if not x_consumer_id:
        raise HTTPException(status_code=401, detail="Missing X-Consumer-Id header")
    return x_consumer_id


def get_reviewer_id(x_reviewer_id: str | None = Header(default=None)) -> str:
    """Back-office user performing an administrative action"""
    if not x_reviewer_id:
        raise HTTPException(status_code=401, detail="Missing X-Reviewer-Id header")
    return x_reviewer_id


def get_messaging_client() -> MessagingClient:
    """Provide messaging gateway client instance"""
    return MessagingClient()


def get_affordability_engine(db: Session = Depends(get_db)) -> AffordabilityEngine:
    return AffordabilityEngine(db)


def get_compliance_validator(db: Session = Depends(get_db)) -> ComplianceValidator:
    return ComplianceValidator(db)


def get_state_machine(db: Session = Depends(get_db)) -> ApplicationStateMachine:
    return ApplicationStateMachine(db)


def get_signing_workflow(
    db: Session = Depends(get_db),
    messaging: MessagingClient = Depends(get_messaging_client),
) -> SigningWorkflow:
    return SigningWorkflow(db, messaging)


def parse_uuid(value: str, label: str = "ID") -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
