"""/v1/compliance and /v1/admin/compliance - regulatory ceilings and term validation"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from loan_origination.api.dependencies import get_compliance_validator, get_request_id, get_reviewer_id
from loan_origination.api.v1.schemas import (
    ComplianceResultResponse,
    ConfigurationResponse,
    ConfigurationUpdateRequest,
    ValidateTermsRequest,
)
from loan_origination.domain.models import ComplianceResult, ProposedTerms
from loan_origination.infrastructure.database.models import RegulatoryConfiguration
from loan_origination.services.compliance import ComplianceValidator

router = APIRouter()


def to_response(config: RegulatoryConfiguration) -> ConfigurationResponse:
    return ConfigurationResponse(
        max_interest_rate=config.max_interest_rate,
        default_interest_rate=config.default_interest_rate,
        max_initiation_fee=config.max_initiation_fee,
        initiation_fee_percentage=config.initiation_fee_percentage,
        max_monthly_service_fee=config.max_monthly_service_fee,
        default_monthly_service_fee=config.default_monthly_service_fee,
        max_debt_to_income_ratio=config.max_debt_to_income_ratio,
        min_safety_buffer=config.min_safety_buffer,
        min_loan_amount=config.min_loan_amount,
        max_loan_amount=config.max_loan_amount,
        min_term_months=config.min_term_months,
        max_term_months=config.max_term_months,
        cooling_off_period_days=config.cooling_off_period_days,
        enforce_compliance=config.enforce_compliance,
        allow_cooling_off_cancellation=config.allow_cooling_off_cancellation,
        updated_at=config.updated_at,
        updated_by=config.updated_by,
    )


def result_response(result: ComplianceResult) -> ComplianceResultResponse:
    return ComplianceResultResponse(
        is_compliant=result.is_compliant,
        error_code=result.error_code,
        error_message=result.error_message,
        errors=result.errors,
    )


@router.get("/admin/compliance/configuration", response_model=ConfigurationResponse)
def get_configuration(
    reviewer_id: str = Depends(get_reviewer_id),
    validator: ComplianceValidator = Depends(get_compliance_validator),
):
    return to_response(validator.configuration())


@router.put("/admin/compliance/configuration", response_model=ConfigurationResponse)
def update_configuration(
    request_body: ConfigurationUpdateRequest,
    request: Request,
    reviewer_id: str = Depends(get_reviewer_id),
    validator: ComplianceValidator = Depends(get_compliance_validator),
):
    """Update any subset of the ceilings; the change is written to the audit log"""
    changes = request_body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=422, detail="No configuration fields supplied")

    try:
        config = validator.update_configuration(changes, reviewer_id)
    except ValueError as e:
        logging.warning(f"Rejected configuration update: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=422, detail=str(e))

    return to_response(config)


@router.post("/compliance/validate", response_model=ComplianceResultResponse)
def validate_terms(
    request_body: ValidateTermsRequest,
    validator: ComplianceValidator = Depends(get_compliance_validator),
):
    """
    Run the full compliance check against proposed terms.

    Returns:
        The composite result; a non-compliant result is still a 200
    """
    terms = ProposedTerms(
        loan_amount=request_body.loan_amount,
        term_months=request_body.term_months,
        interest_rate=request_body.interest_rate,
        monthly_installment=request_body.monthly_installment,
        initiation_fee=request_body.initiation_fee,
        monthly_service_fee=request_body.monthly_service_fee,
    )
    result = validator.validate_full_compliance(terms, request_body.monthly_income, request_body.monthly_expenses)
    return result_response(result)
