"""/v1/contracts - credit agreements, PIN signing and cooling-off cancellation"""

from fastapi import APIRouter, Depends, Request

from loan_origination.api.dependencies import get_consumer_id, get_signing_workflow, parse_uuid
from loan_origination.api.v1.schemas import (
    CancelLoanRequest,
    CancellationResponse,
    ContractListResponse,
    ContractResponse,
    CoolingOffStatusResponse,
    IssuePinRequest,
    IssuePinResponse,
    VerifyPinRequest,
)
from loan_origination.infrastructure.database.models import Contract
from loan_origination.services.signing import SigningWorkflow

router = APIRouter()


def to_response(contract: Contract) -> ContractResponse:
    return ContractResponse(
        id=str(contract.id),
        loan_application_id=str(contract.loan_application_id),
        contract_type=contract.contract_type,
        content_ref=contract.content_ref,
        status=contract.status,
        created_at=contract.created_at,
        sent_at=contract.sent_at,
        signed_at=contract.signed_at,
        expires_at=contract.expires_at,
        version=contract.version,
    )


@router.post("/applications/{application_id}/contract", response_model=ContractResponse, status_code=201)
def generate_contract(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    """Generate (or return the existing) credit agreement for an approved application"""
    contract = workflow.generate_contract(parse_uuid(application_id, "application ID"), consumer_id)
    return to_response(contract)


@router.get("/contracts", response_model=ContractListResponse)
def list_contracts(
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    contracts = workflow.list_contracts(consumer_id)
    return ContractListResponse(consumer_id=consumer_id, contracts=[to_response(c) for c in contracts])


@router.get("/contracts/{contract_id}", response_model=ContractResponse)
def get_contract(
    contract_id: str,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    return to_response(workflow.get_contract(parse_uuid(contract_id, "contract ID"), consumer_id))


@router.post("/contracts/{contract_id}/signing-pin", response_model=IssuePinResponse)
def issue_signing_pin(
    contract_id: str,
    request_body: IssuePinRequest,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    """
    Send a one-time signing PIN to the consumer.

    The PIN is only echoed back when development mode is enabled.
    """
    issued = workflow.issue_credential(
        parse_uuid(contract_id, "contract ID"),
        consumer_id,
        request_body.destination,
        request_body.signer_name,
    )
    return IssuePinResponse(
        contract_id=issued.contract_id,
        destination=issued.destination,
        expires_at=issued.expires_at,
        delivered=issued.delivered,
        pin=issued.pin,
    )


@router.post("/contracts/{contract_id}/sign", response_model=ContractResponse)
def sign_contract(
    contract_id: str,
    request_body: VerifyPinRequest,
    request: Request,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    contract = workflow.verify_credential(
        parse_uuid(contract_id, "contract ID"),
        consumer_id,
        request_body.pin,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return to_response(contract)


@router.get("/applications/{application_id}/cooling-off", response_model=CoolingOffStatusResponse)
def cooling_off_status(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    application_uuid = parse_uuid(application_id, "application ID")
    return CoolingOffStatusResponse(
        application_id=str(application_uuid),
        is_within_cooling_off=workflow.cooling_off_status(application_uuid, consumer_id),
    )


@router.post("/applications/{application_id}/cooling-off/cancel", response_model=CancellationResponse)
def cancel_in_cooling_off(
    application_id: str,
    request_body: CancelLoanRequest,
    consumer_id: str = Depends(get_consumer_id),
    workflow: SigningWorkflow = Depends(get_signing_workflow),
):
    """Cancel a signed loan without penalty while the cooling-off window is open"""
    cancellation = workflow.cancel_within_cooling_off(
        parse_uuid(application_id, "application ID"), consumer_id, request_body.reason
    )
    return CancellationResponse(
        id=str(cancellation.id),
        loan_application_id=str(cancellation.loan_application_id),
        reason=cancellation.reason,
        within_cooling_off=cancellation.within_cooling_off,
        cancelled_at=cancellation.cancelled_at,
    )
