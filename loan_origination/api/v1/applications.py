"""/v1/applications - loan application lifecycle shared by both channels"""

import logging
from fastapi import APIRouter, Depends, Request

from loan_origination.api.dependencies import (
    get_consumer_id,
    get_request_id,
    get_reviewer_id,
    get_state_machine,
    parse_uuid,
)
from loan_origination.api.v1.schemas import (
    AdvanceStepRequest,
    ApplicationListResponse,
    ApplicationResponse,
    CreateApplicationRequest,
    RejectRequest,
    ResumeRequest,
    ResumeResponse,
)
from loan_origination.infrastructure.database.models import LoanApplication
from loan_origination.services.applications import ApplicationStateMachine

router = APIRouter()


def to_response(application: LoanApplication) -> ApplicationResponse:
    return ApplicationResponse(
        id=str(application.id),
        consumer_id=application.consumer_id,
        status=application.status,
        amount=application.amount,
        term_months=application.term_months,
        interest_rate=application.interest_rate,
        monthly_payment=application.monthly_payment,
        total_amount=application.total_amount,
        purpose=application.purpose,
        channel_origin=application.channel_origin,
        current_step=application.current_step,
        step_data=application.step_data or {},
        bank_name=application.bank_name,
        account_number=application.account_number,
        account_holder_name=application.account_holder_name,
        affordability_included=application.affordability_included,
        affordability_status=application.affordability_status,
        affordability_notes=application.affordability_notes,
        notes=application.notes,
        web_initiated_at=application.web_initiated_at,
        conversational_initiated_at=application.conversational_initiated_at,
        application_date=application.application_date,
        approved_at=application.approved_at,
        signed_at=application.signed_at,
        version=application.version,
    )


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
def create_application(
    request_body: CreateApplicationRequest,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Start a new draft application from the web or conversational channel"""
    application = machine.create_draft(consumer_id, request_body.channel, request_body.contact_address)
    return to_response(application)


@router.get("/applications", response_model=ApplicationListResponse)
def list_applications(
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Consumer's applications, newest first"""
    applications = machine.list_applications(consumer_id)
    return ApplicationListResponse(consumer_id=consumer_id, applications=[to_response(a) for a in applications])


@router.post("/applications/resume", response_model=ResumeResponse)
def resume_application(
    request_body: ResumeRequest,
    request: Request,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Continue the consumer's latest draft on another channel.

    Returns found=false when there is nothing to resume.
    """
    application = machine.resume(consumer_id, request_body.channel, request_body.contact_address)
    if application is None:
        logging.info(
            "No draft to resume",
            extra={"request_id": get_request_id(request), "consumer_id": consumer_id},
        )
        return ResumeResponse(found=False)
    return ResumeResponse(found=True, application=to_response(application))


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
def get_application(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    application = machine.get_application(parse_uuid(application_id, "application ID"), consumer_id)
    return to_response(application)


@router.post("/applications/{application_id}/steps/{step_number}", response_model=ApplicationResponse)
def advance_step(
    application_id: str,
    step_number: int,
    request_body: AdvanceStepRequest,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """
    Record one wizard step.

    Step 3 refreshes the affordability snapshot, step 4 prices the loan.
    Send expected_version to reject the write if another channel got there first.
    """
    application = machine.advance_step(
        parse_uuid(application_id, "application ID"),
        consumer_id,
        step_number,
        request_body.payload,
        request_body.expected_version,
    )
    return to_response(application)


@router.post("/applications/{application_id}/submit", response_model=ApplicationResponse)
def submit_application(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Submit a complete draft; every missing field is reported at once"""
    application = machine.submit(parse_uuid(application_id, "application ID"), consumer_id)
    return to_response(application)


@router.post("/applications/{application_id}/cancel", response_model=ApplicationResponse)
def cancel_application(
    application_id: str,
    consumer_id: str = Depends(get_consumer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    application = machine.cancel_draft(parse_uuid(application_id, "application ID"), consumer_id)
    return to_response(application)


# Back-office review


@router.post("/admin/applications/{application_id}/review", response_model=ApplicationResponse)
def start_review(
    application_id: str,
    reviewer_id: str = Depends(get_reviewer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    application = machine.start_review(parse_uuid(application_id, "application ID"), reviewer_id)
    return to_response(application)


@router.post("/admin/applications/{application_id}/approve", response_model=ApplicationResponse)
def approve_application(
    application_id: str,
    reviewer_id: str = Depends(get_reviewer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Approve an application under review (fails with 422 on any compliance breach)"""
    application = machine.approve(parse_uuid(application_id, "application ID"), reviewer_id)
    return to_response(application)


@router.post("/admin/applications/{application_id}/reject", response_model=ApplicationResponse)
def reject_application(
    application_id: str,
    request_body: RejectRequest,
    reviewer_id: str = Depends(get_reviewer_id),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    application = machine.reject(parse_uuid(application_id, "application ID"), reviewer_id, request_body.reason)
    return to_response(application)
