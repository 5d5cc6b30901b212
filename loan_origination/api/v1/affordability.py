"""/v1/incomes, /v1/expenses, /v1/affordability - financial profile and assessment"""

from fastapi import APIRouter, Depends

from loan_origination.api.dependencies import get_affordability_engine, get_consumer_id, get_state_machine
from loan_origination.api.v1.schemas import AssessmentResponse, ExpenseRequest, IncomeRequest
from loan_origination.infrastructure.database.models import AffordabilityAssessment
from loan_origination.services.affordability import AffordabilityEngine
from loan_origination.services.applications import ApplicationStateMachine

router = APIRouter()


def to_response(assessment: AffordabilityAssessment) -> AssessmentResponse:
    return AssessmentResponse(
        consumer_id=assessment.consumer_id,
        gross_monthly_income=assessment.gross_monthly_income,
        total_monthly_expenses=assessment.total_monthly_expenses,
        essential_expenses=assessment.essential_expenses,
        non_essential_expenses=assessment.non_essential_expenses,
        net_monthly_income=assessment.net_monthly_income,
        debt_to_income_ratio=assessment.debt_to_income_ratio,
        expense_to_income_ratio=assessment.expense_to_income_ratio,
        available_funds=assessment.available_funds,
        status=assessment.status,
        notes=assessment.notes,
        max_recommended_loan_amount=assessment.max_recommended_loan_amount,
        assessed_at=assessment.assessed_at,
        expires_at=assessment.expires_at,
    )


@router.post("/incomes", response_model=AssessmentResponse, status_code=201)
def add_income(
    request_body: IncomeRequest,
    consumer_id: str = Depends(get_consumer_id),
    engine: AffordabilityEngine = Depends(get_affordability_engine),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Record an income line and return the refreshed assessment"""
    engine.add_income(
        consumer_id,
        request_body.category,
        request_body.description,
        request_body.amount,
        request_body.frequency,
    )
    return to_response(machine.sync_affordability(consumer_id))


@router.post("/expenses", response_model=AssessmentResponse, status_code=201)
def add_expense(
    request_body: ExpenseRequest,
    consumer_id: str = Depends(get_consumer_id),
    engine: AffordabilityEngine = Depends(get_affordability_engine),
    machine: ApplicationStateMachine = Depends(get_state_machine),
):
    """Record an expense line and return the refreshed assessment"""
    engine.add_expense(
        consumer_id,
        request_body.category,
        request_body.description,
        request_body.amount,
        request_body.frequency,
        request_body.is_essential,
    )
    return to_response(machine.sync_affordability(consumer_id))


@router.get("/affordability", response_model=AssessmentResponse)
def get_assessment(
    consumer_id: str = Depends(get_consumer_id),
    engine: AffordabilityEngine = Depends(get_affordability_engine),
):
    """Current assessment (recomputed if missing or older than 30 days)"""
    return to_response(engine.current_assessment(consumer_id))
