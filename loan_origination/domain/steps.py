"""
Typed wizard step payloads.

Each step number maps to one payload model holding only that step's fields.
Unknown keys are kept (they still land in the application's step data) but
only the typed fields are routed onto application attributes.
"""

from typing import Any, ClassVar, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from loan_origination.domain.exceptions import ValidationFailedError

AFFORDABILITY_REVIEW_STEP = 3
PREVIEW_TERMS_STEP = 4
SUBMITTED_STEP = 7


def clear_pricing(application) -> None:
    """Drop quoted terms so the next pricing pass recomputes them"""
    application.interest_rate = 0.0
    application.monthly_payment = 0.0
    application.total_amount = 0.0


class StepPayload(BaseModel):
    """Base for all step payloads"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    step: ClassVar[int]

    def apply(self, application) -> None:
        """Route typed fields onto the application; no-op by default."""
        return None


class LoanAmountStep(StepPayload):
    step: ClassVar[int] = 0

    amount: Optional[float] = Field(None, gt=0)

    def apply(self, application) -> None:
        if self.amount is not None and self.amount != application.amount:
            application.amount = self.amount
            clear_pricing(application)


class LoanTermStep(StepPayload):
    step: ClassVar[int] = 1

    term_months: Optional[int] = Field(None, alias="termMonths", gt=0)

    def apply(self, application) -> None:
        if self.term_months is not None and self.term_months != application.term_months:
            application.term_months = self.term_months
            clear_pricing(application)


class PurposeStep(StepPayload):
    step: ClassVar[int] = 2

    purpose: Optional[str] = Field(None, min_length=1, max_length=50)
    purpose_description: Optional[str] = Field(None, alias="purposeDescription")

    def apply(self, application) -> None:
        if self.purpose is not None:
            application.purpose = self.purpose


class AffordabilityReviewStep(StepPayload):
    step: ClassVar[int] = AFFORDABILITY_REVIEW_STEP


class PreviewTermsStep(StepPayload):
    step: ClassVar[int] = PREVIEW_TERMS_STEP


class BankDetailsStep(StepPayload):
    step: ClassVar[int] = 5

    bank_name: Optional[str] = Field(None, alias="bankName")
    account_number: Optional[str] = Field(None, alias="accountNumber")
    account_holder_name: Optional[str] = Field(None, alias="accountHolderName")

    def apply(self, application) -> None:
        if self.bank_name is not None:
            application.bank_name = self.bank_name
        if self.account_number is not None:
            application.account_number = self.account_number
        if self.account_holder_name is not None:
            application.account_holder_name = self.account_holder_name


class SignatureStep(StepPayload):
    step: ClassVar[int] = 6

    terms_accepted: Optional[bool] = Field(None, alias="termsAccepted")


STEP_PAYLOADS: Dict[int, Type[StepPayload]] = {
    model.step: model
    for model in (
        LoanAmountStep,
        LoanTermStep,
        PurposeStep,
        AffordabilityReviewStep,
        PreviewTermsStep,
        BankDetailsStep,
        SignatureStep,
    )
}


def parse_step_payload(step_number: int, payload: Dict[str, Any]) -> StepPayload:
    """
    Validate a raw channel payload against its step's model.

    Raises:
        ValidationFailedError: unknown step number or invalid field values
            (one message per problem)
    """
    model = STEP_PAYLOADS.get(step_number)
    if model is None:
        raise ValidationFailedError([f"Unknown step {step_number}"])

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailedError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e


def merge_step_data(existing: Optional[Dict[str, Any]], payload: Dict[str, Any]) -> Dict[str, Any]:
    """Later keys overwrite earlier ones; nothing is ever removed."""
    merged = dict(existing or {})
    merged.update(payload)
    return merged
