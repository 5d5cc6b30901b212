"""
Regulatory compliance checks for proposed loan terms.

Every check reads its ceilings from a regulatory configuration object
(anything exposing the RegulatoryConfiguration attributes). When
`enforce_compliance` is off every check succeeds; that switch is evaluated
in one place, `enforcement_guard`.
"""

from functools import wraps
from typing import Callable, List

from loan_origination.domain.models import ComplianceResult, ProposedTerms

RATE_EXCEEDS_CAP = "INTEREST_RATE_EXCEEDS_NCR_CAP"
FEE_EXCEEDS_CAP = "FEE_EXCEEDS_NCR_CAP"
TERMS_NON_COMPLIANT = "LOAN_TERMS_NON_COMPLIANT"
AFFORDABILITY_NON_COMPLIANT = "AFFORDABILITY_NON_COMPLIANT"
FULL_COMPLIANCE_FAILED = "FULL_COMPLIANCE_FAILED"


def enforcement_guard(check: Callable[..., ComplianceResult]) -> Callable[..., ComplianceResult]:
    """Short-circuit a check to success when enforcement is disabled."""

    @wraps(check)
    def guarded(config, *args, **kwargs) -> ComplianceResult:
        if not config.enforce_compliance:
            return ComplianceResult.success()
        return check(config, *args, **kwargs)

    return guarded


@enforcement_guard
def check_interest_rate(config, interest_rate: float) -> ComplianceResult:
    """interest_rate is percent per annum."""
    if interest_rate > config.max_interest_rate:
        return ComplianceResult.failure(
            RATE_EXCEEDS_CAP,
            [
                f"Interest rate of {interest_rate:.2f}% exceeds the maximum of "
                f"{config.max_interest_rate:.2f}% per annum"
            ],
        )
    return ComplianceResult.success()


def max_initiation_fee(config, loan_amount: float) -> float:
    """Lower of the flat cap and the percentage-of-principal cap."""
    return min(config.max_initiation_fee, loan_amount * (config.initiation_fee_percentage / 100))


@enforcement_guard
def check_fees(config, initiation_fee: float, monthly_service_fee: float, loan_amount: float) -> ComplianceResult:
    errors: List[str] = []

    fee_cap = max_initiation_fee(config, loan_amount)
    if initiation_fee > fee_cap:
        errors.append(f"Initiation fee of R{initiation_fee:.2f} exceeds the limit of R{fee_cap:.2f}")

    if monthly_service_fee > config.max_monthly_service_fee:
        errors.append(
            f"Monthly service fee of R{monthly_service_fee:.2f} exceeds the limit of "
            f"R{config.max_monthly_service_fee:.2f}"
        )

    if errors:
        return ComplianceResult.failure(FEE_EXCEEDS_CAP, errors)
    return ComplianceResult.success()


@enforcement_guard
def check_loan_terms(config, term_months: int, loan_amount: float) -> ComplianceResult:
    errors: List[str] = []

    if loan_amount < config.min_loan_amount:
        errors.append(f"Loan amount of R{loan_amount:.2f} is below the minimum of R{config.min_loan_amount:.2f}")
    if loan_amount > config.max_loan_amount:
        errors.append(f"Loan amount of R{loan_amount:.2f} exceeds the maximum of R{config.max_loan_amount:.2f}")
    if term_months < config.min_term_months:
        errors.append(f"Loan term of {term_months} months is below the minimum of {config.min_term_months} months")
    if term_months > config.max_term_months:
        errors.append(f"Loan term of {term_months} months exceeds the maximum of {config.max_term_months} months")

    if errors:
        return ComplianceResult.failure(TERMS_NON_COMPLIANT, errors)
    return ComplianceResult.success()


@enforcement_guard
def check_affordability(
    config,
    monthly_income: float,
    monthly_expenses: float,
    proposed_installment: float,
) -> ComplianceResult:
    """
    Installment-based affordability.

    - debt-to-income = installment / income × 100 (0 when income is 0)
    - remaining income = (income − expenses) − installment
    """
    disposable = monthly_income - monthly_expenses
    ratio = (proposed_installment / monthly_income) * 100 if monthly_income > 0 else 0.0
    remaining = disposable - proposed_installment

    errors: List[str] = []
    if ratio > config.max_debt_to_income_ratio:
        errors.append(
            f"Debt-to-income ratio of {ratio:.2f}% exceeds the limit of {config.max_debt_to_income_ratio:.2f}%"
        )
    if remaining < config.min_safety_buffer:
        errors.append(
            f"Remaining income of R{remaining:.2f} is below the minimum safety buffer of "
            f"R{config.min_safety_buffer:.2f}"
        )
    if proposed_installment > disposable:
        errors.append("Proposed installment exceeds disposable income")

    if errors:
        return ComplianceResult.failure(AFFORDABILITY_NON_COMPLIANT, errors)
    return ComplianceResult.success()


@enforcement_guard
def check_full_compliance(
    config,
    terms: ProposedTerms,
    monthly_income: float,
    monthly_expenses: float,
) -> ComplianceResult:
    """Run all four checks and aggregate every failure message."""
    results = [
        check_interest_rate(config, terms.interest_rate),
        check_fees(config, terms.initiation_fee, terms.monthly_service_fee, terms.loan_amount),
        check_loan_terms(config, terms.term_months, terms.loan_amount),
        check_affordability(config, monthly_income, monthly_expenses, terms.monthly_installment),
    ]

    errors = [r.error_message for r in results if not r.is_compliant]
    if errors:
        return ComplianceResult.failure(FULL_COMPLIANCE_FAILED, errors)
    return ComplianceResult.success()
