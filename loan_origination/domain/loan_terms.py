"""Loan pricing: interest rate bands and amortized repayment"""

from loan_origination.domain.models import LoanTerms

BASE_ANNUAL_RATE = 0.12
LARGE_LOAN_THRESHOLD = 100_000
LARGE_LOAN_DISCOUNT = 0.01
LONG_TERM_THRESHOLD_MONTHS = 24
LONG_TERM_PREMIUM = 0.005
MIN_ANNUAL_RATE = 0.08
MAX_ANNUAL_RATE = 0.18


def interest_rate_for(amount: float, term_months: int) -> float:
    """
    Annual rate for an amount/term pair.

    Rules:
    - 12% base
    - 1% off for loans above R100,000
    - 0.5% premium for terms longer than 24 months
    - clamped to [8%, 18%]
    """
    rate = BASE_ANNUAL_RATE
    if amount > LARGE_LOAN_THRESHOLD:
        rate -= LARGE_LOAN_DISCOUNT
    if term_months > LONG_TERM_THRESHOLD_MONTHS:
        rate += LONG_TERM_PREMIUM
    return max(MIN_ANNUAL_RATE, min(MAX_ANNUAL_RATE, rate))


def monthly_payment_for(amount: float, annual_rate: float, term_months: int) -> float:
    """Standard amortization P = A·r / (1 − (1+r)^−n), rounded to cents."""
    r = annual_rate / 12
    if r == 0:
        return round(amount / term_months, 2)
    payment = amount * r / (1 - (1 + r) ** -term_months)
    return round(payment, 2)


def calculate_loan_terms(amount: float, term_months: int) -> LoanTerms:
    """
    Derive rate, monthly payment and total repayable.

    Example:
        R10,000 over 12 months → 12% p.a., R888.49/month, R10,661.88 total
    """
    if amount <= 0 or term_months <= 0:
        raise ValueError("amount and term_months must be positive")

    rate = interest_rate_for(amount, term_months)
    payment = monthly_payment_for(amount, rate, term_months)
    return LoanTerms(
        interest_rate=rate,
        monthly_payment=payment,
        total_amount=round(payment * term_months, 2),
    )
