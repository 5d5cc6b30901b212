"""Affordability engine - normalizes income/expense records and classifies borrowing capacity"""

from typing import Iterable, Optional

from loan_origination.domain.models import AffordabilityStatus, AffordabilitySummary, MoneyFlow

MAX_DEBT_TO_INCOME_RATIO = 0.35
LIMITED_NET_INCOME_SHARE = 0.10
LOAN_MARGIN_RESERVE = 0.20

# Reference loan used to turn monthly capacity into a principal
REFERENCE_ANNUAL_RATE = 0.11
REFERENCE_TERM_MONTHS = 36

ASSESSMENT_VALIDITY_DAYS = 30


def normalize_to_monthly(amount: float, frequency: Optional[str]) -> float:
    """
    Convert an amount at the given frequency to a monthly equivalent.

    Uses average weeks per month (4.33 / 2.17) rather than calendar-exact
    conversion. Unknown or missing frequencies are treated as monthly.
    """
    freq = (frequency or "").lower()
    if freq == "weekly":
        return amount * 4.33
    if freq == "bi-weekly":
        return amount * 2.17
    if freq == "annual":
        return amount / 12
    return amount


def classify(ratio: float, net_income: float, gross_income: float) -> AffordabilityStatus:
    """First matching rule wins; the ratio limit is strictly greater-than."""
    if ratio > MAX_DEBT_TO_INCOME_RATIO:
        return AffordabilityStatus.NOT_AFFORDABLE
    if net_income <= 0:
        return AffordabilityStatus.NOT_AFFORDABLE
    if net_income < gross_income * LIMITED_NET_INCOME_SHARE:
        return AffordabilityStatus.LIMITED
    return AffordabilityStatus.AFFORDABLE


def max_recommended_loan(net_income: float) -> float:
    """
    Solve for the principal a consumer could service from 80% of net income.

    The factor is built as [(1+r)·(1+r)^(n-1)] / [(1+r)^n − 1] over a fixed
    36-month, 11% p.a. reference loan. Downstream figures depend on this exact
    construction, so it is kept as-is.
    """
    available = net_income * (1 - LOAN_MARGIN_RESERVE)
    r = REFERENCE_ANNUAL_RATE / 12
    n = REFERENCE_TERM_MONTHS
    factor = ((1 + r) * (1 + r) ** (n - 1)) / ((1 + r) ** n - 1)
    return max(0.0, available / factor)


def build_notes(status: AffordabilityStatus, ratio: float, net_income: float, essential: float, total: float) -> str:
    if status == AffordabilityStatus.NOT_AFFORDABLE and ratio > MAX_DEBT_TO_INCOME_RATIO:
        notes = (
            f"Your debt-to-income ratio of {ratio * 100:.1f}% exceeds the limit of "
            f"{MAX_DEBT_TO_INCOME_RATIO * 100:.0f}%. You may not be approved for additional "
            "loans until your debt levels decrease."
        )
    elif status == AffordabilityStatus.NOT_AFFORDABLE:
        notes = (
            "Your monthly expenses meet or exceed your income. "
            "Consider reducing non-essential expenses before applying for a loan."
        )
    elif status == AffordabilityStatus.LIMITED:
        notes = (
            f"Your available funds after expenses are limited (R{net_income:,.2f}). "
            "A small loan may be considered, but focus on building emergency savings first."
        )
    else:
        notes = (
            f"Your affordability profile is healthy. You have R{net_income:,.2f} available monthly "
            f"and a debt-to-income ratio of {ratio * 100:.1f}%."
        )

    essential_share = (essential / total) * 100 if total > 0 else 0.0
    return notes + f"\n\nExpense Analysis: {essential_share:.1f}% of your expenses are essential."


def assess_affordability(incomes: Iterable[MoneyFlow], expenses: Iterable[MoneyFlow]) -> AffordabilitySummary:
    """
    Main entry point: aggregate income/expense lines into an affordability summary.

    Ratios are zero when gross income is zero.
    """
    expenses = list(expenses)

    gross = sum((normalize_to_monthly(i.amount, i.frequency) for i in incomes), 0.0)
    total_expenses = sum((normalize_to_monthly(e.amount, e.frequency) for e in expenses), 0.0)
    essential = sum((normalize_to_monthly(e.amount, e.frequency) for e in expenses if e.is_essential), 0.0)
    non_essential = total_expenses - essential
    net = gross - total_expenses

    # NOTE: debt-to-income and expense-to-income are the same figure here.
    # Debt service is not separated from other expenses yet; pending product
    # clarification both ratios are total expenses over gross income.
    debt_to_income = total_expenses / gross if gross > 0 else 0.0
    expense_to_income = total_expenses / gross if gross > 0 else 0.0

    status = classify(debt_to_income, net, gross)

    return AffordabilitySummary(
        gross_monthly_income=gross,
        total_monthly_expenses=total_expenses,
        essential_expenses=essential,
        non_essential_expenses=non_essential,
        net_monthly_income=net,
        debt_to_income_ratio=debt_to_income,
        expense_to_income_ratio=expense_to_income,
        available_funds=net,
        status=status,
        notes=build_notes(status, debt_to_income, net, essential, total_expenses),
        max_recommended_loan_amount=max_recommended_loan(net),
    )
