"""Unit tests for affordability assessment logic"""

import pytest
from loan_origination.domain.models import AffordabilityStatus, MoneyFlow
from loan_origination.domain.affordability import (
    assess_affordability,
    classify,
    max_recommended_loan,
    normalize_to_monthly,
)


def test_normalize_uses_average_weeks_per_month():
    """Weekly and bi-weekly use 4.33 / 2.17, annual divides by 12"""
    assert normalize_to_monthly(100, "Weekly") == pytest.approx(433.0)
    assert normalize_to_monthly(100, "Bi-weekly") == pytest.approx(217.0)
    assert normalize_to_monthly(1200, "Annual") == pytest.approx(100.0)


def test_normalize_treats_unknown_or_missing_frequency_as_monthly():
    assert normalize_to_monthly(250, "Monthly") == 250
    assert normalize_to_monthly(250, None) == 250
    assert normalize_to_monthly(250, "Fortnightly") == 250


def test_ratio_exactly_at_limit_is_not_unaffordable():
    """The limit is strictly greater-than"""
    summary = assess_affordability([MoneyFlow(1000)], [MoneyFlow(350)])

    assert summary.debt_to_income_ratio == pytest.approx(0.35)
    assert summary.status == AffordabilityStatus.AFFORDABLE


def test_salary_with_expenses_at_thirty_five_percent_is_affordable():
    summary = assess_affordability([MoneyFlow(25000)], [MoneyFlow(8750)])

    assert summary.debt_to_income_ratio == pytest.approx(0.35)
    assert summary.net_monthly_income == 16250
    assert summary.status == AffordabilityStatus.AFFORDABLE


def test_ratio_just_above_limit_is_not_affordable():
    summary = assess_affordability([MoneyFlow(1000)], [MoneyFlow(351)])

    assert summary.status == AffordabilityStatus.NOT_AFFORDABLE
    assert "exceeds the limit of 35%" in summary.notes


def test_limited_when_net_below_ten_percent_of_gross():
    assert classify(0.30, 50, 1000) == AffordabilityStatus.LIMITED
    assert classify(0.30, 100, 1000) == AffordabilityStatus.AFFORDABLE


def test_non_positive_net_is_not_affordable():
    assert classify(0.0, 0, 0) == AffordabilityStatus.NOT_AFFORDABLE
    assert classify(0.2, -10, 1000) == AffordabilityStatus.NOT_AFFORDABLE


def test_zero_income_yields_zero_ratios():
    summary = assess_affordability([], [MoneyFlow(500, is_essential=True)])

    assert summary.gross_monthly_income == 0.0
    assert summary.debt_to_income_ratio == 0.0
    assert summary.expense_to_income_ratio == 0.0
    assert summary.net_monthly_income == -500
    assert summary.status == AffordabilityStatus.NOT_AFFORDABLE
    assert summary.max_recommended_loan_amount == 0.0


def test_empty_profile():
    summary = assess_affordability([], [])

    assert summary.total_monthly_expenses == 0.0
    assert summary.status == AffordabilityStatus.NOT_AFFORDABLE
    assert "0.0% of your expenses are essential" in summary.notes


@pytest.mark.parametrize(
    "incomes,expenses",
    [
        ([MoneyFlow(30000)], [MoneyFlow(8000, is_essential=True), MoneyFlow(1500)]),
        ([MoneyFlow(4000, "Weekly"), MoneyFlow(12000, "Annual")], [MoneyFlow(700, "Bi-weekly", True)]),
        ([MoneyFlow(5000)], [MoneyFlow(2000), MoneyFlow(1000, "Weekly", True), MoneyFlow(600, None, True)]),
    ],
)
def test_summary_identities(incomes, expenses):
    """Total = essential + non-essential, net = gross - total, available = net"""
    summary = assess_affordability(incomes, expenses)

    assert summary.total_monthly_expenses == pytest.approx(
        summary.essential_expenses + summary.non_essential_expenses
    )
    assert summary.net_monthly_income == pytest.approx(
        summary.gross_monthly_income - summary.total_monthly_expenses
    )
    assert summary.available_funds == summary.net_monthly_income
    assert summary.debt_to_income_ratio == summary.expense_to_income_ratio


def test_assessment_is_deterministic():
    incomes = [MoneyFlow(25000), MoneyFlow(300, "Weekly")]
    expenses = [MoneyFlow(9000, is_essential=True), MoneyFlow(2500)]

    assert assess_affordability(incomes, expenses) == assess_affordability(incomes, expenses)


def test_max_recommended_loan_matches_reference_annuity():
    """80% of net income capitalised over 36 months at 11% p.a."""
    r = 0.11 / 12
    growth = (1 + r) ** 36
    expected = 800 * (growth - 1) / growth

    assert max_recommended_loan(1000) == pytest.approx(expected)


def test_max_recommended_loan_never_negative():
    assert max_recommended_loan(-2500) == 0.0


def test_healthy_profile_notes():
    summary = assess_affordability([MoneyFlow(20000)], [MoneyFlow(4000, is_essential=True)])

    assert summary.status == AffordabilityStatus.AFFORDABLE
    assert "R16,000.00 available monthly" in summary.notes
    assert "100.0% of your expenses are essential" in summary.notes
