import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

import pytest

from health import (
    NO_DATA_MESSAGE,
    category_variance,
    monthly_savings_target,
    score,
    summarize,
    to_monthly,
    total_monthly_income,
)
from models import IncomeFrequency, SavingsGoalCategory


@dataclass
class Income:
    amount_cents: int
    frequency: IncomeFrequency = IncomeFrequency.monthly
    is_active: bool = True


@dataclass
class Category:
    category: str
    allocated_cents: int
    spent_cents: int


@dataclass
class Goal:
    target_cents: int
    current_cents: int = 0
    deadline: Optional[date] = None
    auto_contribution_cents: Optional[int] = None
    category: SavingsGoalCategory = SavingsGoalCategory.custom
    is_active: bool = True


TODAY = date(2025, 6, 1)


def health_for(incomes, categories, goals):
    summary = summarize(incomes, categories, goals, TODAY)
    return score(summary, goals, summary.total_budgeted_cents)


@pytest.mark.parametrize(
    ("amount", "frequency", "expected"),
    [
        (10_000, IncomeFrequency.weekly, 43_300.0),
        (10_000, IncomeFrequency.bi_weekly, 21_700.0),
        (10_000, IncomeFrequency.monthly, 10_000.0),
        (30_000, IncomeFrequency.quarterly, 10_000.0),
        (120_000, IncomeFrequency.yearly, 10_000.0),
        (500_000, IncomeFrequency.one_time, 0.0),
    ],
)
def test_to_monthly(amount, frequency, expected) -> None:
    assert to_monthly(amount, frequency) == pytest.approx(expected)


def test_inactive_income_is_ignored() -> None:
    sources = [Income(300_000), Income(100_000, is_active=False)]
    assert total_monthly_income(sources) == 300_000


def test_savings_target_spreads_remaining_over_months_left() -> None:
    goal = Goal(target_cents=120_000, current_cents=30_000, deadline=date(2025, 9, 1))
    # 92 days left rounds up to four 30-day months.
    assert monthly_savings_target(goal, TODAY) == pytest.approx(22_500)

    overdue = Goal(
        target_cents=50_000, current_cents=10_000, deadline=date(2025, 1, 1)
    )
    assert monthly_savings_target(overdue, TODAY) == 40_000

    open_ended = Goal(
        target_cents=50_000, current_cents=45_000, auto_contribution_cents=8_000
    )
    assert monthly_savings_target(open_ended, TODAY) == 5_000


def test_category_variance_band() -> None:
    assert category_variance(Category("dining", 10_000, 10_400)).status == "on-target"
    assert category_variance(Category("dining", 10_000, 11_000)).status == "over"
    assert category_variance(Category("dining", 10_000, 8_000)).status == "under"
    unbudgeted = category_variance(Category("pets", 0, 2_000))
    assert (unbudgeted.status, unbudgeted.variance_percent) == ("over", 100.0)


def test_no_data_short_circuit() -> None:
    health = health_for([], [Category("groceries", 0, 0)], [])
    assert health.score == 0
    assert health.recommendations == [NO_DATA_MESSAGE]


def test_missing_emergency_fund_caps_score() -> None:
    incomes = [Income(450_000)]
    categories = [Category("housing", 240_000, 200_000)]

    health = health_for(incomes, categories, [])

    assert health.score == 90
    assert health.income_expense_ratio == pytest.approx(2.25)
    assert "$14,400.00" in health.recommendations[0]
    assert health.recommendations[0].startswith("Build your emergency fund")


def test_partial_coverage_caps_at_95() -> None:
    incomes = [Income(1_000_000)]
    categories = [Category("housing", 100_000, 400_000)]
    goals = [
        Goal(600_000, 600_000, category=SavingsGoalCategory.emergency_fund),
        Goal(200_000),
        Goal(300_000),
    ]

    health = health_for(incomes, categories, goals)

    assert health.emergency_fund_weeks < 13
    assert health.score == 95
    assert not health.recommendations[0].startswith("Build your emergency fund")


def test_fully_funded_household_reaches_100() -> None:
    incomes = [Income(1_000_000)]
    categories = [Category("housing", 100_000, 100_000)]
    goals = [
        Goal(3_000_000, 3_000_000, category=SavingsGoalCategory.emergency_fund),
        Goal(200_000),
        Goal(300_000),
    ]

    health = health_for(incomes, categories, goals)

    assert health.score == 100
    assert health.recommendations == [
        "Outstanding financial discipline! Consider diversifying investments "
        "or exploring tax-advantaged accounts."
    ]


def test_no_expenses_gives_infinite_ratio() -> None:
    health = health_for([Income(200_000)], [Category("housing", 0, 0)], [])
    assert math.isinf(health.income_expense_ratio)
    assert 0 <= health.score <= 100


def test_struggling_household_gets_prioritized_advice() -> None:
    incomes = [Income(300_000)]
    categories = [Category("housing", 300_000, 320_000)]

    health = health_for(incomes, categories, [])

    assert health.score == 0
    prefixes = [
        "Build your emergency fund",
        "Consider reducing expenses",
        "Try to save at least 10%",
        "Build an emergency fund covering",
        "Set specific savings goals",
        "Your expenses exceed your income",
        "Your expenses are quite high",
    ]
    assert len(health.recommendations) == len(prefixes)
    for message, prefix in zip(health.recommendations, prefixes):
        assert message.startswith(prefix)


def test_score_stays_within_bounds_for_odd_inputs() -> None:
    cases = [
        ([Income(0)], [Category("housing", 0, 50_000)], []),
        ([Income(10_000)], [Category("housing", 0, 1_000_000)], [Goal(1)]),
        ([Income(10**9)], [Category("housing", 10**9, 1)], [Goal(1, 10**9)]),
    ]
    for incomes, categories, goals in cases:
        health = health_for(incomes, categories, goals)
        assert isinstance(health.score, int)
        assert 0 <= health.score <= 100


def test_summary_totals() -> None:
    summary = summarize(
        [Income(400_000), Income(10_000, IncomeFrequency.weekly)],
        [Category("housing", 150_000, 150_000), Category("dining", 20_000, 26_000)],
        [Goal(60_000, deadline=date(2025, 11, 28)), Goal(10_000, is_active=False)],
        TODAY,
    )

    assert summary.total_monthly_income_cents == pytest.approx(443_300)
    assert summary.total_monthly_expenses_cents == 176_000
    assert summary.total_budgeted_cents == 170_000
    assert summary.budget_variance_cents == 6_000
    assert summary.total_monthly_savings_cents == pytest.approx(10_000)
    assert summary.net_cash_flow_cents == pytest.approx(267_300)
    assert [v.status for v in summary.category_variances] == ["on-target", "over"]
