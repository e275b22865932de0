"""Monthly income normalization and the financial-health score.

All money inputs are integer cents; derived monthly figures are floats in
cents. ``score`` returns an integer 0-100 plus recommendations in a fixed
priority order.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from models import IncomeFrequency, SavingsGoalCategory


WEEKS_PER_MONTH = 4.33
DAYS_PER_MONTH = 30
VARIANCE_TOLERANCE_PERCENT = 5.0
EMERGENCY_FUND_MONTHS = 6

MONTHLY_FACTORS: dict[IncomeFrequency, float] = {
    IncomeFrequency.weekly: WEEKS_PER_MONTH,
    IncomeFrequency.bi_weekly: 2.17,
    IncomeFrequency.monthly: 1.0,
    IncomeFrequency.quarterly: 1 / 3,
    IncomeFrequency.yearly: 1 / 12,
    # One-off income never recurs, so it adds nothing to a typical month.
    IncomeFrequency.one_time: 0.0,
}

NO_DATA_MESSAGE = (
    "Add income sources and set budget allocations to start tracking your "
    "financial health."
)


class IncomeLike(Protocol):
    amount_cents: int
    frequency: IncomeFrequency
    is_active: bool


class CategoryLike(Protocol):
    category: str
    allocated_cents: int
    spent_cents: int


class GoalLike(Protocol):
    target_cents: int
    current_cents: int
    deadline: Optional[date]
    auto_contribution_cents: Optional[int]
    category: SavingsGoalCategory
    is_active: bool


def to_monthly(amount_cents: int, frequency: IncomeFrequency) -> float:
    return amount_cents * MONTHLY_FACTORS[IncomeFrequency(frequency)]


def total_monthly_income(sources: Iterable[IncomeLike]) -> float:
    return sum(to_monthly(s.amount_cents, s.frequency) for s in sources if s.is_active)


def monthly_savings_target(goal: GoalLike, today: date) -> float:
    remaining = max(goal.target_cents - goal.current_cents, 0)
    if goal.deadline is None:
        return float(min(goal.auto_contribution_cents or 0, remaining))
    months_left = max(math.ceil((goal.deadline - today).days / DAYS_PER_MONTH), 1)
    return remaining / months_left


def emergency_fund_goal(goals: Sequence[GoalLike]) -> Optional[GoalLike]:
    tagged = [g for g in goals if g.category == SavingsGoalCategory.emergency_fund]
    tagged.sort(key=lambda g: not g.is_active)
    return tagged[0] if tagged else None


@dataclass(frozen=True)
class BudgetVariance:
    category: str
    budgeted_cents: int
    actual_cents: int
    variance_cents: int
    variance_percent: float
    status: str  # "under" | "over" | "on-target"


def category_variance(category: CategoryLike) -> BudgetVariance:
    budgeted = category.allocated_cents
    actual = category.spent_cents
    variance = actual - budgeted
    if budgeted:
        percent = variance / budgeted * 100
    else:
        percent = 100.0 if actual > 0 else 0.0
    if percent > VARIANCE_TOLERANCE_PERCENT:
        status = "over"
    elif percent < -VARIANCE_TOLERANCE_PERCENT:
        status = "under"
    else:
        status = "on-target"
    return BudgetVariance(
        category=category.category,
        budgeted_cents=budgeted,
        actual_cents=actual,
        variance_cents=variance,
        variance_percent=percent,
        status=status,
    )


@dataclass(frozen=True)
class FinancialSummary:
    total_monthly_income_cents: float
    total_monthly_expenses_cents: int
    total_monthly_savings_cents: float
    net_cash_flow_cents: float
    disposable_income_cents: float
    total_budgeted_cents: int
    budget_variance_cents: int
    budget_variance_percent: float
    category_variances: list[BudgetVariance]


@dataclass(frozen=True)
class FinancialHealth:
    score: int
    income_expense_ratio: float
    savings_rate: float
    emergency_fund_weeks: float
    recommendations: list[str]


def summarize(
    income_sources: Iterable[IncomeLike],
    categories: Sequence[CategoryLike],
    savings_goals: Sequence[GoalLike],
    today: Optional[date] = None,
) -> FinancialSummary:
    today = today or date.today()
    income = total_monthly_income(income_sources)
    expenses = sum(c.spent_cents for c in categories)
    savings = sum(
        monthly_savings_target(g, today) for g in savings_goals if g.is_active
    )
    budgeted = sum(c.allocated_cents for c in categories)
    variance = expenses - budgeted
    return FinancialSummary(
        total_monthly_income_cents=income,
        total_monthly_expenses_cents=expenses,
        total_monthly_savings_cents=savings,
        net_cash_flow_cents=income - expenses,
        disposable_income_cents=income - expenses,
        total_budgeted_cents=budgeted,
        budget_variance_cents=variance,
        budget_variance_percent=(variance / budgeted * 100) if budgeted else 0.0,
        category_variances=[category_variance(c) for c in categories],
    )


def _ratio_points(ratio: float) -> int:
    for threshold, points in ((2.0, 30), (1.5, 25), (1.2, 20), (1.1, 15), (1.0, 10)):
        if ratio >= threshold:
            return points
    return 0


def _savings_points(rate: float) -> int:
    points = 0
    for threshold, step in (
        (20, 30),
        (15, 26),
        (12, 22),
        (10, 18),
        (7, 14),
        (5, 10),
        (3, 6),
    ):
        if rate >= threshold:
            points = step
            break
    else:
        if rate > 0:
            points = 3
    if rate >= 30:
        points += 5
    if rate >= 50:
        points += 5
    return points


def _emergency_points(weeks: float) -> int:
    for threshold, points in ((26, 25), (13, 15), (8, 10), (4, 6)):
        if weeks >= threshold:
            return points
    return 3 if weeks > 0 else 0


def _goal_points(active_goals: int, has_emergency_goal: bool) -> int:
    if active_goals >= 3:
        points = 10
    elif active_goals == 2:
        points = 8
    elif active_goals == 1:
        points = 5
    else:
        points = 0
    return points + (5 if has_emergency_goal else 0)


def _cash_flow_points(net: float, income: float) -> int:
    points = 0
    for fraction, step in ((0.25, 15), (0.20, 13), (0.15, 11), (0.10, 9), (0.05, 6)):
        if net >= income * fraction:
            points = step
            break
    else:
        if net > 0:
            points = 3
        elif net >= income * -0.05:
            points = 1
    if net >= income * 0.50:
        points += 5
    return points


def _dollars(cents: float) -> str:
    return f"${cents / 100:,.2f}"


def score(
    summary: FinancialSummary,
    savings_goals: Sequence[GoalLike],
    total_allocated_cents: int,
) -> FinancialHealth:
    income = summary.total_monthly_income_cents
    expenses = summary.total_monthly_expenses_cents

    if income == 0 and expenses == 0:
        return FinancialHealth(
            score=0,
            income_expense_ratio=0.0,
            savings_rate=0.0,
            emergency_fund_weeks=0.0,
            recommendations=[NO_DATA_MESSAGE],
        )

    if income <= 0:
        ratio = 0.0
    elif expenses <= 0:
        ratio = math.inf
    else:
        ratio = income / expenses
    savings_rate = summary.disposable_income_cents / income * 100 if income > 0 else 0.0

    emergency = emergency_fund_goal(savings_goals)
    weekly_expenses = expenses / WEEKS_PER_MONTH
    if emergency is not None and weekly_expenses > 0:
        emergency_weeks = emergency.current_cents / weekly_expenses
    else:
        emergency_weeks = 0.0

    active_goals = sum(1 for g in savings_goals if g.is_active)
    has_emergency_goal = emergency is not None and emergency.is_active

    total = (
        _ratio_points(ratio)
        + _savings_points(savings_rate)
        + _emergency_points(emergency_weeks)
        + _goal_points(active_goals, has_emergency_goal)
        + _cash_flow_points(summary.net_cash_flow_cents, income)
    )

    # 100 needs a fully funded six-month fund, 91-95 at least ~3 months.
    fund_target = EMERGENCY_FUND_MONTHS * total_allocated_cents
    fund_current = emergency.current_cents if emergency is not None else 0
    final = min(total, 100)
    if emergency is None or fund_current < fund_target:
        final = min(final, 90)
    if emergency_weeks < 13:
        final = min(final, 95)
    final = max(final, 0)

    recommendations: list[str] = []
    if fund_target > 0 and fund_current < fund_target:
        recommendations.append(
            f"Build your emergency fund to {EMERGENCY_FUND_MONTHS} months of your "
            f"budget: {_dollars(fund_target - fund_current)} still to go."
        )

    advice: list[str] = []
    if final >= 85:
        if savings_rate > 50:
            advice.append(
                "Outstanding financial discipline! Consider diversifying investments "
                "or exploring tax-advantaged accounts."
            )
        if emergency_weeks < 26:
            advice.append(
                "Consider building your emergency fund to 6+ months for ultimate "
                "security."
            )
        if active_goals < 2:
            advice.append(
                "With your excellent savings rate, consider setting ambitious "
                "long-term financial goals."
            )
    else:
        if ratio < 1.2:
            advice.append(
                "Consider reducing expenses or increasing income to improve your "
                "financial stability."
            )
        if savings_rate < 10:
            advice.append(
                "Try to save at least 10% of your income for long-term financial "
                "health."
            )
        if emergency_weeks < 13:
            advice.append(
                "Build an emergency fund covering 3-6 months of expenses for "
                "financial security."
            )
        if active_goals == 0:
            advice.append(
                "Set specific savings goals to stay motivated and track your "
                "progress."
            )
        if summary.net_cash_flow_cents < 0:
            advice.append(
                "Your expenses exceed your income. Focus on budgeting and expense "
                "reduction."
            )
        if expenses > income * 0.8:
            advice.append(
                "Your expenses are quite high relative to income. Look for areas "
                "to optimize spending."
            )

    if not advice:
        advice.append("Excellent financial management! Keep up the great work.")
    recommendations.extend(advice)

    return FinancialHealth(
        score=final,
        income_expense_ratio=ratio,
        savings_rate=savings_rate,
        emergency_fund_weeks=emergency_weeks,
        recommendations=recommendations,
    )
