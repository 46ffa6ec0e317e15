"""
Budget status derivation.

Nothing here is persisted: ``spent`` is summed from the expense transactions
in the budget's category and window each time a budget is read.
"""

from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from models import BudgetModel, TransactionModel

WARNING_THRESHOLD = 75.0
CRITICAL_THRESHOLD = 90.0
PACE_TOLERANCE = 10.0

CRITICAL_MESSAGE = "Critical: Budget almost exhausted"
WARNING_MESSAGE = "Warning: Budget usage high"
PACE_MESSAGE = "Warning: Spending rate higher than expected"


def _expense_filter(user_id: int, category: str, start: date, end: date):
    return (
        TransactionModel.user_id == user_id,
        TransactionModel.category == category,
        TransactionModel.type == "expense",
        TransactionModel.date >= start,
        TransactionModel.date <= end,
    )


async def calculate_spending(db: AsyncSession, budget: BudgetModel) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(TransactionModel.amount), 0.0)).where(
            *_expense_filter(budget.user_id, budget.category, budget.start_date, budget.end_date)
        )
    )
    return float(result.scalar_one() or 0.0)


async def daily_spending(db: AsyncSession, budget: BudgetModel, today: date) -> List[Dict]:
    """Expense totals per day from the budget start up to ``today``."""
    until = min(today, budget.end_date)
    result = await db.execute(
        select(TransactionModel.date, func.sum(TransactionModel.amount))
        .where(*_expense_filter(budget.user_id, budget.category, budget.start_date, until))
        .group_by(TransactionModel.date)
        .order_by(TransactionModel.date)
    )
    return [{"date": day, "total": round(float(total or 0), 2)} for day, total in result.all()]


def budget_status(limit: float, spent: float) -> Dict[str, float]:
    return {
        "spent": round(spent, 2),
        "remaining": round(limit - spent, 2),
        "percentage": round(spent * 100 / limit, 2) if limit else 0.0,
    }


def expected_percentage(start: date, end: date, today: date) -> float:
    """Share of the window already elapsed, both ends counted as whole days."""
    total_days = (end - start).days + 1
    elapsed = min(max((today - start).days + 1, 0), total_days)
    return elapsed * 100 / total_days


def days_remaining(end: date, today: date) -> int:
    return max((end - today).days + 1, 0)


def budget_alerts(percentage: float, start: date, end: date, today: date) -> Tuple[Optional[str], List[str]]:
    """Return ``(level, messages)``; level is None when nothing is flagged."""
    level = None
    alerts = []
    if percentage >= CRITICAL_THRESHOLD:
        level = "critical"
        alerts.append(CRITICAL_MESSAGE)
    elif percentage >= WARNING_THRESHOLD:
        level = "warning"
        alerts.append(WARNING_MESSAGE)

    if percentage > expected_percentage(start, end, today) + PACE_TOLERANCE:
        level = level or "warning"
        alerts.append(PACE_MESSAGE)
    return level, alerts


async def find_overlapping(
    db: AsyncSession,
    user_id: int,
    category: str,
    period: str,
    start: date,
    end: date,
    exclude_id: Optional[int] = None,
) -> Optional[BudgetModel]:
    query = select(BudgetModel).where(
        BudgetModel.user_id == user_id,
        BudgetModel.category == category,
        BudgetModel.period == period,
        BudgetModel.start_date <= end,
        BudgetModel.end_date >= start,
    )
    if exclude_id is not None:
        query = query.where(BudgetModel.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none()
