import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from budgeting import (
    budget_alerts,
    budget_status,
    calculate_spending,
    daily_spending,
    days_remaining,
    find_overlapping,
)
from database import get_db
from models import BudgetModel, UserModel
from schemas import (
    BudgetAlert,
    BudgetIn,
    BudgetOut,
    BudgetStatsOut,
    BudgetUpdate,
    DataResponse,
    ListResponse,
)
from security import get_current_user

logger = logging.getLogger("finance-backend.budgets")

router = APIRouter(prefix="/budgets", tags=["Budgets"])

OVERLAP_MESSAGE = "Budget already exists for this category and time period"


async def get_owned_budget(db: AsyncSession, user_id: int, budget_id: int) -> BudgetModel:
    result = await db.execute(select(BudgetModel).where(BudgetModel.id == budget_id, BudgetModel.user_id == user_id))
    budget = result.scalar_one_or_none()
    if budget is None:
        raise HTTPException(status_code=404, detail=f"Budget not found with id of {budget_id}")
    return budget


async def with_spending(db: AsyncSession, budget: BudgetModel) -> BudgetOut:
    spent = await calculate_spending(db, budget)
    return BudgetOut.model_validate(budget).model_copy(update=budget_status(budget.limit, spent))


async def _active_budgets(db: AsyncSession, user_id: int, today: date):
    result = await db.execute(
        select(BudgetModel)
        .where(BudgetModel.user_id == user_id, BudgetModel.end_date >= today)
        .order_by(BudgetModel.end_date, BudgetModel.id)
    )
    return result.scalars().all()


@router.get("", response_model=ListResponse[BudgetOut])
async def list_budgets(db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)):
    result = await db.execute(
        select(BudgetModel).where(BudgetModel.user_id == current_user.id).order_by(BudgetModel.start_date, BudgetModel.id)
    )
    budgets = result.scalars().all()
    return {"count": len(budgets), "data": [await with_spending(db, b) for b in budgets]}


@router.get("/stats", response_model=DataResponse[List[BudgetStatsOut]])
async def budget_stats(db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)):
    today = date.today()
    stats = []
    for budget in await _active_budgets(db, current_user.id, today):
        item = await with_spending(db, budget)
        left = days_remaining(budget.end_date, today)
        stats.append(
            BudgetStatsOut.model_validate(
                {
                    **item.model_dump(),
                    "daily_spending": await daily_spending(db, budget, today),
                    "days_remaining": left,
                    "daily_budget": round(item.remaining / max(1, left), 2),
                }
            )
        )
    return {"data": stats}


@router.get("/alerts", response_model=DataResponse[List[BudgetAlert]])
async def budget_alert_list(db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)):
    today = date.today()
    alerts = []
    for budget in await _active_budgets(db, current_user.id, today):
        status_ = budget_status(budget.limit, await calculate_spending(db, budget))
        level, messages = budget_alerts(status_["percentage"], budget.start_date, budget.end_date, today)
        if not messages:
            continue
        alerts.append(
            {
                "budget_id": budget.id,
                "category": budget.category,
                "spent": status_["spent"],
                "limit": budget.limit,
                "percentage": status_["percentage"],
                "level": level,
                "alerts": messages,
            }
        )
    return {"data": alerts}


@router.get("/{budget_id}", response_model=DataResponse[BudgetOut])
async def get_budget(
    budget_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    budget = await get_owned_budget(db, current_user.id, budget_id)
    return {"data": await with_spending(db, budget)}


@router.post("", response_model=DataResponse[BudgetOut], status_code=status.HTTP_201_CREATED)
async def create_budget(
    payload: BudgetIn, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    if await find_overlapping(
        db, current_user.id, payload.category, payload.period, payload.start_date, payload.end_date
    ):
        logger.info("Rejected overlapping %s budget for user %s", payload.category, current_user.id)
        raise HTTPException(status_code=400, detail=OVERLAP_MESSAGE)

    budget = BudgetModel(user_id=current_user.id, **payload.model_dump())
    db.add(budget)
    await db.commit()
    await db.refresh(budget)
    return {"data": await with_spending(db, budget)}


@router.put("/{budget_id}", response_model=DataResponse[BudgetOut])
async def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    budget = await get_owned_budget(db, current_user.id, budget_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    category = changes.get("category", budget.category)
    period = changes.get("period", budget.period)
    start = changes.get("start_date", budget.start_date)
    end = changes.get("end_date", budget.end_date)
    if end < start:
        raise HTTPException(status_code=400, detail="Start date must be before end date")
    if await find_overlapping(db, current_user.id, category, period, start, end, exclude_id=budget.id):
        raise HTTPException(status_code=400, detail=OVERLAP_MESSAGE)

    for field, value in changes.items():
        setattr(budget, field, value)
    await db.commit()
    await db.refresh(budget)
    return {"data": await with_spending(db, budget)}


@router.delete("/{budget_id}", response_model=DataResponse[dict])
async def delete_budget(
    budget_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    budget = await get_owned_budget(db, current_user.id, budget_id)
    await db.delete(budget)
    await db.commit()
    return {"data": {}}
