from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

import reporting
from database import IS_SQLITE, get_db
from models import AccountModel, TransactionModel, UserModel
from schemas import DataResponse, ReportItem, ReportOverview
from security import get_current_user

router = APIRouter(prefix="/reports", tags=["Reports"])

_UNITS = {"daily": "day", "monthly": "month", "yearly": "year"}
_SQLITE_FORMATS = {"day": "%Y-%m-%d", "month": "%Y-%m", "year": "%Y"}
_PG_FORMATS = {"day": "YYYY-MM-DD", "month": "YYYY-MM", "year": "YYYY"}


def _bucket(unit: str):
    """Label expression grouping transaction dates into day/month/year buckets."""
    if IS_SQLITE:
        return func.strftime(_SQLITE_FORMATS[unit], TransactionModel.date)
    return func.to_char(func.date_trunc(unit, TransactionModel.date), _PG_FORMATS[unit])


def _check_range(from_date: Optional[date], to_date: Optional[date]):
    if from_date and to_date and from_date > to_date:
        raise HTTPException(status_code=400, detail="Start date must be before end date")


@router.get("/summary", response_model=DataResponse[List[ReportItem]])
async def reports_summary(
    period: Literal["daily", "monthly", "yearly"] = "monthly",
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    _check_range(from_date, to_date)
    label = _bucket(_UNITS[period]).label("label")
    income = func.sum(case((TransactionModel.type == "income", TransactionModel.amount), else_=0)).label("income")
    expense = func.sum(case((TransactionModel.type == "expense", TransactionModel.amount), else_=0)).label("expense")

    query = select(label, income, expense).where(TransactionModel.user_id == current_user.id)
    if from_date:
        query = query.where(TransactionModel.date >= from_date)
    if to_date:
        query = query.where(TransactionModel.date <= to_date)

    result = await db.execute(query.group_by(label).order_by(label))
    data = []
    for r in result.all():
        inc = float(r.income or 0)
        exp = float(r.expense or 0)
        data.append(ReportItem(label=r.label, income=round(inc, 2), expense=round(exp, 2), balance=round(inc - exp, 2)))
    return {"data": data}


@router.get("/overview", response_model=DataResponse[ReportOverview])
async def reports_overview(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    _check_range(start_date, end_date)
    query = select(TransactionModel).where(TransactionModel.user_id == current_user.id)
    if start_date:
        query = query.where(TransactionModel.date >= start_date)
    if end_date:
        query = query.where(TransactionModel.date <= end_date)
    transactions = (await db.execute(query.order_by(TransactionModel.date))).scalars().all()
    accounts = (
        await db.execute(select(AccountModel).where(AccountModel.user_id == current_user.id).order_by(AccountModel.id))
    ).scalars().all()

    return {"data": reporting.overview(transactions, accounts)}
