import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

import config
import storage
from accounts import find_account
from database import get_db
from ledger import apply_effects, diff_effects, effects_of, reversed_effects, transaction_effects
from models import TransactionModel, UserModel
from schemas import (
    DataResponse,
    PaginatedResponse,
    TransactionIn,
    TransactionOut,
    TransactionStats,
    TransactionType,
    TransactionUpdate,
)
from security import get_current_user

logger = logging.getLogger("finance-backend.transactions")

router = APIRouter(prefix="/transactions", tags=["Transactions"])

SORT_FIELDS = {
    "date": TransactionModel.date,
    "amount": TransactionModel.amount,
    "created_at": TransactionModel.created_at,
}
MAX_PAGE_SIZE = 100


async def get_owned_transaction(db: AsyncSession, user_id: int, transaction_id: int) -> TransactionModel:
    result = await db.execute(
        select(TransactionModel).where(TransactionModel.id == transaction_id, TransactionModel.user_id == user_id)
    )
    tx = result.scalar_one_or_none()
    if tx is None:
        raise HTTPException(status_code=404, detail=f"Transaction not found with id of {transaction_id}")
    return tx


async def _check_accounts(db: AsyncSession, user_id: int, *account_ids: Optional[int]):
    for account_id in account_ids:
        if account_id is not None and await find_account(db, user_id, account_id) is None:
            raise HTTPException(status_code=400, detail="Invalid account")


def _date_window(query, start_date: Optional[date], end_date: Optional[date]):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must be before end date")
    if start_date:
        query = query.where(TransactionModel.date >= start_date)
    if end_date:
        query = query.where(TransactionModel.date <= end_date)
    return query


def _order_by(sort: str):
    descending = sort.startswith("-")
    column = SORT_FIELDS.get(sort.lstrip("-"))
    if column is None:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort.lstrip('-')}")
    return (column.desc(), TransactionModel.id.desc()) if descending else (column.asc(), TransactionModel.id.asc())


# ----------------------------------------------------------------------------
# Listing & stats
# ----------------------------------------------------------------------------
@router.get("", response_model=PaginatedResponse[TransactionOut])
async def list_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ttype: Optional[str] = Query(None, alias="type"),
    category: Optional[str] = None,
    account: Optional[str] = None,
    sort: str = "-date",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    query = _date_window(select(TransactionModel).where(TransactionModel.user_id == current_user.id), start_date, end_date)
    if ttype and ttype != "all":
        query = query.where(TransactionModel.type == ttype)
    if category and category != "all":
        query = query.where(TransactionModel.category == category)
    if account and account != "all":
        try:
            query = query.where(TransactionModel.account_id == int(account))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid account")

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(query.order_by(*_order_by(sort)).offset((page - 1) * limit).limit(limit))
    items = result.scalars().all()
    return {
        "count": len(items),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
        "data": items,
    }


@router.get("/stats", response_model=DataResponse[TransactionStats])
async def transaction_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    def scoped(q):
        return _date_window(q.where(TransactionModel.user_id == current_user.id), start_date, end_date)

    by_type = await db.execute(
        scoped(
            select(
                TransactionModel.type,
                func.sum(TransactionModel.amount),
                func.count(TransactionModel.id),
                func.avg(TransactionModel.amount),
            )
        ).group_by(TransactionModel.type).order_by(TransactionModel.type)
    )
    total_col = func.sum(TransactionModel.amount).label("total")
    by_category = await db.execute(
        scoped(select(TransactionModel.category, total_col, func.count(TransactionModel.id)))
        .group_by(TransactionModel.category)
        .order_by(total_col.desc())
    )
    return {
        "data": {
            "overview": [
                {"type": t, "total": round(float(s or 0), 2), "count": c, "avg_amount": round(float(a or 0), 2)}
                for t, s, c, a in by_type.all()
            ],
            "by_category": [
                {"category": cat, "total": round(float(s or 0), 2), "count": c} for cat, s, c in by_category.all()
            ],
        }
    }


# ----------------------------------------------------------------------------
# CRUD
# ----------------------------------------------------------------------------
@router.get("/{transaction_id}", response_model=DataResponse[TransactionOut])
async def get_transaction(
    transaction_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    return {"data": await get_owned_transaction(db, current_user.id, transaction_id)}


@router.post("", response_model=DataResponse[TransactionOut], status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionIn, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    await _check_accounts(db, current_user.id, payload.account_id, payload.to_account_id)

    tx = TransactionModel(user_id=current_user.id, **payload.model_dump())
    db.add(tx)
    await apply_effects(db, transaction_effects(tx))
    await db.commit()
    await db.refresh(tx)
    logger.info("User %s created %s transaction %s", current_user.id, tx.type, tx.id)
    return {"data": tx}


@router.put("/{transaction_id}", response_model=DataResponse[TransactionOut])
async def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    tx = await get_owned_transaction(db, current_user.id, transaction_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    new_type: TransactionType = changes.get("type", tx.type)
    new_amount = changes.get("amount", tx.amount)
    new_account_id = changes.get("account_id", tx.account_id)
    new_to_account_id = changes.get("to_account_id", tx.to_account_id) if new_type == "transfer" else None
    if new_type == "transfer":
        if new_to_account_id is None:
            raise HTTPException(status_code=400, detail="to_account_id is required for transfers")
        if new_to_account_id == new_account_id:
            raise HTTPException(status_code=400, detail="Cannot transfer to the same account")

    moved = [a for a, old in ((new_account_id, tx.account_id), (new_to_account_id, tx.to_account_id)) if a != old]
    await _check_accounts(db, current_user.id, *moved)

    net = diff_effects(transaction_effects(tx), effects_of(new_type, new_amount, new_account_id, new_to_account_id))
    await apply_effects(db, net)

    changes["to_account_id"] = new_to_account_id
    for field, value in changes.items():
        setattr(tx, field, value)
    await db.commit()
    await db.refresh(tx)
    return {"data": tx}


@router.delete("/{transaction_id}", response_model=DataResponse[dict])
async def delete_transaction(
    transaction_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    tx = await get_owned_transaction(db, current_user.id, transaction_id)
    await apply_effects(db, reversed_effects(transaction_effects(tx)))
    await db.delete(tx)
    await db.commit()
    return {"data": {}}


@router.post("/{transaction_id}/receipt", response_model=DataResponse[TransactionOut])
async def upload_receipt(
    transaction_id: int,
    receipt: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    tx = await get_owned_transaction(db, current_user.id, transaction_id)
    # one byte past the limit is enough to reject an oversized file
    content = await receipt.read(config.MAX_RECEIPT_BYTES + 1)
    try:
        url = await storage.upload_receipt(receipt.filename, content, receipt.content_type)
    except storage.ReceiptError as e:
        raise HTTPException(status_code=400, detail=str(e))

    tx.receipt_url = url
    await db.commit()
    await db.refresh(tx)
    return {"data": tx}
