import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import get_db
from models import SYSTEM_CATEGORIES, BudgetModel, CategoryModel, TransactionModel, UserModel
from schemas import (
    CategoryDetail,
    CategoryIn,
    CategoryOut,
    CategorySummary,
    CategoryType,
    CategoryUpdate,
    CategoryWithStats,
    DataResponse,
    ListResponse,
    TransactionOut,
    UsageStats,
)
from security import get_current_user

logger = logging.getLogger("finance-backend.categories")

router = APIRouter(prefix="/categories", tags=["Categories"])

USAGE_WINDOW_DAYS = 30
RECENT_LIMIT = 5


def visible_to(user_id: int):
    """System categories plus the user's own."""
    return or_(CategoryModel.user_id == user_id, CategoryModel.is_custom.is_(False))


async def seed_system_categories(db: AsyncSession) -> int:
    result = await db.execute(select(CategoryModel.name).where(CategoryModel.is_custom.is_(False)))
    existing = set(result.scalars().all())
    missing = [(name, type_) for name, type_ in SYSTEM_CATEGORIES if name not in existing]
    for name, type_ in missing:
        db.add(CategoryModel(name=name, type=type_, is_custom=False))
    await db.commit()
    if missing:
        logger.info("Seeded %d system categories", len(missing))
    return len(missing)


async def get_visible_category(db: AsyncSession, user_id: int, category_id: int) -> CategoryModel:
    result = await db.execute(select(CategoryModel).where(CategoryModel.id == category_id, visible_to(user_id)))
    category = result.scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=404, detail=f"Category not found with id of {category_id}")
    return category


async def get_custom_category(db: AsyncSession, user_id: int, category_id: int, action: str) -> CategoryModel:
    result = await db.execute(
        select(CategoryModel).where(
            CategoryModel.id == category_id,
            CategoryModel.user_id == user_id,
            CategoryModel.is_custom.is_(True),
        )
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=404, detail=f"Category not found or cannot be {action}")
    return category


async def _name_taken(db: AsyncSession, user_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(CategoryModel.id).where(CategoryModel.name == name, visible_to(user_id))
    if exclude_id is not None:
        query = query.where(CategoryModel.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def _check_parent(db: AsyncSession, user_id: int, parent_id: int, child_id: Optional[int] = None):
    """Parents must be visible top-level categories; the hierarchy is two tiers deep."""
    result = await db.execute(select(CategoryModel).where(CategoryModel.id == parent_id, visible_to(user_id)))
    parent = result.scalar_one_or_none()
    if parent is None or parent.parent_id is not None or parent.id == child_id:
        raise HTTPException(status_code=400, detail="Invalid parent category")
    if child_id is not None:
        children = await db.execute(select(CategoryModel.id).where(CategoryModel.parent_id == child_id).limit(1))
        if children.first() is not None:
            raise HTTPException(status_code=400, detail="Invalid parent category")


def _usage_columns():
    return (
        func.sum(TransactionModel.amount),
        func.count(TransactionModel.id),
        func.avg(TransactionModel.amount),
    )


def _usage(total, count, avg) -> dict:
    return {"total_amount": round(float(total or 0), 2), "count": count or 0, "avg_amount": round(float(avg or 0), 2)}


# ----------------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------------
@router.get("", response_model=ListResponse[CategoryWithStats])
async def list_categories(
    ctype: Optional[CategoryType] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    query = select(CategoryModel).where(visible_to(current_user.id))
    if ctype:
        query = query.where(CategoryModel.type == ctype)
    categories = (await db.execute(query.order_by(CategoryModel.name, CategoryModel.id))).scalars().all()

    since = date.today() - timedelta(days=USAGE_WINDOW_DAYS)
    usage_rows = await db.execute(
        select(TransactionModel.category, *_usage_columns())
        .where(TransactionModel.user_id == current_user.id, TransactionModel.date >= since)
        .group_by(TransactionModel.category)
    )
    usage = {name: _usage(total, count, avg) for name, total, count, avg in usage_rows.all()}

    empty = _usage(0, 0, 0)
    data = [
        CategoryWithStats.model_validate(c).model_copy(update={"stats": UsageStats(**usage.get(c.name, empty))})
        for c in categories
    ]
    return {"count": len(data), "data": data}


@router.get("/stats", response_model=DataResponse[List[CategorySummary]])
async def category_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    ttype: Optional[str] = Query(None, alias="type"),
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    total_col = func.sum(TransactionModel.amount).label("total")
    query = select(
        TransactionModel.category,
        total_col,
        func.count(TransactionModel.id),
        func.avg(TransactionModel.amount),
        func.min(TransactionModel.amount),
        func.max(TransactionModel.amount),
        func.min(TransactionModel.date),
        func.max(TransactionModel.date),
    ).where(TransactionModel.user_id == current_user.id)
    if start_date:
        query = query.where(TransactionModel.date >= start_date)
    if end_date:
        query = query.where(TransactionModel.date <= end_date)
    if ttype:
        query = query.where(TransactionModel.type == ttype)

    rows = await db.execute(query.group_by(TransactionModel.category).order_by(total_col.desc()))
    return {
        "data": [
            {
                "category": name,
                "total_amount": round(float(total), 2),
                "count": count,
                "avg_amount": round(float(avg), 2),
                "min_amount": float(low),
                "max_amount": float(high),
                "first_transaction": first,
                "last_transaction": last,
            }
            for name, total, count, avg, low, high, first, last in rows.all()
        ]
    }


@router.get("/{category_id}", response_model=DataResponse[CategoryDetail])
async def get_category(
    category_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    category = await get_visible_category(db, current_user.id, category_id)
    scope = (TransactionModel.user_id == current_user.id, TransactionModel.category == category.name)

    year = func.extract("year", TransactionModel.date).label("year")
    month = func.extract("month", TransactionModel.date).label("month")
    monthly = await db.execute(
        select(year, month, *_usage_columns()).where(*scope).group_by(year, month).order_by(year.desc(), month.desc())
    )
    recent = await db.execute(
        select(TransactionModel)
        .where(*scope)
        .order_by(TransactionModel.date.desc(), TransactionModel.id.desc())
        .limit(RECENT_LIMIT)
    )

    detail = CategoryDetail.model_validate(
        {
            **CategoryOut.model_validate(category).model_dump(),
            "monthly_stats": [
                {"year": int(y), "month": int(m), **_usage(total, count, avg)}
                for y, m, total, count, avg in monthly.all()
            ],
            "recent_transactions": [TransactionOut.model_validate(t) for t in recent.scalars().all()],
        }
    )
    return {"data": detail}


@router.get("/{category_id}/subcategories", response_model=ListResponse[CategoryOut])
async def list_subcategories(
    category_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    await get_visible_category(db, current_user.id, category_id)
    result = await db.execute(
        select(CategoryModel)
        .where(CategoryModel.parent_id == category_id, visible_to(current_user.id))
        .order_by(CategoryModel.name)
    )
    children = result.scalars().all()
    return {"count": len(children), "data": children}


@router.post("", response_model=DataResponse[CategoryOut], status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryIn, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    if await _name_taken(db, current_user.id, payload.name):
        raise HTTPException(status_code=400, detail="Category with this name already exists")
    if payload.parent_id is not None:
        await _check_parent(db, current_user.id, payload.parent_id)

    category = CategoryModel(user_id=current_user.id, is_custom=True, **payload.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return {"data": category}


@router.put("/{category_id}", response_model=DataResponse[CategoryOut])
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    category = await get_custom_category(db, current_user.id, category_id, "modified")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    new_name = changes.get("name")
    if new_name and new_name != category.name:
        if await _name_taken(db, current_user.id, new_name, exclude_id=category.id):
            raise HTTPException(status_code=400, detail="Category with this name already exists")
        # transactions and budgets refer to categories by name
        for model in (TransactionModel, BudgetModel):
            await db.execute(
                update(model)
                .where(model.user_id == current_user.id, model.category == category.name)
                .values(category=new_name)
            )
    if changes.get("parent_id") is not None:
        await _check_parent(db, current_user.id, changes["parent_id"], child_id=category.id)

    for field, value in changes.items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return {"data": category}


@router.delete("/{category_id}", response_model=DataResponse[dict])
async def delete_category(
    category_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    category = await get_custom_category(db, current_user.id, category_id, "deleted")

    in_use = await db.execute(
        select(func.count(TransactionModel.id)).where(
            TransactionModel.user_id == current_user.id, TransactionModel.category == category.name
        )
    )
    if in_use.scalar_one() > 0:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete category with existing transactions. Please reassign transactions first.",
        )

    await db.execute(
        update(CategoryModel).where(CategoryModel.parent_id == category.id).values(parent_id=None)
    )
    await db.delete(category)
    await db.commit()
    return {"data": {}}
