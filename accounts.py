import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import get_db
from ledger import apply_effects, reversed_effects, transaction_effects
from models import AccountModel, TransactionModel, UserModel
from schemas import AccountIn, AccountOut, AccountUpdate, BalanceOut, DataResponse, ListResponse
from security import get_current_user

logger = logging.getLogger("finance-backend.accounts")

router = APIRouter(prefix="/accounts", tags=["Accounts"])


async def find_account(db: AsyncSession, user_id: int, account_id: int) -> Optional[AccountModel]:
    result = await db.execute(
        select(AccountModel).where(AccountModel.id == account_id, AccountModel.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_owned_account(db: AsyncSession, user_id: int, account_id: int) -> AccountModel:
    account = await find_account(db, user_id, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Account not found with id of {account_id}")
    return account


@router.get("", response_model=ListResponse[AccountOut])
async def list_accounts(db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)):
    result = await db.execute(
        select(AccountModel).where(AccountModel.user_id == current_user.id).order_by(AccountModel.id)
    )
    accounts = result.scalars().all()
    return {"count": len(accounts), "data": accounts}


@router.post("", response_model=DataResponse[AccountOut], status_code=status.HTTP_201_CREATED)
async def create_account(
    payload: AccountIn, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    account = AccountModel(user_id=current_user.id, **payload.model_dump())
    db.add(account)
    await db.commit()
    await db.refresh(account)
    return {"data": account}


@router.get("/{account_id}", response_model=DataResponse[AccountOut])
async def get_account(
    account_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    return {"data": await get_owned_account(db, current_user.id, account_id)}


@router.get("/{account_id}/balance", response_model=DataResponse[BalanceOut])
async def get_account_balance(
    account_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    account = await get_owned_account(db, current_user.id, account_id)
    return {"data": {"balance": account.balance}}


@router.put("/{account_id}", response_model=DataResponse[AccountOut])
async def update_account(
    account_id: int,
    payload: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    account = await get_owned_account(db, current_user.id, account_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(account, field, value)
    await db.commit()
    await db.refresh(account)
    return {"data": account}


@router.delete("/{account_id}", response_model=DataResponse[dict])
async def delete_account(
    account_id: int, db: AsyncSession = Depends(get_db), current_user: UserModel = Depends(get_current_user)
):
    account = await get_owned_account(db, current_user.id, account_id)

    # Transactions touching this account go with it; transfers also touched
    # another account whose balance has to be put back.
    result = await db.execute(
        select(TransactionModel).where(
            TransactionModel.user_id == current_user.id,
            or_(TransactionModel.account_id == account.id, TransactionModel.to_account_id == account.id),
        )
    )
    for tx in result.scalars().all():
        others = {k: v for k, v in reversed_effects(transaction_effects(tx)).items() if k != account.id}
        await apply_effects(db, others)

    await db.execute(
        delete(TransactionModel).where(
            or_(TransactionModel.account_id == account.id, TransactionModel.to_account_id == account.id)
        )
    )
    await db.delete(account)
    await db.commit()
    logger.info("Deleted account %s of user %s", account_id, current_user.id)
    return {"data": {}}
