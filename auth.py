import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from database import get_db
from models import UserModel
from schemas import (
    DataResponse,
    PasswordUpdate,
    TokenResponse,
    UserLogin,
    UserOut,
    UserRegister,
    UserUpdateDetails,
)
from security import get_current_user, get_password_hash, token_for, verify_password

logger = logging.getLogger("finance-backend.auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> bool:
    query = select(UserModel.id).where(UserModel.email == email)
    if exclude_id is not None:
        query = query.where(UserModel.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: UserRegister, db: AsyncSession = Depends(get_db)):
    if await _email_taken(db, payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = UserModel(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return {"success": True, "token": token_for(user)}


@router.post("/login", response_model=TokenResponse)
async def login(payload: UserLogin, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(UserModel).where(UserModel.email == payload.email))
    user = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {"success": True, "token": token_for(user)}


@router.get("/me", response_model=DataResponse[UserOut])
async def me(current_user: UserModel = Depends(get_current_user)):
    return {"data": current_user}


@router.put("/updatedetails", response_model=DataResponse[UserOut])
async def update_details(
    payload: UserUpdateDetails,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    if payload.email and await _email_taken(db, payload.email, exclude_id=current_user.id):
        raise HTTPException(status_code=400, detail="Email already registered")

    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return {"data": current_user}


@router.put("/updatepassword", response_model=TokenResponse)
async def update_password(
    payload: PasswordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=401, detail="Password is incorrect")

    current_user.password_hash = get_password_hash(payload.new_password)
    await db.commit()
    logger.info("Password changed for user %s", current_user.id)
    return {"success": True, "token": token_for(current_user)}
