"""
App Schemas

Request and response bodies for the finance API, defined with Pydantic.
Each resource has an ``In`` model (create payload), an ``Update`` model
(partial payload, every field optional) and an ``Out`` model read from
the ORM row.

- User -> "users"
- Account -> "accounts"
- Transaction -> "transactions"
- Budget -> "budgets"
- Category -> "categories"
"""

import datetime as dt
from datetime import date, datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, EmailStr, Field, constr, model_validator

T = TypeVar("T")

AccountType = Literal["checking", "savings", "credit", "investment", "cash"]
TransactionType = Literal["income", "expense", "transfer"]
BudgetPeriod = Literal["daily", "weekly", "monthly", "yearly"]
CategoryType = Literal["income", "expense"]

Name = constr(strip_whitespace=True, min_length=1, max_length=120)
CategoryName = constr(strip_whitespace=True, min_length=1, max_length=64)
Currency = constr(strip_whitespace=True, to_upper=True, min_length=3, max_length=3)


# ----------------------------------------------------------------------------
# Envelopes
# ----------------------------------------------------------------------------
class DataResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: List[T]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaginatedResponse(ListResponse[T], Generic[T]):
    pagination: Pagination


class ErrorOut(BaseModel):
    success: bool = False
    error: str


# ----------------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------------
class TokenResponse(BaseModel):
    success: bool = True
    token: str


class UserRegister(BaseModel):
    name: Name = Field(..., description="Full name")
    email: EmailStr
    password: str = Field(..., min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdateDetails(BaseModel):
    name: Optional[Name] = None
    email: Optional[EmailStr] = None


class PasswordUpdate(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ----------------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------------
class AccountIn(BaseModel):
    name: Name
    type: AccountType
    balance: float = Field(0.0, description="Opening balance")
    currency: Currency = "USD"


class AccountUpdate(BaseModel):
    """Balance is deliberately absent: only transactions move it."""

    name: Optional[Name] = None
    type: Optional[AccountType] = None
    currency: Optional[Currency] = None


class AccountOut(BaseModel):
    id: int
    name: str
    type: str
    balance: float
    currency: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BalanceOut(BaseModel):
    balance: float


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
class TransactionIn(BaseModel):
    type: TransactionType
    amount: float = Field(..., gt=0, description="Positive amount")
    category: CategoryName
    subcategory: Optional[str] = None
    description: Optional[str] = None
    date: dt.date = Field(default_factory=dt.date.today)
    account_id: int
    to_account_id: Optional[int] = Field(None, description="Destination account, transfers only")
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_transfer(self):
        if self.type == "transfer":
            if self.to_account_id is None:
                raise ValueError("to_account_id is required for transfers")
            if self.to_account_id == self.account_id:
                raise ValueError("Cannot transfer to the same account")
        else:
            self.to_account_id = None
        return self


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    amount: Optional[float] = Field(None, gt=0)
    category: Optional[CategoryName] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    tags: Optional[List[str]] = None


class TransactionOut(BaseModel):
    id: int
    type: str
    amount: float
    category: str
    subcategory: Optional[str] = None
    description: Optional[str] = None
    date: dt.date
    account_id: int
    to_account_id: Optional[int] = None
    receipt_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TypeTotals(BaseModel):
    type: str
    total: float
    count: int
    avg_amount: float


class CategoryTotal(BaseModel):
    category: str
    total: float
    count: int


class TransactionStats(BaseModel):
    overview: List[TypeTotals]
    by_category: List[CategoryTotal]


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
class BudgetIn(BaseModel):
    category: CategoryName
    limit: float = Field(..., gt=0)
    period: BudgetPeriod
    start_date: date
    end_date: date
    is_active: bool = True
    notifications: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date < self.start_date:
            raise ValueError("Start date must be before end date")
        return self


class BudgetUpdate(BaseModel):
    category: Optional[CategoryName] = None
    limit: Optional[float] = Field(None, gt=0)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    notifications: Optional[bool] = None


class BudgetOut(BaseModel):
    id: int
    category: str
    limit: float
    period: str
    start_date: date
    end_date: date
    is_active: bool
    notifications: bool
    created_at: Optional[datetime] = None
    spent: float = 0.0
    remaining: float = 0.0
    percentage: float = 0.0

    class Config:
        from_attributes = True


class DailySpending(BaseModel):
    date: dt.date
    total: float


class BudgetStatsOut(BudgetOut):
    daily_spending: List[DailySpending] = Field(default_factory=list)
    days_remaining: int = 0
    daily_budget: float = 0.0


class BudgetAlert(BaseModel):
    budget_id: int
    category: str
    spent: float
    limit: float
    percentage: float
    level: Literal["warning", "critical"]
    alerts: List[str]


# ----------------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------------
class CategoryIn(BaseModel):
    name: CategoryName
    type: CategoryType
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[CategoryName] = None
    type: Optional[CategoryType] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    type: str
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[int] = None
    is_custom: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UsageStats(BaseModel):
    total_amount: float = 0.0
    count: int = 0
    avg_amount: float = 0.0


class CategoryWithStats(CategoryOut):
    stats: UsageStats = Field(default_factory=UsageStats)


class MonthlyStat(BaseModel):
    year: int
    month: int
    total_amount: float
    count: int
    avg_amount: float


class CategoryDetail(CategoryOut):
    monthly_stats: List[MonthlyStat] = Field(default_factory=list)
    recent_transactions: List[TransactionOut] = Field(default_factory=list)


class CategorySummary(BaseModel):
    category: str
    total_amount: float
    count: int
    avg_amount: float
    min_amount: float
    max_amount: float
    first_transaction: date
    last_transaction: date


# ----------------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------------
class ReportItem(BaseModel):
    label: str
    income: float
    expense: float
    balance: float


class CategoryAmount(BaseModel):
    category: str
    amount: float


class AccountBalance(BaseModel):
    name: str
    balance: float


class MonthlyTrend(BaseModel):
    month: str
    income: float
    expenses: float


class ReportOverview(BaseModel):
    total_income: float
    total_expenses: float
    total_savings: float
    savings_rate: float
    account_balances: List[AccountBalance]
    income_by_category: List[CategoryAmount]
    expenses_by_category: List[CategoryAmount]
    monthly_trends: List[MonthlyTrend]
