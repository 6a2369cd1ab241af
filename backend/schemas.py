"""Pydantic request/response schemas for type safety."""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Literal

TransactionKind = Literal["expense", "income"]


# Request schemas
class TransactionCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2, description="Positive amount in the account currency")
    description: str = Field(min_length=1, max_length=500)
    category: str = Field(min_length=1, max_length=100)
    date: date


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    icon: str = Field(default="📝", max_length=20)
    type: TransactionKind


class CategorizeRequest(BaseModel):
    description: str
    type: TransactionKind = "expense"


class SessionCreate(BaseModel):
    code: Optional[str] = None


# Response schemas
class TransactionOut(BaseModel):
    id: int
    user_id: str
    amount: float
    description: str
    category: str
    date: date
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    expenses: list[TransactionOut]


class IncomeListResponse(BaseModel):
    income: list[TransactionOut]


class ExpenseResponse(BaseModel):
    expense: TransactionOut


class IncomeResponse(BaseModel):
    income: TransactionOut


class CategoryOut(BaseModel):
    id: int
    user_id: Optional[str] = None
    name: str
    icon: Optional[str] = None
    type: TransactionKind
    is_default: bool = False

    class Config:
        from_attributes = True


class CategoryListResponse(BaseModel):
    categories: list[CategoryOut]


class CategoryResponse(BaseModel):
    category: CategoryOut


class InsightOut(BaseModel):
    summary: str
    tips: list[str]
    category_breakdown: dict[str, float] = Field(alias="categoryBreakdown")
    spending_trend: Literal["increasing", "decreasing", "stable"] = Field(alias="spendingTrend")

    class Config:
        populate_by_name = True


class InsightResponse(BaseModel):
    insight: InsightOut


class CategorizeResponse(BaseModel):
    category: str


class SuccessResponse(BaseModel):
    success: bool = True


class RedirectUrlResponse(BaseModel):
    redirect_url: str = Field(alias="redirectUrl")

    class Config:
        populate_by_name = True


class HealthResponse(BaseModel):
    status: str
    database: str
    openai: str
