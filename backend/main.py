"""
Module: main.py
Description: FastAPI application entry point with all API routes for Finance Tracker.

This module provides REST API endpoints for:
    - OAuth sign-in and session management (delegated to the users service)
    - Expense and income recording with date-window filtering
    - Category management (shared defaults plus user categories)
    - AI-powered spending insights over the last 30 days
    - AI transaction categorization

Author: Finance Tracker Team

Dependencies:
    - FastAPI for REST API framework
    - SQLAlchemy for database operations
    - OpenAI for AI-powered features
    - httpx for the users service

Usage:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from auth import (
    IdentityGateway, IdentityServiceError, get_current_user, get_identity_gateway,
    SESSION_COOKIE_NAME, SESSION_MAX_AGE,
)
from database import get_db, init_db
from models import Category, Expense, Income
from schemas import (
    TransactionCreate, CategoryCreate, CategorizeRequest, SessionCreate,
    TransactionOut, ExpenseListResponse, IncomeListResponse,
    ExpenseResponse, IncomeResponse, CategoryOut, CategoryListResponse,
    CategoryResponse, InsightOut, InsightResponse, CategorizeResponse,
    SuccessResponse, RedirectUrlResponse, HealthResponse, TransactionKind,
)
from services import (
    AIService, Categorizer, InsightGenerator, InsightGenerationError,
    TransactionStore, StoreError, build_query, trailing_window,
)
from services.insight_generator import INSIGHTS_WINDOW_DAYS
from services.observability import logger, metrics, timed_block, log_list_request
from services.transaction_filter import TransactionQuery


# =============================================================================
# Application Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup: create tables and seed the default categories.
    """
    logger.info("Starting Finance Tracker API")
    init_db()
    logger.info("Database initialized with default categories")

    yield

    logger.info("Shutting down Finance Tracker API")


# =============================================================================
# FastAPI Application Configuration
# =============================================================================

app = FastAPI(
    title="Finance Tracker API",
    description="""
    Personal finance tracking API: record expenses and income, organize them
    with categories, and get AI-generated spending insights.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 instead of FastAPI's 422."""
    metrics.increment("requests.invalid")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


# =============================================================================
# Dependency Injection
# =============================================================================

@lru_cache(maxsize=1)
def get_ai_service() -> AIService:
    """
    Dependency: Provide the shared AIService instance.

    Returns:
        AIService: Configured OpenAI wrapper service.
    """
    return AIService()


def get_store(db: DBSession = Depends(get_db)) -> TransactionStore:
    """Dependency: transaction store bound to the request's session."""
    return TransactionStore(db)


def server_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


# =============================================================================
# System Endpoints
# =============================================================================

@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check endpoint",
)
async def health_check(
    db: DBSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
) -> HealthResponse:
    """
    Check the database and OpenAI connection.

    Example:
        GET /health
        Response: {"status": "healthy", "database": "connected", "openai": "connected"}
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        db_status = f"error: {e.__class__.__name__}"

    openai_status = "connected" if await ai_service.check_connection() else "disconnected"
    overall_status = "healthy" if db_status == "connected" else "degraded"

    return HealthResponse(status=overall_status, database=db_status, openai=openai_status)


@app.get("/metrics", tags=["System"], summary="Get application metrics")
async def get_metrics(ai_service: AIService = Depends(get_ai_service)):
    """Counters, timing data and OpenAI token usage."""
    summary = metrics.get_summary()
    summary["openai_usage"] = ai_service.get_usage_stats()
    return summary


# =============================================================================
# Authentication Endpoints
# =============================================================================

@app.get(
    "/api/oauth/google/redirect_url",
    response_model=RedirectUrlResponse,
    tags=["Auth"],
)
async def oauth_redirect_url(gateway: IdentityGateway = Depends(get_identity_gateway)):
    """Google sign-in URL issued by the users service."""
    try:
        redirect_url = await gateway.get_oauth_redirect_url("google")
    except IdentityServiceError as e:
        logger.error("Redirect URL lookup failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Sign-in unavailable")
    return RedirectUrlResponse(redirectUrl=redirect_url)


@app.post("/api/sessions", response_model=SuccessResponse, tags=["Auth"])
async def create_session(
    body: SessionCreate,
    response: Response,
    gateway: IdentityGateway = Depends(get_identity_gateway),
):
    """
    Exchange an OAuth code for a session and store it in an httpOnly cookie.

    Raises:
        HTTPException: 400 without a code, 502 if the users service fails.
    """
    if not body.code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No authorization code provided")

    try:
        session_token = await gateway.exchange_code_for_session_token(body.code)
    except IdentityServiceError as e:
        logger.error("Code exchange failed", error=str(e))
        metrics.increment("auth.errors")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to create session")

    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_token,
        httponly=True,
        path="/",
        samesite="none",
        secure=True,
        max_age=SESSION_MAX_AGE,
    )
    metrics.increment("auth.sessions_created")
    return SuccessResponse()


@app.get("/api/users/me", tags=["Auth"])
async def current_user(user: dict = Depends(get_current_user)):
    return user


@app.get("/api/logout", response_model=SuccessResponse, tags=["Auth"])
async def logout(
    request: Request,
    response: Response,
    gateway: IdentityGateway = Depends(get_identity_gateway),
):
    """Delete the session upstream (best effort) and clear the cookie."""
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if session_token:
        try:
            await gateway.delete_session(session_token)
        except IdentityServiceError as e:
            logger.warning("Session delete failed", error=str(e))

    response.set_cookie(
        SESSION_COOKIE_NAME, "", httponly=True, path="/", samesite="none", secure=True, max_age=0,
    )
    return SuccessResponse()


# =============================================================================
# Expense & Income Endpoints
# =============================================================================

def _list_transactions(
    store: TransactionStore,
    model,
    resource: str,
    user_id: str,
    filter_name: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    limit: Optional[str],
) -> list[TransactionOut]:
    query = build_query(
        user_id, start_date=start_date, end_date=end_date, filter=filter_name, limit=limit
    )
    log_list_request(resource, user_id, filter_name, query.limit)

    try:
        rows = store.list(model, query)
    except StoreError as e:
        logger.exception(f"Error fetching {resource}", error=str(e))
        raise server_error(f"Failed to fetch {resource}")

    return [TransactionOut.model_validate(row) for row in rows]


def _create_transaction(store: TransactionStore, model, user_id: str, data: TransactionCreate):
    try:
        row = store.create(model, user_id, **data.model_dump())
    except StoreError as e:
        logger.exception(f"Error creating {model.__tablename__}", error=str(e))
        raise server_error(f"Failed to create {'expense' if model is Expense else 'income'}")
    return TransactionOut.model_validate(row)


def _delete_transaction(store: TransactionStore, model, user_id: str, row_id: int) -> SuccessResponse:
    try:
        store.delete(model, user_id, row_id)
    except StoreError as e:
        logger.exception(f"Error deleting {model.__tablename__}", error=str(e))
        raise server_error(f"Failed to delete {'expense' if model is Expense else 'income'}")
    return SuccessResponse()


@app.get("/api/expenses", response_model=ExpenseListResponse, tags=["Expenses"])
def list_expenses(
    filter_name: Optional[str] = Query(None, alias="filter"),
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[str] = None,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> ExpenseListResponse:
    """
    List the user's expenses, newest first.

    Args:
        filter_name: this_month, last_month or this_year.
        start_date: Inclusive lower bound (used only with end_date).
        end_date: Inclusive upper bound (used only with start_date).
        limit: Maximum rows; malformed values are ignored.

    Example:
        GET /api/expenses?filter=last_month&limit=10
        Response: {"expenses": [{"id": 3, "amount": 12.5, ...}]}
    """
    expenses = _list_transactions(
        store, Expense, "expenses", str(user["id"]), filter_name, start_date, end_date, limit
    )
    return ExpenseListResponse(expenses=expenses)


@app.post("/api/expenses", response_model=ExpenseResponse, tags=["Expenses"])
def create_expense(
    data: TransactionCreate,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> ExpenseResponse:
    return ExpenseResponse(expense=_create_transaction(store, Expense, str(user["id"]), data))


@app.delete("/api/expenses/{expense_id}", response_model=SuccessResponse, tags=["Expenses"])
def delete_expense(
    expense_id: int,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> SuccessResponse:
    return _delete_transaction(store, Expense, str(user["id"]), expense_id)


@app.get("/api/income", response_model=IncomeListResponse, tags=["Income"])
def list_income(
    filter_name: Optional[str] = Query(None, alias="filter"),
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    limit: Optional[str] = None,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> IncomeListResponse:
    """List the user's income, newest first. Same filters as /api/expenses."""
    income = _list_transactions(
        store, Income, "income", str(user["id"]), filter_name, start_date, end_date, limit
    )
    return IncomeListResponse(income=income)


@app.post("/api/income", response_model=IncomeResponse, tags=["Income"])
def create_income(
    data: TransactionCreate,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> IncomeResponse:
    return IncomeResponse(income=_create_transaction(store, Income, str(user["id"]), data))


@app.delete("/api/income/{income_id}", response_model=SuccessResponse, tags=["Income"])
def delete_income(
    income_id: int,
    store: TransactionStore = Depends(get_store),
    user: dict = Depends(get_current_user),
) -> SuccessResponse:
    return _delete_transaction(store, Income, str(user["id"]), income_id)


# =============================================================================
# Category Endpoints
# =============================================================================

@app.get("/api/categories", response_model=CategoryListResponse, tags=["Categories"])
def list_categories(
    kind: TransactionKind = Query("expense", alias="type"),
    db: DBSession = Depends(get_db),
    user: dict = Depends(get_current_user),
) -> CategoryListResponse:
    """Defaults first, then the user's own categories, each group by name."""
    user_id = str(user["id"])
    try:
        categories = (
            db.query(Category)
            .filter(Category.type == kind)
            .filter((Category.user_id == user_id) | (Category.is_default.is_(True)))
            .order_by(Category.is_default.desc(), Category.name.asc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception("Error fetching categories")
        raise server_error("Failed to fetch categories")

    return CategoryListResponse(categories=[CategoryOut.model_validate(c) for c in categories])


@app.post("/api/categories", response_model=CategoryResponse, tags=["Categories"])
def create_category(
    data: CategoryCreate,
    db: DBSession = Depends(get_db),
    user: dict = Depends(get_current_user),
) -> CategoryResponse:
    category = Category(
        name=data.name, icon=data.icon, type=data.type,
        user_id=str(user["id"]), is_default=False,
    )
    try:
        db.add(category)
        db.commit()
        db.refresh(category)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error creating category")
        raise server_error("Failed to create category")

    return CategoryResponse(category=CategoryOut.model_validate(category))


def _own_category_query(db: DBSession, category_id: int, user_id: str):
    """Categories the user may modify: their own, never the defaults."""
    return (
        db.query(Category)
        .filter(Category.id == category_id)
        .filter(Category.user_id == user_id)
        .filter(Category.is_default.is_(False))
    )


@app.put("/api/categories/{category_id}", response_model=CategoryResponse, tags=["Categories"])
def update_category(
    category_id: int,
    data: CategoryCreate,
    db: DBSession = Depends(get_db),
    user: dict = Depends(get_current_user),
) -> CategoryResponse:
    """
    Rename or re-icon one of the user's categories.

    Raises:
        HTTPException: 404 if the category is a default or belongs to someone else.
    """
    try:
        category = _own_category_query(db, category_id, str(user["id"])).first()
        if category is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

        category.name = data.name
        category.icon = data.icon
        category.type = data.type
        db.commit()
        db.refresh(category)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error updating category")
        raise server_error("Failed to update category")

    return CategoryResponse(category=CategoryOut.model_validate(category))


@app.delete("/api/categories/{category_id}", response_model=SuccessResponse, tags=["Categories"])
def delete_category(
    category_id: int,
    db: DBSession = Depends(get_db),
    user: dict = Depends(get_current_user),
) -> SuccessResponse:
    """Delete one of the user's categories. Defaults are never removed."""
    try:
        deleted = _own_category_query(db, category_id, str(user["id"])).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error deleting category")
        raise server_error("Failed to delete category")

    if not deleted:
        logger.info("Category delete matched nothing", category_id=category_id)
    return SuccessResponse()


# =============================================================================
# AI Endpoints
# =============================================================================

@app.get("/api/insights", response_model=InsightResponse, tags=["AI"])
async def get_insights(
    store: TransactionStore = Depends(get_store),
    ai_service: AIService = Depends(get_ai_service),
    user: dict = Depends(get_current_user),
) -> InsightResponse:
    """
    Summary, tips and spending trend for the last 30 days.

    The category breakdown is computed locally; the model only writes the
    summary, tips and trend. With no transactions in the window a fixed
    onboarding insight is returned without calling the model.

    Raises:
        HTTPException: 500 if the data cannot be fetched or the model fails.

    Example:
        GET /api/insights
        Response: {"insight": {"summary": "...", "tips": [...],
                   "categoryBreakdown": {"Food & Dining": 120.5}, "spendingTrend": "stable"}}
    """
    user_id = str(user["id"])
    query = TransactionQuery(owner_id=user_id, window=trailing_window(INSIGHTS_WINDOW_DAYS))

    try:
        with timed_block("insights.fetch"):
            expenses = store.list(Expense, query)
            income = store.list(Income, query)
    except StoreError as e:
        logger.exception("Error fetching insight data", error=str(e))
        raise server_error("Failed to generate insights")

    try:
        insight = await InsightGenerator(ai_service).generate(expenses, income)
    except InsightGenerationError as e:
        logger.error("Error generating insights", error=str(e), user=user_id[:8])
        metrics.increment("insights.failed")
        raise server_error("Failed to generate insights")

    metrics.increment("insights.generated")
    return InsightResponse(insight=InsightOut(**insight))


@app.post("/api/categorize", response_model=CategorizeResponse, tags=["AI"])
async def categorize_transaction(
    body: CategorizeRequest,
    ai_service: AIService = Depends(get_ai_service),
) -> CategorizeResponse:
    """
    Suggest a category for a description.

    Never fails on AI errors: falls back to 'Other' / 'Other Income'.

    Example:
        POST /api/categorize {"description": "Uber to airport"}
        Response: {"category": "Transportation"}
    """
    category = await Categorizer(ai_service).categorize(body.description, body.type)
    return CategorizeResponse(category=category)
