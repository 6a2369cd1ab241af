"""
Pytest configuration and shared fixtures for Finance Tracker tests.

This file is automatically loaded by pytest and provides:
    - In-memory SQLite database fixtures
    - A TestClient with auth, database and AI overrides
    - Stub AI service that records its calls
    - Lightweight transaction objects

Author: Finance Tracker Team
"""

import pytest
import sys
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database import Base, get_db, seed_default_categories  # noqa: E402
import models  # noqa: E402,F401


TEST_USER_ID = "user_test_1"
OTHER_USER_ID = "user_test_2"


# =============================================================================
# Transaction Fixtures
# =============================================================================

@dataclass
class Txn:
    """Stand-in for an Expense/Income row."""
    amount: Decimal
    description: str
    category: str
    date: date


def txn(amount, category="Food & Dining", description="item", on=date(2024, 3, 10)) -> Txn:
    return Txn(amount=Decimal(str(amount)), description=description, category=category, date=on)


# =============================================================================
# AI Service Fixtures
# =============================================================================

class StubAIService:
    """Deterministic replacement for AIService that counts calls."""

    def __init__(self, answer=None, text="", error=None):
        self.answer = answer
        self.text = text
        self.error = error
        self.calls = []

    async def generate(self, system_prompt, user_prompt, response_schema, schema_name="structured_answer"):
        self.calls.append({
            "kind": "generate",
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "schema": response_schema,
            "schema_name": schema_name,
        })
        if self.error:
            raise self.error
        return self.answer

    async def complete(self, system_prompt, user_prompt, max_tokens=None):
        self.calls.append({
            "kind": "complete",
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
        })
        if self.error:
            raise self.error
        return self.text

    async def check_connection(self):
        return False

    def get_usage_stats(self):
        return {"total_tokens": 0, "request_count": len(self.calls), "avg_tokens_per_request": 0}


@pytest.fixture
def stub_ai():
    return StubAIService(answer={
        "summary": "You spent mostly on food.",
        "tips": ["Cook at home", "Set a weekly budget"],
        "spendingTrend": "increasing",
    })


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def session_factory():
    """Fresh in-memory database per test, defaults seeded."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = factory()
    try:
        seed_default_categories(db)
    finally:
        db.close()

    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def add_row(db, model, amount, on, user_id=TEST_USER_ID, category="Food & Dining",
            description="item", created_at=None):
    """Insert a transaction row directly, bypassing the API."""
    row = model(
        user_id=user_id,
        amount=Decimal(str(amount)),
        description=description,
        category=category,
        date=on,
        created_at=created_at or datetime(on.year, on.month, on.day, 12, 0, 0),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# API Fixtures
# =============================================================================

@pytest.fixture
def client(session_factory, stub_ai):
    """TestClient with database, current user and AI service overridden."""
    from fastapi.testclient import TestClient
    from auth import get_current_user
    from main import app, get_ai_service

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: {"id": TEST_USER_ID, "email": "test@example.com"}
    app.dependency_overrides[get_ai_service] = lambda: stub_ai

    # No context manager: skip the lifespan hook that touches the real database
    yield TestClient(app)

    app.dependency_overrides.clear()
