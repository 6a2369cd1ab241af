"""SQLAlchemy database setup for expenses, income and categories."""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Closed vocabularies, also used by the categorizer
DEFAULT_EXPENSE_CATEGORIES = [
    ("Food & Dining", "🍽️"),
    ("Transportation", "🚗"),
    ("Shopping", "🛍️"),
    ("Entertainment", "🎬"),
    ("Bills & Utilities", "💡"),
    ("Healthcare", "🏥"),
    ("Travel", "✈️"),
    ("Education", "📚"),
    ("Personal Care", "💅"),
    ("Other", "📝"),
]

DEFAULT_INCOME_CATEGORIES = [
    ("Salary", "💼"),
    ("Freelance", "💻"),
    ("Investment", "📈"),
    ("Business", "🏢"),
    ("Gift", "🎁"),
    ("Other Income", "💰"),
]


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_default_categories(db) -> int:
    """Insert the shared default categories if none exist yet."""
    from models import Category

    existing = db.query(Category).filter(Category.is_default.is_(True)).count()
    if existing:
        return 0

    defaults = [
        Category(name=name, icon=icon, type="expense", is_default=True)
        for name, icon in DEFAULT_EXPENSE_CATEGORIES
    ] + [
        Category(name=name, icon=icon, type="income", is_default=True)
        for name, icon in DEFAULT_INCOME_CATEGORIES
    ]
    db.add_all(defaults)
    db.commit()
    return len(defaults)


def init_db():
    """Initialize database with all tables and seed data."""
    from models import Expense, Income, Category  # noqa: F401

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_default_categories(db)
    finally:
        db.close()
