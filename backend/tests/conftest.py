"""Shared test fixtures for all test modules."""

import contextlib
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import quoteflow.models  # noqa: F401  registers every table on Base.metadata
from quoteflow.core import database as db_module
from quoteflow.core.database import Base
from quoteflow.schemas.invoice import MasterInvoiceCreate, MasterInvoiceItemCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


def build_master_data(**overrides) -> MasterInvoiceCreate:
    """Two items of 10 x 50, 10% discount, 9% CGST + 9% SGST, 50 shipping.

    Subtotal 1000, discount 100, cgst 81, sgst 81, shipping 50, total 1112.
    """
    data = {
        "items": [
            MasterInvoiceItemCreate(description="Steel beam", quantity=10, unit_price=Decimal("50")),
            MasterInvoiceItemCreate(description="Steel plate", quantity=10, unit_price=Decimal("50")),
        ],
        "discount": Decimal("100"),
        "cgst": Decimal("81"),
        "sgst": Decimal("81"),
        "igst": Decimal("0"),
        "shipping_charges": Decimal("50"),
        "notes": "Deliver to site B",
    }
    data.update(overrides)
    return MasterInvoiceCreate(**data)


def build_simple_master_data(total: Decimal) -> MasterInvoiceCreate:
    """Single line, no discount, tax or shipping: the invoice total equals ``total``."""
    return MasterInvoiceCreate(
        items=[MasterInvoiceItemCreate(description="Consulting", quantity=1, unit_price=total)],
    )


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    # Patch module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    # Restore originals
    db_module.engine = original_engine
    db_module.SessionLocal = original_session
