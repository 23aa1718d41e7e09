"""
Shared fixtures: a throwaway file-backed SQLite order store per test and
an order factory.

The store is file-backed (not :memory:) because the query service runs
its count and page fetch on separate worker threads with separate
connections.
"""

import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

# Keep test runs out of the working tree's logs/ and data/
os.environ.setdefault("ORDERS_ENVIRONMENT", "test")
os.environ.setdefault("ORDERS_LOG_DIR", tempfile.mkdtemp(prefix="orders-logs-"))

import pytest
from sqlmodel import Session, SQLModel

from assessment_orders.core import database
from assessment_orders.models.order import AssessmentOrder

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def db_engine(tmp_path, monkeypatch):
    """Fresh schema in tmp_path, installed as the process-wide engine."""
    engine = database._build_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(database, "_engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_order(db_engine):
    """Insert one order and return it. created_at defaults to BASE_TIME + seq minutes."""
    counter = {"n": 0}

    def _make(**overrides) -> AssessmentOrder:
        counter["n"] += 1
        fields = {
            "user_id": str(uuid.uuid4()),
            "assessment_id": str(uuid.uuid4()),
            "assessment_title": f"Assessment {counter['n']}",
            "user_email": f"user{counter['n']}@example.com",
            "price": 10.0,
            "created_at": BASE_TIME + timedelta(minutes=counter["n"]),
        }
        fields.update(overrides)
        order = AssessmentOrder.new(**fields)
        with Session(db_engine) as session:
            session.add(order)
            session.commit()
            session.refresh(order)
            session.expunge(order)
        return order

    return _make


@pytest.fixture
def load_order(db_engine):
    """Re-read an order straight from the store."""

    def _load(order_id: str) -> AssessmentOrder:
        with Session(db_engine) as session:
            order = session.get(AssessmentOrder, order_id)
            session.expunge(order)
            return order

    return _load
