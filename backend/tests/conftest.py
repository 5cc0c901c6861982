"""Pytest fixtures for CaseLedger tests."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from caseledger.db.session import Base

# Ensure the documents table is registered for create_all
import caseledger.models.case_document  # noqa: F401
from caseledger.services.store import SqlDocumentStore


@pytest.fixture(scope="function")
def session_factory():
    """In-memory SQLite with all tables, shared across threads (TestClient runs handlers off-thread)."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def store(session_factory):
    return SqlDocumentStore(session_factory)


@pytest.fixture(scope="function")
def client(store):
    from caseledger.main import create_app

    with TestClient(create_app(store=store)) as c:
        yield c


@pytest.fixture
def make_doc():
    """Builds a stored case document the way the frontend writes them."""

    def _make(**overrides):
        doc = {
            "billNumber": "B-100",
            "caseNumber": "C-100",
            "caseDescription": "Tenancy dispute",
            "date": "2024-01-15",
            "particulars": [{"type": "Filing", "amount": 2000}, {"type": "Drafting Charges", "amount": 1000}],
            "payments": [],
        }
        doc.update(overrides)
        return doc

    return _make
