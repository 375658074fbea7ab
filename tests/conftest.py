"""
Pytest fixtures for the procurement workflow test suite.

Provides:
- A real SQLite database file per test (real commits, BEGIN IMMEDIATE)
- Deterministic clock, actor and document factories
- Captured structured logs

Environment Variables:
- TEST_DATABASE_URL: run against another database (e.g. PostgreSQL)
  instead of the per-test SQLite file.  Tables are dropped at teardown.
"""

import itertools
import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from procure_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from procure_kernel.domain.clock import DeterministicClock
from procure_kernel.domain.values import Actor
from procure_kernel.domain.workflow import DocumentStatus, DocumentType, Role
from procure_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from procure_kernel.models.documents import model_for
from procure_kernel.services.document_service import DocumentService
from procure_kernel.services.threshold_policy import ThresholdPolicy
from procure_services.workflow_engine import WorkflowEngine

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procure_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.apply(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procure_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh database with all tables, disposed at teardown."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'procure.db'}"
    engine = init_engine_from_url(url, pool_size=10, busy_timeout=15.0)
    create_tables()
    yield engine
    if engine.dialect.name != "sqlite":
        drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database."""
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """A session for direct service tests; rolled back at teardown."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def workflow_engine(session_factory, deterministic_clock):
    """WorkflowEngine over the test database."""
    return WorkflowEngine(session_factory=session_factory, clock=deterministic_clock)


# =============================================================================
# Actors
# =============================================================================

DEFAULT_ORG = 7

_actor_ids = itertools.count(1000)


@pytest.fixture
def make_actor():
    """Factory: make_actor(Role.MANAGER, organization_id=7) -> Actor."""

    def _make(role: Role, organization_id: int = DEFAULT_ORG, actor_id: int | None = None):
        return Actor(
            id=actor_id if actor_id is not None else next(_actor_ids),
            role=role,
            organization_id=organization_id,
        )

    return _make


# =============================================================================
# Documents and thresholds
# =============================================================================

_DEFAULT_FIELDS: dict[DocumentType, dict] = {
    DocumentType.NEED_SHEET: {
        "title": "Laptops for accounting",
        "description": "Three laptops",
        "beneficiary_service": "Accounting",
    },
    DocumentType.PURCHASE_REQUEST: {
        "supplier": "Sahel Informatique",
        "description": "Three laptops",
        "beneficiary_service": "Accounting",
    },
    DocumentType.PURCHASE_ORDER: {
        "supplier": "Sahel Informatique",
        "description": "Three laptops",
    },
    DocumentType.SERVICE_ATTESTATION: {
        "supplier": "Sahel Informatique",
        "title": "Laptops delivered",
    },
    DocumentType.WITHDRAWAL_DECISION: {
        "origin_account": "ML-001-0001",
        "destination_account": "ML-002-0042",
        "reason": "Supplier payment",
    },
    DocumentType.PAYMENT_ORDER: {
        "origin_account": "ML-001-0001",
        "destination_account": "ML-002-0042",
        "description": "Supplier payment",
    },
    DocumentType.BUDGET: {"title": "Budget 2026"},
    DocumentType.CREDIT_LINE: {"title": "IT equipment"},
}

CREATOR_ID = 1


@pytest.fixture
def create_document(session_factory, deterministic_clock):
    """
    Factory: insert a committed document and return its id.

    Bypasses creator-role checks so any type can be placed in any
    non-rejected status directly.
    """

    def _create(
        doc_type: DocumentType,
        organization_id: int = DEFAULT_ORG,
        amount: Decimal | str | None = Decimal("500"),
        status: DocumentStatus = DocumentStatus.IN_PROGRESS,
        created_by_id: int = CREATOR_ID,
        **fields,
    ) -> int:
        values = {**_DEFAULT_FIELDS[DocumentType(doc_type)], **fields}
        with session_scope(session_factory) as sess:
            document = model_for(doc_type)(
                organization_id=organization_id,
                created_by_id=created_by_id,
                amount=Decimal(amount) if amount is not None else None,
                status=DocumentStatus(status).value,
                **values,
            )
            DocumentService(sess, deterministic_clock).persist(document)
            return document.id

    return _create


@pytest.fixture
def configure_threshold(session_factory, deterministic_clock, make_actor):
    """Factory: configure_threshold(organization_id, amount) -> config id (active)."""

    def _configure(organization_id: int = DEFAULT_ORG, amount: Decimal | str = "500000") -> int:
        director = make_actor(Role.DIRECTOR, organization_id)
        with session_scope(session_factory) as sess:
            config = ThresholdPolicy(sess, deterministic_clock).configure(
                organization_id, Decimal(amount), director,
            )
            return config.id

    return _configure


@pytest.fixture
def load_document(session_factory):
    """Factory: load_document(doc_type, doc_id) -> detached ORM instance."""

    def _load(doc_type: DocumentType, doc_id: int):
        with session_scope(session_factory) as sess:
            return DocumentService(sess).load(doc_type, doc_id)

    return _load
