"""
Pytest configuration and shared fixtures for Argument Confidence Network tests.

This module provides:
- An in-memory async SQLite database with the full schema
- Fake embedding/reasoning collaborators (see tests/fixtures/fakes.py)
- Factories for inserting arguments and facts without the embedder
"""

import uuid
from typing import List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from acn_python_backend.models import Argument, Base, FactClaim
from acn_python_backend.services.argument_ledger import history_entry
from acn_python_backend.services.reasoning_client import ReasoningUnavailableError
from acn_python_backend.tests.fixtures.fakes import FakeEmbeddingService, FakeReasoningClient, base_vector


# ============================================================================
# Database
# ============================================================================

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ============================================================================
# Collaborators
# ============================================================================

@pytest.fixture
def embedding_service():
    return FakeEmbeddingService()


@pytest.fixture
def failing_embedding_service():
    return FakeEmbeddingService(fail=True)


@pytest.fixture
def reasoning_client():
    return FakeReasoningClient()


@pytest.fixture
def failing_reasoning_client():
    return FakeReasoningClient(error=ReasoningUnavailableError("model returned prose"))


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_argument(db_session):
    """Insert an argument directly, bypassing embedding and clustering."""

    async def _make(
        content: str = "Public transit reduces congestion.",
        embedding: Optional[List[float]] = None,
        confidence: float = 0.5,
        **fields,
    ) -> Argument:
        argument = Argument(
            id=uuid.uuid4(),
            content=content,
            source_content_id=fields.pop("source_content_id", "post-1"),
            source_author_id=fields.pop("source_author_id", "user-1"),
            embedding=embedding if embedding is not None else base_vector(),
            confidence=confidence,
            effective_confidence=confidence,
            confidence_history=[history_entry(confidence, "initial")],
            **fields,
        )
        db_session.add(argument)
        await db_session.commit()
        return argument

    return _make


@pytest.fixture
def make_fact(db_session):
    async def _make(
        claim: str = "Bus ridership rose 12% in 2023.",
        confidence: float = 0.5,
        embedding: Optional[List[float]] = None,
    ) -> FactClaim:
        fact = FactClaim(
            id=uuid.uuid4(),
            claim=claim,
            embedding=embedding if embedding is not None else base_vector(),
            confidence=confidence,
            confidence_history=[history_entry(confidence, "initial")],
        )
        db_session.add(fact)
        await db_session.commit()
        return fact

    return _make
