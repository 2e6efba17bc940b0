# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Generator, Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from civic_stage.core.settings import Settings
from civic_stage.db.session import create_tables, drop_tables
from civic_stage.identity.local import LocalIdentityProvider
from civic_stage.services.analysis import AnalysisConfig, TextAnalyzer
from civic_stage.store.base import DocumentSnapshot
from civic_stage.store.sql import SqlDocumentStore
from civic_stage.sync.context import AppContext

TEST_DB_URL = "sqlite://"
ADMIN_EMAIL = "admin@amarkotha.test"


async def _settle(rounds: int = 20) -> None:
    """Let scheduled watch deliveries and identity callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def _snap(doc_id: str, **data: Any) -> DocumentSnapshot:
    return DocumentSnapshot(id=doc_id, data=data)


@pytest.fixture()
def settle() -> Callable[..., Any]:
    return _settle


@pytest.fixture()
def snap() -> Callable[..., DocumentSnapshot]:
    return _snap


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        drop_tables(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with a known administrator address and analysis switched off."""
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key",
        DATABASE_URL=TEST_DB_URL,
        ADMIN_EMAIL=ADMIN_EMAIL,
        GEMINI_API_KEY=None,
    )


@pytest.fixture()
def store(session_factory: Callable[[], Session]) -> SqlDocumentStore:
    return SqlDocumentStore(session_factory)


@pytest.fixture()
def sent_resets() -> list[tuple[str, str]]:
    return []


@pytest.fixture()
def identity_provider(
    session_factory: Callable[[], Session],
    test_settings: Settings,
    sent_resets: list[tuple[str, str]],
) -> LocalIdentityProvider:
    return LocalIdentityProvider(
        session_factory,
        config=test_settings,
        mailer=lambda email, token: sent_resets.append((email, token)),
    )


@pytest.fixture()
def analyzer() -> TextAnalyzer:
    return TextAnalyzer(
        AnalysisConfig(
            api_key=None,
            model="gemini-test",
            base_url="https://analysis.test/v1beta",
            timeout_seconds=1.0,
        )
    )


@pytest.fixture()
def context(
    test_settings: Settings,
    store: SqlDocumentStore,
    identity_provider: LocalIdentityProvider,
    analyzer: TextAnalyzer,
) -> Iterator[AppContext]:
    yield AppContext(test_settings, store, identity_provider, analyzer)
