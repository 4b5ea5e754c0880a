"""Pytest fixtures for Trend Intelligence tests."""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from trendintel.engine import SignalEngine
from trendintel.ingest.signals import AssetKind, RawSignal
from trendintel.ingest.window import SignalWindow
from trendintel.lifecycle import AssetLifecycleManager
from trendintel.models import Base
from trendintel.sources import SourceTable
from trendintel.store.memory import InMemoryAssetStore

NOW = datetime(2026, 3, 2, 15, 30, tzinfo=UTC)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def table() -> SourceTable:
    return SourceTable()


@pytest.fixture
def make_signal(clock: FixedClock) -> Callable[..., RawSignal]:
    """Factory for raw signals observed relative to the fixed clock."""

    def _make(
        source_name: str = "Reddit",
        symbol: str = "GME",
        confidence: float = 80.0,
        sentiment: float = 0.7,
        *,
        hours_ago: float = 0.0,
        asset_kind: AssetKind = AssetKind.EQUITY,
        **metadata,
    ) -> RawSignal:
        return RawSignal(
            source_name=source_name,
            symbol=symbol,
            asset_kind=asset_kind,
            confidence=confidence,
            sentiment=sentiment,
            observed_at=clock() - timedelta(hours=hours_ago),
            metadata=metadata,
        )

    return _make


@pytest.fixture
def store() -> InMemoryAssetStore:
    return InMemoryAssetStore()


@pytest.fixture
def window(clock: FixedClock) -> SignalWindow:
    return SignalWindow(now_fn=clock)


@pytest.fixture
def lifecycle(store: InMemoryAssetStore, clock: FixedClock) -> AssetLifecycleManager:
    return AssetLifecycleManager(store, now_fn=clock)


@pytest.fixture
def engine(store: InMemoryAssetStore, table: SourceTable, clock: FixedClock) -> SignalEngine:
    return SignalEngine(store, table, now_fn=clock)


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """In-memory SQLite shared across sessions for one test."""
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(db_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    Base.metadata.drop_all(db_engine)
    db_engine.dispose()
