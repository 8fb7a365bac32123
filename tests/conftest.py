"""Shared fakes for pipeline tests.

Network and database collaborators are replaced with in-process fakes so the
pipeline runs hermetically: a fake ``requests`` session for the FX service, a
fake psycopg2 pool and connections for history/storage, and a stub LLM oracle.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

import psycopg2
import pytest

from bank_notifications.core.assembler import TransactionAssembler
from bank_notifications.core.currency import CurrencyRateResolver
from bank_notifications.core.ingestion_orchestrator import IngestionOrchestrator
from bank_notifications.core.merchant_memory import InMemoryMerchantMemory
from bank_notifications.core.models import AIExtraction
from bank_notifications.core.pattern_extractor import PatternExtractor

CATEGORIES = ["Food", "Shopping", "Transport", "Bills", "Coffee", "Transfers", "Other"]


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, json_error: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._json_error = json_error

    def json(self) -> Any:
        if self._json_error:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    """Records GETs and replays canned responses (or raises)."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.calls.append(url)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.closed = False

    def execute(self, sql: str, params: Any = None) -> None:
        conn = self.connection
        conn.executed.append((sql, params))
        if conn.error is not None:
            if conn.close_on_error:
                conn.closed = 2
            raise conn.error
        conn.pending.append((sql, params))
        if conn.on_execute is not None:
            hook, conn.on_execute = conn.on_execute, None
            hook()

    def fetchone(self) -> Optional[tuple]:
        rows = self.connection.rows
        return rows.pop(0) if rows else None

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    """Minimal psycopg2 connection stand-in with its own transaction."""

    def __init__(
        self,
        rows: Optional[list[tuple]] = None,
        error: Optional[Exception] = None,
        close_on_error: bool = False,
    ) -> None:
        self.rows = list(rows or [])
        self.error = error
        self.close_on_error = close_on_error
        self.closed = 0
        self.on_execute: Optional[Callable[[], None]] = None
        self.executed: list[tuple[str, Any]] = []
        self.pending: list[tuple[str, Any]] = []
        self.committed: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1
        self.committed.extend(self.pending)
        self.pending.clear()

    def rollback(self) -> None:
        if self.closed:
            raise psycopg2.InterfaceError("connection already closed")
        self.rollbacks += 1
        self.pending.clear()


class FakePool:
    """psycopg2 pool stand-in: hands out idle connections, opens new ones from the factory."""

    def __init__(self, *connections: FakeConnection, factory: Optional[Callable[[], FakeConnection]] = None) -> None:
        self.idle = list(connections)
        self.factory = factory or FakeConnection
        self.opened = 0
        self.returned: list[tuple[FakeConnection, bool]] = []

    def getconn(self) -> FakeConnection:
        if self.idle:
            return self.idle.pop(0)
        self.opened += 1
        return self.factory()

    def putconn(self, conn: FakeConnection, close: bool = False) -> None:
        self.returned.append((conn, close))
        if not close and not conn.closed:
            self.idle.append(conn)


class StubOracle:
    """Returns a canned AIExtraction and counts calls."""

    def __init__(self, result: Optional[AIExtraction] = None) -> None:
        self.result = result
        self.calls: list[str] = []

    def extract(self, text: str) -> Optional[AIExtraction]:
        self.calls.append(text)
        return self.result


class StubResolver:
    def __init__(self, rates: Optional[dict[str, Decimal]] = None, error: Optional[Exception] = None) -> None:
        self.rates = rates or {}
        self.error = error

    def rate_to_base(self, currency: str) -> Decimal:
        if currency == "EGP":
            return Decimal(1)
        if self.error is not None:
            raise self.error
        return self.rates[currency]


class RecordingRepository:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.inserted: list[Any] = []

    def insert(self, txn: Any) -> str:
        if self.error is not None:
            raise self.error
        self.inserted.append(txn)
        return f"txn-{len(self.inserted)}"


@pytest.fixture
def received_at() -> datetime:
    return datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def extractor() -> PatternExtractor:
    return PatternExtractor()


@pytest.fixture
def resolver() -> CurrencyRateResolver:
    session = FakeSession(FakeResponse(200, {"rates": {"EGP": 50}}))
    return CurrencyRateResolver(overrides={"USD": Decimal("50.00")}, session=session)


@pytest.fixture
def memory() -> InMemoryMerchantMemory:
    return InMemoryMerchantMemory()


@pytest.fixture
def assembler(resolver: CurrencyRateResolver, memory: InMemoryMerchantMemory) -> TransactionAssembler:
    return TransactionAssembler(rate_resolver=resolver, categories=CATEGORIES, merchant_memory=memory)


@pytest.fixture
def make_orchestrator(extractor: PatternExtractor, assembler: TransactionAssembler):
    def _make(oracle: Any = None, repository: Any = None, **kwargs: Any) -> IngestionOrchestrator:
        return IngestionOrchestrator(
            extractor=extractor,
            assembler=assembler,
            oracle=oracle,
            repository=repository,
            **kwargs,
        )

    return _make
