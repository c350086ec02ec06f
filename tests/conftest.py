"""
Pytest configuration for the price ingestion pipeline.

Provides fixtures for:
- Settings with a test password (settings refuse to load without one)
- An in-memory fake gateway that applies rows only on commit
- Database connection management and table cleanup for integration tests
- Sample NDJSON files
"""

from __future__ import annotations

import gzip
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence

import psycopg
import pytest

from price_ingest.config import Settings, get_settings
from price_ingest.domain.models import BILLING_CLASSES, NEGOTIATED_TYPES
from price_ingest.infrastructure.db_factory import build_dsn
from price_ingest.infrastructure.gateway import PersistenceGateway, TableCounts


@pytest.fixture(autouse=True)
def _db_password(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Settings require DB_PASSWORD; provide one unless the environment already does."""
    if not os.getenv("DB_PASSWORD"):
        monkeypatch.setenv("DB_PASSWORD", "postgres")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


class FakeStore:
    """
    Rows visible to readers; sessions stage inserts and apply them on commit.
    """

    def __init__(self) -> None:
        self.services: List[Dict[str, Any]] = []
        self.rates: List[Dict[str, Any]] = []
        self.transactions = 0
        self.commits = 0
        self.rollbacks = 0
        self.fail_service_names: set = set()
        self.break_service_names: set = set()
        self._next_id = 1
        self._lock = threading.Lock()

    def allocate_id(self) -> int:
        with self._lock:
            service_id = self._next_id
            self._next_id += 1
            return service_id

    def begin(self) -> None:
        with self._lock:
            self.transactions += 1

    def commit(self, services: List[Dict[str, Any]], rates: List[Dict[str, Any]]) -> None:
        with self._lock:
            self.services.extend(services)
            self.rates.extend(rates)
            self.commits += 1

    def rollback(self) -> None:
        with self._lock:
            self.rollbacks += 1

    def rates_for(self, service_id: int) -> List[Dict[str, Any]]:
        return [rate for rate in self.rates if rate["service_id"] == service_id]


class _FakeStatement:
    def __init__(self, session: "FakeSession", query: str) -> None:
        self._session = session
        self.query = query

    def execute(self, params: Sequence[Any]) -> Optional[tuple]:
        return self._session.execute(self.query, params)


class FakeSession:
    def __init__(self, gateway: "FakeGateway") -> None:
        self._gateway = gateway
        self._store = gateway.store
        self._staged: Optional[Dict[str, List[Dict[str, Any]]]] = None
        self.broken = False
        self.prepared: List[str] = []

    def __enter__(self) -> "FakeSession":
        if self._gateway.fail_sessions:
            raise psycopg.OperationalError("connection refused")
        self._gateway.sessions_opened += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def prepare(self, query: str) -> _FakeStatement:
        if self._gateway.fail_prepare:
            raise psycopg.errors.UndefinedTable('relation "insurance_services" does not exist')
        self.prepared.append(query)
        return _FakeStatement(self, query)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        self._store.begin()
        self._staged = {"services": [], "rates": []}
        try:
            yield
        except BaseException:
            self._staged = None
            self._store.rollback()
            raise
        staged, self._staged = self._staged, None
        self._store.commit(staged["services"], staged["rates"])

    def execute(self, query: str, params: Sequence[Any]) -> Optional[tuple]:
        if self._staged is None:
            raise psycopg.InterfaceError("statement executed outside a transaction")
        if "INSERT INTO insurance_services" in query:
            name = params[1]
            if name in self._store.break_service_names:
                self.broken = True
                raise psycopg.OperationalError("server closed the connection unexpectedly")
            if name in self._store.fail_service_names:
                raise psycopg.errors.StringDataRightTruncation("value too long")
            service_id = self._store.allocate_id()
            self._staged["services"].append(
                {
                    "id": service_id,
                    "negotiation_arrangement": params[0],
                    "name": name,
                    "billing_code_type": params[2],
                    "billing_code_type_version": params[3],
                    "billing_code": params[4],
                    "description": params[5],
                }
            )
            return (service_id,)
        if "INSERT INTO negotiated_rates" in query:
            (service_id, providers, negotiated_type, rate, expires, codes, billing_class) = params
            if negotiated_type not in NEGOTIATED_TYPES or billing_class not in BILLING_CLASSES:
                raise psycopg.errors.CheckViolation("new row violates check constraint")
            self._staged["rates"].append(
                {
                    "service_id": service_id,
                    "provider_references": providers,
                    "negotiated_type": negotiated_type,
                    "negotiated_rate": rate,
                    "expiration_date": expires,
                    "service_codes": codes,
                    "billing_class": billing_class,
                }
            )
            return None
        raise AssertionError(f"unexpected statement: {query}")


class FakeGateway:
    def __init__(self, max_size: int = 25) -> None:
        self.store = FakeStore()
        self.max_size = max_size
        self.fail_sessions = False
        self.fail_prepare = False
        self.sessions_opened = 0
        self.tables_created = 0

    def session(self) -> FakeSession:
        return FakeSession(self)

    def create_tables(self) -> None:
        self.tables_created += 1

    def table_counts(self) -> TableCounts:
        return TableCounts(services=len(self.store.services), rates=len(self.store.rates))


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Factory for tests that need more than one independent store."""
    return FakeGateway


@pytest.fixture
def write_lines(tmp_path: Path) -> Callable[..., Path]:
    """Write raw lines to a plain or gzip file under tmp_path."""

    def _write(name: str, lines: Sequence[str]) -> Path:
        path = tmp_path / name
        data = "".join(line + "\n" for line in lines).encode("utf-8")
        if name.endswith(".gz"):
            with gzip.open(path, "wb") as f:
                f.write(data)
        else:
            path.write_bytes(data)
        return path

    return _write


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD") or "postgres",
        db_name=os.getenv("DB_NAME", "healthcare_saver"),
        db_pool_max_size=10,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;")
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_gateway(
    test_dsn: str, test_settings: Settings, db_connection_available: bool
) -> Generator[PersistenceGateway, None, None]:
    """
    Provide a session-scoped, opened gateway with the tables created.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    gateway = PersistenceGateway(conninfo=test_dsn, settings=test_settings)
    gateway.open()
    gateway.create_tables()
    try:
        yield gateway
    finally:
        gateway.close()


@pytest.fixture
def clean_tables(test_dsn: str, db_gateway: PersistenceGateway) -> Generator[None, None, None]:
    """
    Empty both tables before and after each test for isolation.
    """
    truncate = "TRUNCATE TABLE negotiated_rates, insurance_services RESTART IDENTITY CASCADE;"
    with psycopg.connect(test_dsn) as conn:
        conn.execute(truncate)
    yield
    with psycopg.connect(test_dsn) as conn:
        conn.execute(truncate)
