"""
Pytest fixtures for the economy kernel test suite.

Provides:
- An in-memory SQLite database per test (tables + append-only listeners)
- A DeterministicClock shared by services and the EconomyEngine facade
- Seeded house vault, funded accounts and a standard catalog entry
- Structured log capture

Concurrency tests build their own file-backed databases (see
tests/concurrency/).
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from economy_config import EconomyConfig
from economy_kernel.db.engine import build_engine, create_tables
from economy_kernel.domain.clock import DeterministicClock
from economy_kernel.domain.dtos import AccountInfo, CatalogEntryInfo
from economy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from economy_kernel.services.catalog_service import CatalogService
from economy_kernel.services.collection_service import CollectionService
from economy_kernel.services.economy_engine import EconomyEngine
from economy_kernel.services.ledger_service import LedgerService
from economy_kernel.services.lifecycle_service import LifecycleService
from economy_kernel.services.promotion_service import PromotionService

# Reference catalog terms used throughout: 1000 coins, 6 %/month worker
# yield, 1 %/month maintenance, 5 % investor yield per term
PRICE = Decimal("1000")
WORKER_YIELD = Decimal("6")
MAINTENANCE_FEE = Decimal("1")
INVESTOR_YIELD = Decimal("5")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture economy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, economy):
            economy.collect(...)
            logs = captured_logs()
            assert any(r["message"] == "collection_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("economy_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Time and configuration
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def config() -> EconomyConfig:
    return EconomyConfig()


# =============================================================================
# Services (flush-only, single session)
# =============================================================================


@pytest.fixture
def ledger(session, clock, config) -> LedgerService:
    service = LedgerService(session, clock, house_account_code=config.house_account_code)
    service.ensure_house_account()
    return service


@pytest.fixture
def catalog_service(session, clock) -> CatalogService:
    return CatalogService(session, clock)


@pytest.fixture
def promotion_service(session, clock) -> PromotionService:
    return PromotionService(session, clock)


@pytest.fixture
def collection_service(session, clock, ledger, config) -> CollectionService:
    return CollectionService(
        session,
        clock,
        ledger,
        collection_window_seconds=config.collection_window_seconds,
        max_gap_window_seconds=config.max_gap_window_seconds,
        min_collection_interval_seconds=config.min_collection_interval_seconds,
    )


@pytest.fixture
def lifecycle_service(session, clock, ledger, config) -> LifecycleService:
    return LifecycleService(
        session,
        clock,
        ledger,
        investor_term_seconds=config.investor_term_seconds,
        repair_cost_pct=config.repair_cost_pct,
        maintenance_interval_seconds=config.maintenance_interval_seconds,
        health_decay_factor=config.health_decay_factor,
    )


@pytest.fixture
def funded_account(ledger) -> Callable[..., AccountInfo]:
    """Factory: open an account and credit it through an admin adjustment."""
    counter = {"n": 0}

    def _make(balance: Decimal = Decimal("5000"), code: str | None = None) -> AccountInfo:
        counter["n"] += 1
        account = ledger.open_account(code or f"user-{counter['n']}")
        if balance:
            ledger.adjust(account.id, balance, note="test funding")
        return ledger.get(account.id)

    return _make


@pytest.fixture
def catalog_entry(catalog_service) -> CatalogEntryInfo:
    return catalog_service.create_entry(
        code="drill",
        name="Drill",
        base_price_coins=PRICE,
        worker_gross_yield_pct=WORKER_YIELD,
        maintenance_fee_pct=MAINTENANCE_FEE,
        investor_fixed_yield_pct=INVESTOR_YIELD,
    )


# =============================================================================
# EconomyEngine facade (one transaction per call)
# =============================================================================


@pytest.fixture
def economy(session_factory, clock, config) -> EconomyEngine:
    engine = EconomyEngine(session_factory, clock=clock, config=config)
    engine.ensure_house_account().unwrap()
    return engine


@pytest.fixture
def economy_catalog_entry(economy) -> CatalogEntryInfo:
    return economy.create_catalog_entry(
        code="drill",
        name="Drill",
        base_price_coins=PRICE,
        worker_gross_yield_pct=WORKER_YIELD,
        maintenance_fee_pct=MAINTENANCE_FEE,
        investor_fixed_yield_pct=INVESTOR_YIELD,
    ).unwrap()


@pytest.fixture
def economy_account(economy) -> Callable[..., UUID]:
    """Factory: open and fund an account through the facade; returns its id."""
    counter = {"n": 0}

    def _make(balance: Decimal = Decimal("5000")) -> UUID:
        counter["n"] += 1
        account = economy.open_account(f"player-{counter['n']}").unwrap()
        if balance:
            economy.adjust_balance(account.id, balance, note="test funding").unwrap()
        return account.id

    return _make
