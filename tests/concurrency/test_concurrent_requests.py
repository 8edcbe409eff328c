"""
True concurrency tests for the economy kernel.

Real threads hit a file-backed SQLite database through independent
sessions.  Two EconomyEngine instances with separate lock registries stand
in for two server processes: only the position version column protects
them from each other.

Losers of a race may see ALREADY_IN_PROGRESS (in-process lock or version
conflict) or INTERNAL (database busy); both are retryable, so every worker
retries until it gets a deterministic answer.  The assertions are about
those settled answers and the resulting balances.
"""

import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy.orm import sessionmaker

from economy_kernel.db.engine import build_engine, create_tables
from economy_kernel.services.economy_engine import EconomyEngine, OperationStatus

pytestmark = pytest.mark.slow_locks

HOUR = 3600
NUM_THREADS = 8


def until_settled(call, attempts=200, pause=0.01):
    """Retry a facade call while its result is retryable."""
    result = call()
    for _ in range(attempts):
        if not result.is_retryable:
            return result
        time.sleep(pause)
        result = call()
    return result


def run_together(calls):
    """Start every call at the same instant; return settled results in order."""
    barrier = Barrier(len(calls), timeout=30)

    def worker(call):
        barrier.wait()
        return until_settled(call)

    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        futures = [executor.submit(worker, call) for call in calls]
        return [f.result(timeout=120) for f in futures]


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'economy.db'}"
    engine = build_engine(url)
    create_tables(engine)
    engine.dispose()
    return url


@pytest.fixture
def make_economy(database_url, clock, config):
    """Factory for independent EconomyEngine instances ("processes")."""
    engines = []

    def _make() -> EconomyEngine:
        db_engine = build_engine(database_url)
        engines.append(db_engine)
        factory = sessionmaker(bind=db_engine, expire_on_commit=False)
        economy = EconomyEngine(factory, clock=clock, config=config)
        economy.ensure_house_account().unwrap()
        return economy

    yield _make

    for db_engine in engines:
        db_engine.dispose()


@pytest.fixture
def economy(make_economy):
    return make_economy()


@pytest.fixture
def entry_id(economy):
    return economy.create_catalog_entry(
        code="drill",
        name="Drill",
        base_price_coins=Decimal("1000"),
        worker_gross_yield_pct=Decimal("6"),
        maintenance_fee_pct=Decimal("1"),
        investor_fixed_yield_pct=Decimal("5"),
    ).unwrap().id


@pytest.fixture
def owner_id(economy):
    account = economy.open_account("racer").unwrap()
    economy.adjust_balance(account.id, Decimal("5000")).unwrap()
    return account.id


def balance(economy, account_id) -> Decimal:
    return economy.get_account(account_id).unwrap().balance


def assert_reconciled(economy):
    assert all(r.is_balanced for r in economy.reconcile().unwrap())


class TestConcurrentCollection:
    """Many simultaneous collects on one position pay exactly once."""

    def test_single_winner_in_one_process(self, economy, clock, owner_id, entry_id):
        position_id = economy.buy(owner_id, entry_id, "worker").unwrap().position.id
        clock.advance(12 * HOUR)

        results = run_together(
            [lambda: economy.collect(position_id, owner_id)] * NUM_THREADS
        )

        statuses = Counter(r.status for r in results)
        assert statuses[OperationStatus.SUCCESS] == 1
        assert statuses[OperationStatus.TOO_SOON] == NUM_THREADS - 1
        assert balance(economy, owner_id) == Decimal("4001")
        assert_reconciled(economy)

    def test_single_winner_across_processes(
        self, make_economy, economy, clock, owner_id, entry_id
    ):
        other = make_economy()
        position_id = economy.buy(owner_id, entry_id, "worker").unwrap().position.id
        clock.advance(48 * HOUR)

        calls = []
        for i in range(NUM_THREADS):
            engine = economy if i % 2 == 0 else other
            calls.append(lambda engine=engine: engine.collect(position_id, owner_id))
        results = run_together(calls)

        winners = [r for r in results if r.is_success]
        assert len(winners) == 1
        assert all(r.status == OperationStatus.TOO_SOON for r in results if not r.is_success)
        assert winners[0].value.payable == Decimal("2")
        assert winners[0].value.gap == Decimal("2")
        assert balance(economy, owner_id) == Decimal("4002")
        assert economy.economy_stats().unwrap().vault.gap_total == Decimal("2")
        assert_reconciled(economy)

    def test_different_positions_same_owner_all_paid(self, economy, clock, owner_id, entry_id):
        position_ids = [
            economy.buy(owner_id, entry_id, "worker").unwrap().position.id for _ in range(4)
        ]
        clock.advance(12 * HOUR)

        results = run_together(
            [lambda pid=pid: economy.collect(pid, owner_id) for pid in position_ids]
        )

        assert all(r.is_success for r in results)
        # 5000 - 4 purchases + 4 half-day collections; no lost update
        assert balance(economy, owner_id) == Decimal("1004")
        assert_reconciled(economy)


class TestConcurrentPurchases:
    def test_balance_never_goes_negative(self, economy, entry_id):
        account = economy.open_account("spender").unwrap()
        economy.adjust_balance(account.id, Decimal("2500")).unwrap()

        results = run_together(
            [lambda: economy.buy(account.id, entry_id, "worker")] * 5
        )

        statuses = Counter(r.status for r in results)
        assert statuses[OperationStatus.SUCCESS] == 2
        assert statuses[OperationStatus.INSUFFICIENT_BALANCE] == 3
        assert balance(economy, account.id) == Decimal("500")
        assert len(economy.list_positions(account.id).unwrap()) == 2
        assert_reconciled(economy)


class TestConcurrentMaturity:
    def test_release_pays_exactly_once(
        self, make_economy, economy, clock, config, owner_id, entry_id
    ):
        other = make_economy()
        position_id = economy.buy(owner_id, entry_id, "investor").unwrap().position.id
        clock.advance(config.investor_term_seconds)

        calls = [lambda: economy.release(position_id, owner_id)] * 3
        calls += [lambda: other.release(position_id, owner_id)] * 3
        calls += [economy.run_maturity_sweep, other.run_maturity_sweep]
        results = run_together(calls)

        assert all(r.is_success for r in results)
        receipts = [r.value for r in results[:6]]
        for report in (r.value for r in results[6:]):
            receipts.extend(report.processed)
        paid = [receipt for receipt in receipts if not receipt.already_released]
        assert len(paid) == 1
        assert balance(economy, owner_id) == Decimal("5050")
        assert_reconciled(economy)
