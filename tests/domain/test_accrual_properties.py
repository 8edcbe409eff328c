"""
Property-based tests for the accrual engine.

Hypothesis generates catalog terms, bonuses and elapsed times; the
invariants below must hold for every combination.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from economy_kernel.domain.accrual import accrued
from economy_kernel.domain.dtos import CatalogEntryInfo, PositionInfo
from economy_kernel.domain.values import PositionMode, PositionStatus

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
WINDOW = 86_400
MAX_GAP = 2_592_000
DIVISOR = Decimal(100 * 30 * 86_400)


@composite
def worker_terms(draw):
    """A catalog entry plus a position bought from it."""
    entry = CatalogEntryInfo(
        id=uuid4(),
        code="asset",
        name="Asset",
        base_price_coins=draw(st.decimals(
            min_value=Decimal("1"), max_value=Decimal("1000000"), places=2,
            allow_nan=False, allow_infinity=False,
        )),
        worker_gross_yield_pct=draw(st.decimals(
            min_value=Decimal("0"), max_value=Decimal("100"), places=2,
            allow_nan=False, allow_infinity=False,
        )),
        maintenance_fee_pct=Decimal("0"),
        investor_fixed_yield_pct=Decimal("0"),
        active=True,
    )
    position = PositionInfo(
        id=uuid4(),
        owner_id=uuid4(),
        catalog_entry_id=entry.id,
        mode=PositionMode.WORKER,
        status=PositionStatus.ACTIVE,
        purchased_at=T0,
        last_serviced_at=T0,
        health_pct=Decimal("100"),
        bonus_yield_pct=draw(st.decimals(
            min_value=Decimal("0"), max_value=Decimal("50"), places=2,
            allow_nan=False, allow_infinity=False,
        )),
    )
    return entry, position


elapsed_seconds = st.integers(min_value=0, max_value=2 * MAX_GAP)


def _accrue(terms, seconds):
    entry, position = terms
    return accrued(
        position,
        entry,
        T0 + timedelta(seconds=seconds),
        collection_window_seconds=WINDOW,
        max_gap_window_seconds=MAX_GAP,
    )


def _full_rate(terms) -> Decimal:
    entry, position = terms
    return entry.base_price_coins * (entry.worker_gross_yield_pct + position.bonus_yield_pct)


class TestAccrualProperties:
    @given(terms=worker_terms(), a=elapsed_seconds, b=elapsed_seconds)
    @settings(max_examples=200, deadline=None)
    def test_monotonic_in_time(self, terms, a, b):
        earlier, later = sorted((a, b))

        first = _accrue(terms, earlier)
        second = _accrue(terms, later)

        assert second.payable >= first.payable
        assert second.gap >= first.gap

    @given(terms=worker_terms(), seconds=elapsed_seconds)
    @settings(max_examples=200, deadline=None)
    def test_payable_capped_by_window(self, terms, seconds):
        result = _accrue(terms, seconds)

        assert Decimal("0") <= result.payable <= _full_rate(terms) * WINDOW / DIVISOR

    @given(terms=worker_terms(), seconds=elapsed_seconds)
    @settings(max_examples=200, deadline=None)
    def test_total_capped_by_gap_window(self, terms, seconds):
        result = _accrue(terms, seconds)

        assert result.total <= _full_rate(terms) * MAX_GAP / DIVISOR

    @given(terms=worker_terms(), seconds=st.integers(min_value=0, max_value=WINDOW))
    @settings(max_examples=100, deadline=None)
    def test_no_gap_inside_window(self, terms, seconds):
        assert _accrue(terms, seconds).gap == Decimal("0")
