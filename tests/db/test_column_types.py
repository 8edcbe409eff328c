"""
Column types shared by every model: exact coin precision and UTC timestamps.
"""

from decimal import Decimal

import pytest
from sqlalchemy import Numeric

from economy_kernel.db.types import MONEY_DECIMAL_PLACES, UTCDateTime, round_money, truncate_money
from economy_kernel.models.account import Account
from economy_kernel.models.catalog import AssetCatalogEntry
from economy_kernel.models.ledger import LedgerEntry
from economy_kernel.models.position import Position


class TestMoneyColumns:
    @pytest.mark.parametrize(
        "column",
        [
            Account.__table__.c.balance,
            LedgerEntry.__table__.c.amount,
            LedgerEntry.__table__.c.balance_after,
            Position.__table__.c.price_paid,
            Position.__table__.c.bonus_yield_pct,
            AssetCatalogEntry.__table__.c.base_price_coins,
        ],
        ids=lambda c: f"{c.table.name}.{c.name}",
    )
    def test_stored_at_money_precision(self, column):
        assert isinstance(column.type, Numeric)
        assert column.type.precision == 38
        assert column.type.scale == MONEY_DECIMAL_PLACES

    def test_timestamps_are_utc(self):
        assert isinstance(Position.__table__.c.last_serviced_at.type, UTCDateTime)
        assert isinstance(LedgerEntry.__table__.c.created_at.type, UTCDateTime)


class TestRounding:
    def test_round_half_up(self):
        assert round_money(Decimal("0.0000000005")) == Decimal("0.000000001")

    def test_truncate_toward_zero(self):
        assert truncate_money(Decimal("0.6666666666")) == Decimal("0.666666666")
        assert truncate_money(Decimal("-0.6666666666")) == Decimal("-0.666666666")
