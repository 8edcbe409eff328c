"""
Tests for PromotionService (global promotion singleton).
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from economy_kernel.exceptions import InvalidInputError


class TestPromotionService:
    def test_no_row_reads_inactive(self, promotion_service, clock):
        state = promotion_service.current()

        assert not state.effective(clock.now())
        assert state.version == 0

    def test_activate_sets_window_from_clock(self, promotion_service, clock):
        state = promotion_service.activate(Decimal("20"), Decimal("2"), 3600)

        assert state.effective(clock.now())
        assert state.ends_at == clock.now() + timedelta(hours=1)
        assert state.version == 1

    def test_promotion_expires_without_flag_change(self, promotion_service, clock):
        promotion_service.activate(Decimal("20"), Decimal("2"), 3600)
        clock.advance(3600)

        state = promotion_service.current()

        assert state.active
        assert not state.effective(clock.now())

    def test_deactivate_bumps_version(self, promotion_service, clock):
        promotion_service.activate(Decimal("10"), Decimal("1"), 60)

        state = promotion_service.deactivate()

        assert not state.active
        assert not state.effective(clock.now())
        assert state.version == 2

    def test_reactivate_restarts_window(self, promotion_service, clock):
        promotion_service.activate(Decimal("10"), Decimal("1"), 60)
        clock.advance(600)

        state = promotion_service.activate(Decimal("15"), Decimal("3"), 60)

        assert state.effective(clock.now())
        assert state.discount_pct == Decimal("15")
        assert state.version == 2

    @pytest.mark.parametrize(
        "discount,bonus,duration",
        [
            (Decimal("100"), Decimal("0"), 60),
            (Decimal("-1"), Decimal("0"), 60),
            (Decimal("10"), Decimal("-1"), 60),
            (Decimal("10"), Decimal("1"), 0),
        ],
    )
    def test_invalid_parameters(self, promotion_service, discount, bonus, duration):
        with pytest.raises(InvalidInputError):
            promotion_service.activate(discount, bonus, duration)
