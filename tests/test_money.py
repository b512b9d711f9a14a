"""
Tests for the money helpers and deal economics in core.constants.
"""

from decimal import Decimal

import pytest

from core.constants import deal_amounts, round_money, to_money
from core.errors import ValidationError


class TestToMoney:
    def test_accepts_strings_ints_and_floats(self):
        assert to_money("9500") == Decimal("9500.00")
        assert to_money(12) == Decimal("12.00")
        assert to_money(0.1) == Decimal("0.10")

    @pytest.mark.parametrize("bad", [None, "", "abc", "NaN", "Infinity", "12.345", "1e16", "1e20", "-1e20"])
    def test_rejects_bad_input(self, bad):
        with pytest.raises(ValidationError):
            to_money(bad, "price")

    def test_error_names_the_field(self):
        with pytest.raises(ValidationError) as exc:
            to_money("x", "card_offer_price")
        assert exc.value.details["field"] == "card_offer_price"


class TestDealAmounts:
    def test_worked_example(self):
        amounts = deal_amounts(Decimal("9000.00"), Decimal("9500.00"))

        assert amounts.commission_amount == Decimal("350.00")
        assert amounts.advance_amount == Decimal("2375.00")
        assert amounts.remaining_amount == Decimal("7125.00")
        assert amounts.platform_fee == Decimal("150.00")

    def test_rounds_half_up_and_stays_consistent(self):
        amounts = deal_amounts(Decimal("100.00"), Decimal("101.01"))

        assert amounts.commission_amount == Decimal("0.71")
        assert amounts.advance_amount == Decimal("25.25")
        assert amounts.advance_amount + amounts.remaining_amount == Decimal("101.01")
        assert amounts.commission_amount + amounts.platform_fee == Decimal("1.01")

    def test_zero_spread_means_zero_commission(self):
        amounts = deal_amounts(Decimal("500.00"), Decimal("500.00"))

        assert amounts.commission_amount == Decimal("0.00")
        assert amounts.platform_fee == Decimal("0.00")

    def test_rates_come_from_settings(self, settings):
        settings.DEAL_COMMISSION_RATE = Decimal("0.50")
        settings.DEAL_ADVANCE_RATE = Decimal("0.10")

        amounts = deal_amounts(Decimal("9000.00"), Decimal("9500.00"))

        assert amounts.commission_amount == Decimal("250.00")
        assert amounts.advance_amount == Decimal("950.00")
        assert amounts.platform_fee == Decimal("250.00")


def test_round_money_uses_configured_quantum(settings):
    settings.MONEY_QUANTUM = Decimal("1")
    assert round_money(Decimal("10.50")) == Decimal("11.00")


def test_whole_rupee_quantum_rounds_deal_amounts(settings):
    # spread 333: commission 233.10 and advance 2333.25 round half-up to whole rupees
    settings.MONEY_QUANTUM = Decimal("1")

    amounts = deal_amounts(Decimal("9000.00"), Decimal("9333.00"))

    assert amounts.commission_amount == Decimal("233.00")
    assert amounts.advance_amount == Decimal("2333.00")
    assert amounts.remaining_amount == Decimal("7000.00")
    assert amounts.platform_fee == Decimal("100.00")
