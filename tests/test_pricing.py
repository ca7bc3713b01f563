"""Tests for payment amount derivation."""

from decimal import Decimal

from shiftpay.hours import calculate_hours
from shiftpay.pricing import price_actual, price_estimate, round_money, to_decimal


class TestRounding:
    """Tests for money rounding."""

    def test_half_up_to_cents(self):
        assert round_money("2.675") == Decimal("2.68")
        assert round_money("0.005") == Decimal("0.01")
        assert round_money("23.0625") == Decimal("23.06")

    def test_floats_convert_without_artifacts(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert round_money(1.005) == Decimal("1.01")


class TestPriceActual:
    """Tests for settlement pricing."""

    def test_overtime_scenario(self):
        """$15/h, 9.5h, no break, overtime x1.5."""
        hours = calculate_hours(
            "2026-03-02T09:00:00Z", "2026-03-02T18:30:00Z", break_minutes=0
        )
        amounts = price_actual(hours, "15", "1.5", "0.15")

        assert amounts.regular_hours == Decimal("8")
        assert amounts.overtime_hours == Decimal("1.5")
        assert amounts.regular_amount == Decimal("120.00")
        assert amounts.overtime_amount == Decimal("33.75")
        assert amounts.subtotal == Decimal("153.75")
        assert amounts.platform_fee == Decimal("23.06")
        assert amounts.total_charged == Decimal("176.81")
        assert amounts.worker_payout == Decimal("153.75")

    def test_fee_is_billed_on_top(self):
        hours = calculate_hours("2026-03-02T09:00:00Z", "2026-03-02T14:20:00Z")
        amounts = price_actual(hours, "13.37", "1", "0.15")
        assert amounts.worker_payout == amounts.subtotal
        assert amounts.total_charged == amounts.subtotal + amounts.platform_fee

    def test_zero_fee(self):
        hours = calculate_hours("2026-03-02T09:00:00Z", "2026-03-02T13:00:00Z")
        amounts = price_actual(hours, "20", "1", "0")
        assert amounts.platform_fee == Decimal("0")
        assert amounts.total_charged == amounts.subtotal == Decimal("80.00")

    def test_each_amount_is_rounded(self):
        # 7h35m at $12.35 -> 7.58333...h
        hours = calculate_hours("2026-03-02T09:00:00Z", "2026-03-02T16:35:00Z", break_minutes=0)
        amounts = price_actual(hours, "12.35", "1", "0.15")
        assert amounts.regular_amount == Decimal("93.65")
        assert amounts.platform_fee == Decimal("14.05")
        assert amounts.total_charged == Decimal("107.70")


class TestPriceEstimate:
    """Tests for escrow hold pricing."""

    def test_all_hours_are_regular(self):
        amounts = price_estimate("10", "15", "0.15")
        assert amounts.regular_amount == Decimal("150.00")
        assert amounts.overtime_hours == Decimal("0")
        assert amounts.overtime_amount == Decimal("0")
        assert amounts.subtotal == Decimal("150.00")
        assert amounts.platform_fee == Decimal("22.50")
        assert amounts.total_charged == Decimal("172.50")
