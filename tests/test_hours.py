"""Tests for timesheet hours calculation."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from shiftpay.hours import (
    AUTO_BREAK_MINUTES,
    calculate_hours,
    estimate_shift_hours,
    parse_timestamp,
)


def at(hhmm: str, day: int = 2) -> str:
    return f"2026-03-{day:02d}T{hhmm}:00+00:00"


class TestBreakPolicy:
    """Tests for the automatic break rule."""

    def test_exactly_six_hours_gets_no_break(self):
        """Six hours is not over six hours."""
        result = calculate_hours(at("09:00"), at("15:00"))
        assert result.total_minutes == 360
        assert result.break_minutes == 0
        assert result.billable_hours == Decimal("6")

    def test_over_six_hours_gets_auto_break(self):
        result = calculate_hours(at("09:00"), at("15:01"))
        assert result.total_minutes == 361
        assert result.break_minutes == AUTO_BREAK_MINUTES
        assert result.billable_minutes == 361 - 45

    def test_explicit_zero_break_is_honored(self):
        """A recorded break of 0 is not replaced by the auto-break."""
        result = calculate_hours(at("08:00"), at("18:00"), break_minutes=0)
        assert result.break_minutes == 0
        assert result.billable_hours == Decimal("10")
        assert result.overtime_hours == Decimal("2")

    def test_explicit_break_is_used_as_is(self):
        result = calculate_hours(at("09:00"), at("17:00"), break_minutes=30)
        assert result.break_minutes == 30
        assert result.total_hours == Decimal("7.5")

    def test_break_longer_than_shift_is_reset(self):
        result = calculate_hours(at("09:00"), at("09:30"), break_minutes=45)
        assert result.break_minutes == 0
        assert result.billable_minutes == 30


class TestMinimumAndOvertime:
    """Tests for the paid minimum and overtime split."""

    def test_short_shift_paid_minimum(self):
        result = calculate_hours(at("09:00"), at("11:00"))
        assert result.total_hours == Decimal("2")
        assert result.billable_hours == Decimal("4")
        assert result.regular_hours == Decimal("4")
        assert result.overtime_hours == Decimal("0")

    def test_zero_billable_time_paid_minimum(self):
        result = calculate_hours(at("09:00"), at("09:30"), break_minutes=30)
        assert result.billable_minutes == 0
        assert result.billable_hours == Decimal("4")

    def test_nine_and_a_half_hours_no_break(self):
        result = calculate_hours(at("09:00"), at("18:30"), break_minutes=0)
        assert result.billable_hours == Decimal("9.5")
        assert result.regular_hours == Decimal("8")
        assert result.overtime_hours == Decimal("1.5")

    @pytest.mark.parametrize(
        "clock_out,break_minutes",
        [("10:00", None), ("13:00", None), ("17:00", 0), ("17:20", None), ("21:00", 15)],
    )
    def test_regular_plus_overtime_equals_billable(self, clock_out, break_minutes):
        result = calculate_hours(at("09:00"), at(clock_out), break_minutes=break_minutes)
        assert result.regular_hours + result.overtime_hours == result.billable_hours
        assert result.overtime_hours == max(Decimal("0"), result.billable_hours - 8)

    def test_custom_minimum_and_threshold(self):
        result = calculate_hours(
            at("09:00"),
            at("16:00"),
            break_minutes=0,
            minimum_hours=2,
            overtime_threshold_hours=6,
        )
        assert result.regular_hours == Decimal("6")
        assert result.overtime_hours == Decimal("1")


class TestOvernight:
    """Tests for shifts crossing midnight."""

    def test_clock_out_earlier_in_day_crosses_midnight(self):
        result = calculate_hours(at("23:30"), at("00:15"))
        assert result.total_minutes == 45

    def test_clock_out_on_next_day(self):
        result = calculate_hours(at("22:00"), at("06:00", day=3), break_minutes=0)
        assert result.total_minutes == 480
        assert result.billable_hours == Decimal("8")


class TestTimestampParsing:
    """Tests for timestamp inputs."""

    def test_naive_string_is_utc(self):
        assert parse_timestamp("2026-03-02T09:00:00") == datetime(
            2026, 3, 2, 9, 0, tzinfo=timezone.utc
        )

    def test_accepts_datetimes_and_offsets(self):
        clock_in = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        # 18:00 at +08:00 is 10:00 UTC
        result = calculate_hours(clock_in, "2026-03-02T18:00:00+08:00", break_minutes=0)
        assert result.total_minutes == 60

    def test_seconds_round_to_nearest_minute(self):
        result = calculate_hours("2026-03-02T09:00:00Z", "2026-03-02T13:00:30Z", break_minutes=0)
        assert result.total_minutes == 241


class TestEstimateShiftHours:
    """Tests for the posting-time estimate."""

    def test_long_shift_deducts_break_and_scales_by_workers(self):
        assert estimate_shift_hours(at("09:00"), at("18:30"), workers=2) == Decimal("17.5")

    def test_short_shift_has_no_minimum_floor(self):
        assert estimate_shift_hours(at("09:00"), at("12:00")) == Decimal("3")

    def test_zero_workers_counts_as_one(self):
        assert estimate_shift_hours(at("09:00"), at("13:00"), workers=0) == Decimal("4")
