"""
Timesheet hours calculation.

Turns raw clock events into billable hours. Business rules:
- Overnight: a non-positive raw duration is treated as crossing midnight
  and gets 24 hours added. This cannot tell an overnight shift from a
  clock-out typed before the clock-in; callers that must reject the latter
  validate before calling.
- Break: 45 unpaid minutes for shifts over 6 hours unless a break was
  recorded. A recorded break (including 0) is always honored.
- Minimum: a worker is paid for at least ``minimum_hours``.
- Overtime: billable hours past ``overtime_threshold_hours``.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from dateutil.parser import isoparse

MINUTES_PER_DAY = 24 * 60
AUTO_BREAK_MINUTES = 45
AUTO_BREAK_AFTER_HOURS = Decimal("6")
DEFAULT_MINIMUM_HOURS = Decimal("4")
DEFAULT_OVERTIME_THRESHOLD_HOURS = Decimal("8")

Timestamp = Union[datetime, str]
HoursValue = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class HoursBreakdown:
    """Result of an hours calculation.

    ``total_minutes`` is the raw clocked duration, ``billable_minutes`` is
    that duration after the break, and ``total_hours`` is
    ``billable_minutes / 60`` before the minimum floor is applied.
    """

    total_minutes: int
    break_minutes: int
    billable_minutes: int
    total_hours: Decimal
    billable_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse an ISO timestamp (or pass a datetime through) as aware UTC."""
    dt = isoparse(value) if isinstance(value, str) else value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_decimal(value: HoursValue) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _raw_minutes(start: Timestamp, end: Timestamp) -> int:
    """Whole minutes between two timestamps, overnight-adjusted."""
    seconds = Decimal(str((parse_timestamp(end) - parse_timestamp(start)).total_seconds()))
    minutes = int((seconds / 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minutes <= 0:
        minutes += MINUTES_PER_DAY
    return minutes


def _auto_break(raw_minutes: int) -> int:
    if Decimal(raw_minutes) / 60 > AUTO_BREAK_AFTER_HOURS:
        return AUTO_BREAK_MINUTES
    return 0


def calculate_hours(
    clock_in: Timestamp,
    clock_out: Timestamp,
    break_minutes: int | None = None,
    minimum_hours: HoursValue = DEFAULT_MINIMUM_HOURS,
    overtime_threshold_hours: HoursValue = DEFAULT_OVERTIME_THRESHOLD_HOURS,
) -> HoursBreakdown:
    """Calculate the hours breakdown for one clock-in/clock-out pair.

    Args:
        clock_in: Clock-in time (datetime or ISO-8601 string).
        clock_out: Clock-out time (datetime or ISO-8601 string).
        break_minutes: Recorded break. ``None`` applies the auto-break rule.
        minimum_hours: Paid minimum (default 4).
        overtime_threshold_hours: Hours before overtime starts (default 8).

    Returns:
        HoursBreakdown with raw, break, billable, regular and overtime figures.
    """
    minimum = _as_decimal(minimum_hours)
    threshold = _as_decimal(overtime_threshold_hours)

    total_minutes = _raw_minutes(clock_in, clock_out)

    applied_break = _auto_break(total_minutes) if break_minutes is None else break_minutes
    if applied_break > total_minutes:
        applied_break = 0

    billable_minutes = max(0, total_minutes - applied_break)
    total_hours = Decimal(billable_minutes) / 60

    billable_hours = max(total_hours, minimum)
    regular_hours = min(billable_hours, threshold)
    overtime_hours = max(Decimal("0"), billable_hours - threshold)

    return HoursBreakdown(
        total_minutes=total_minutes,
        break_minutes=applied_break,
        billable_minutes=billable_minutes,
        total_hours=total_hours,
        billable_hours=billable_hours,
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
    )


def estimate_shift_hours(
    start: Timestamp,
    end: Timestamp,
    workers: int = 1,
) -> Decimal:
    """Estimate paid hours for a posted shift across all workers.

    Planned duration minus the auto-break, times the worker count. No
    minimum floor is applied: this sizes the escrow hold, the floor is
    applied at settlement from real clock data.
    """
    planned_minutes = _raw_minutes(start, end)
    work_minutes = planned_minutes - _auto_break(planned_minutes)
    return Decimal(work_minutes) / 60 * max(1, workers)
