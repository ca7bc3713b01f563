"""Pydantic models for shifts, timesheets and escrow payments.

All monetary values use Decimal, never float. Records map one-to-one onto
rows of the Supabase tables named in ``shiftpay.storage.base``.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from .hours import HoursBreakdown
from .pricing import PaymentAmounts

# =============================================================================
# Enums
# =============================================================================


class ShiftStatus(str, Enum):
    """Shift lifecycle states."""

    draft = "draft"
    open = "open"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    """Escrow payment lifecycle states."""

    held = "held"
    released = "released"
    refunded = "refunded"


class SettlementState(str, Enum):
    """Steps of a settlement saga.

    ``released_pending_shift_update`` means the money moved but the shift
    has not been flipped to completed yet.
    """

    pending = "pending"
    released_pending_shift_update = "released_pending_shift_update"
    completed = "completed"


class NotificationCategory(str, Enum):
    """Notification types accepted by the notifications table."""

    application = "application"
    shift = "shift"
    timesheet = "timesheet"
    payment = "payment"
    dispute = "dispute"


class OutboxStatus(str, Enum):
    """Delivery states of an outbox event."""

    pending = "pending"
    sent = "sent"
    failed = "failed"
    dead = "dead"


# Valid state transitions. Completed and cancelled are terminal.
VALID_SHIFT_TRANSITIONS: dict[ShiftStatus, set[ShiftStatus]] = {
    ShiftStatus.draft: {ShiftStatus.open, ShiftStatus.cancelled},
    ShiftStatus.open: {ShiftStatus.in_progress, ShiftStatus.completed, ShiftStatus.cancelled},
    ShiftStatus.in_progress: {ShiftStatus.completed, ShiftStatus.cancelled},
    ShiftStatus.completed: set(),
    ShiftStatus.cancelled: set(),
}

# held -> refunded exists in the data model; nothing in this package enters it.
VALID_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.held: {PaymentStatus.released, PaymentStatus.refunded},
    PaymentStatus.released: set(),
    PaymentStatus.refunded: set(),
}


def can_transition_shift(current: ShiftStatus, target: ShiftStatus) -> bool:
    """Return True if a shift may move from *current* to *target*."""
    return target in VALID_SHIFT_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Return True if a payment may move from *current* to *target*."""
    return target in VALID_PAYMENT_TRANSITIONS[current]


# =============================================================================
# Database / Domain Models
# =============================================================================


class Record(BaseModel):
    """Base for table rows."""

    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize for the data store (JSON-safe, unset ids dropped)."""
        row = self.model_dump(mode="json")
        for key in ("id", "created_at", "updated_at"):
            if row.get(key) is None:
                row.pop(key, None)
        return row


class Shift(Record):
    """A posted unit of work owned by an employer."""

    employer_id: str
    job_title: str | None = None
    location: str | None = None
    shift_date: date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    hourly_rate: Decimal | None = None
    workers_needed: int = 1
    overtime_multiplier: Decimal | None = None
    status: ShiftStatus = ShiftStatus.draft

    @property
    def effective_overtime_multiplier(self) -> Decimal:
        """Overtime multiplier, 1 when the shift does not set one."""
        return self.overtime_multiplier or Decimal("1")


class Timesheet(Record):
    """One worker's attendance for one shift."""

    shift_id: str | None = None
    worker_id: str | None = None
    clock_in_time: datetime | None = None
    clock_out_time: datetime | None = None
    break_duration_minutes: int | None = None
    employer_confirmed: bool = False
    worker_confirmed: bool = False
    is_disputed: bool = False
    superseded: bool = False


class EscrowPayment(Record):
    """A financial hold against a shift, released at settlement."""

    shift_id: str
    employer_id: str
    timesheet_id: str | None = None
    application_id: str | None = None
    worker_id: str | None = None
    regular_hours: Decimal = Decimal("0")
    regular_amount: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    overtime_amount: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    platform_fee_percentage: Decimal = Decimal("0.15")
    total_charged: Decimal = Decimal("0")
    worker_payout: Decimal | None = None
    status: PaymentStatus = PaymentStatus.held
    gateway_hold_ref: str | None = None
    gateway_transfer_ref: str | None = None
    payment_captured_at: datetime | None = None
    released_at: datetime | None = None
    refund_amount: Decimal | None = None
    refund_reason: str | None = None
    refunded_at: datetime | None = None


class Settlement(Record):
    """Saga record for settling one shift."""

    shift_id: str
    timesheet_id: str
    payment_id: str | None = None
    state: SettlementState = SettlementState.pending
    last_error: str | None = None
    completed_at: datetime | None = None


class OutboxEvent(Record):
    """A notification waiting to be delivered."""

    user_id: str
    category: NotificationCategory
    title: str
    message: str
    link: str
    dedupe_key: str
    status: OutboxStatus = OutboxStatus.pending
    attempts: int = 0
    last_error: str | None = None
    dispatched_at: datetime | None = None


def amounts_to_row(amounts: PaymentAmounts) -> dict[str, str]:
    """Serialize PaymentAmounts as payment columns."""
    return {
        "regular_hours": str(amounts.regular_hours),
        "regular_amount": str(amounts.regular_amount),
        "overtime_hours": str(amounts.overtime_hours),
        "overtime_amount": str(amounts.overtime_amount),
        "subtotal": str(amounts.subtotal),
        "platform_fee": str(amounts.platform_fee),
        "platform_fee_percentage": str(amounts.platform_fee_percentage),
        "total_charged": str(amounts.total_charged),
    }


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SettlementQuote:
    """What a settlement would charge, computed without writing anything."""

    timesheet_id: str
    shift_id: str
    hours: HoursBreakdown
    hourly_rate: Decimal
    overtime_multiplier: Decimal
    amounts: PaymentAmounts
    escrow_held: Decimal | None = None

    @property
    def escrow_adjustment(self) -> Decimal | None:
        """Final total minus what the hold reserved (None without a hold)."""
        if self.escrow_held is None:
            return None
        return self.amounts.total_charged - self.escrow_held


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of ``SettlementEngine.settle``.

    ``shift_updated`` is False when the payment was released but the shift
    status write failed; the settlement is then left for reconciliation.
    """

    payment: EscrowPayment
    shift_updated: bool
    already_settled: bool = False
    settlement_id: str | None = None
    escrow_adjustment: Decimal | None = None


@dataclass
class ReconciliationReport:
    """Counts from one reconciliation pass."""

    examined: int = 0
    completed: int = 0
    still_pending: int = 0
    errors: list[str] = field(default_factory=list)
