"""Escrow and settlement routes.

Called by the app when an employer posts a shift (open the hold) and when
an employer confirms a worker's timesheet (settle it).
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from ...errors import ForbiddenError, NotFoundError, ValidationError
from ...logging_config import get_logger
from ...models import EscrowPayment, Shift, Timesheet
from ...storage import SHIFTS_TABLE, TIMESHEETS_TABLE, DataStore
from ..auth import Caller
from ..database import Engine, Ledger, Store
from ..rate_limit import limiter

logger = get_logger("shiftpay.api.payments")
router = APIRouter(tags=["payments"])


# =============================================================================
# Request/Response Models
# =============================================================================


class EscrowRequest(BaseModel):
    """Open an escrow hold. Omit ``estimated_hours`` to estimate from the shift."""

    estimated_hours: Decimal | None = Field(default=None, gt=0)
    hourly_rate: Decimal | None = Field(default=None, gt=0)
    fee_percentage: Decimal | None = Field(default=None, ge=0, le=1)


class PaymentSummaryResponse(BaseModel):
    """What settling a timesheet will charge."""

    timesheet_id: str
    shift_id: str
    clocked_minutes: int
    break_minutes: int
    actual_hours: Decimal
    billable_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    hourly_rate: Decimal
    overtime_multiplier: Decimal
    regular_amount: Decimal
    overtime_amount: Decimal
    subtotal: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    total_charged: Decimal
    worker_payout: Decimal
    escrow_held: Decimal | None = None
    escrow_adjustment: Decimal | None = None


class SettleResponse(BaseModel):
    """Outcome of a settlement."""

    payment: EscrowPayment
    shift_updated: bool
    already_settled: bool
    settlement_id: str | None = None
    escrow_adjustment: Decimal | None = None
    settled_at: datetime | None = None


# =============================================================================
# Lookups
# =============================================================================


async def load_shift(store: DataStore, shift_id: str) -> Shift:
    row = await store.fetch_one(SHIFTS_TABLE, {"id": shift_id})
    if row is None:
        raise NotFoundError("shift", shift_id)
    return Shift.model_validate(row)


async def load_timesheet(store: DataStore, timesheet_id: str) -> Timesheet:
    row = await store.fetch_one(TIMESHEETS_TABLE, {"id": timesheet_id})
    if row is None:
        raise NotFoundError("timesheet", timesheet_id)
    return Timesheet.model_validate(row)


async def load_timesheet_shift(store: DataStore, timesheet: Timesheet) -> Shift:
    if not timesheet.shift_id:
        raise ValidationError(f"Timesheet {timesheet.id} is not linked to a shift")
    return await load_shift(store, timesheet.shift_id)


def require_employer(shift: Shift, user_id: str) -> None:
    if shift.employer_id != user_id:
        raise ForbiddenError("Only the shift's employer can do this")


# =============================================================================
# Routes
# =============================================================================


@router.post(
    "/shifts/{shift_id}/escrow",
    response_model=EscrowPayment,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def open_escrow(
    request: Request,
    shift_id: str,
    user: Caller,
    store: Store,
    ledger: Ledger,
    escrow_request: EscrowRequest | None = None,
):
    """
    Open the escrow hold for a newly posted shift.

    Without a body, the hold is sized from the shift's schedule, rate and
    worker count.
    """
    logger.info(f"POST /shifts/{shift_id}/escrow | user={user.id}")
    shift = await load_shift(store, shift_id)
    require_employer(shift, user.id)

    if await ledger.get_payment_for_shift(shift_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Escrow already exists for shift {shift_id}",
        )

    body = escrow_request or EscrowRequest()
    if body.estimated_hours is None:
        return await ledger.open_hold_for_shift(shift)

    return await ledger.open_hold(
        shift_id=shift_id,
        employer_id=shift.employer_id,
        estimated_hours=body.estimated_hours,
        hourly_rate=body.hourly_rate if body.hourly_rate is not None else shift.hourly_rate or 0,
        fee_percentage=body.fee_percentage,
    )


@router.get("/shifts/{shift_id}/escrow", response_model=EscrowPayment)
@limiter.limit("60/minute")
async def get_escrow(
    request: Request,
    shift_id: str,
    user: Caller,
    store: Store,
    ledger: Ledger,
):
    """Get the shift's payment: the released one if settled, else the current hold."""
    shift = await load_shift(store, shift_id)
    require_employer(shift, user.id)

    payment = await ledger.get_payment_for_shift(shift_id)
    if payment is None:
        raise NotFoundError("escrow payment", shift_id)
    return payment


@router.get("/timesheets/{timesheet_id}/payment-summary", response_model=PaymentSummaryResponse)
@limiter.limit("60/minute")
async def payment_summary(
    request: Request,
    timesheet_id: str,
    user: Caller,
    store: Store,
    engine: Engine,
):
    """Preview the settlement for a timesheet without writing anything."""
    timesheet = await load_timesheet(store, timesheet_id)
    if timesheet.worker_id != user.id:
        shift = await load_timesheet_shift(store, timesheet)
        require_employer(shift, user.id)

    quote = await engine.preview(timesheet_id)
    hours, amounts = quote.hours, quote.amounts
    return PaymentSummaryResponse(
        timesheet_id=quote.timesheet_id,
        shift_id=quote.shift_id,
        clocked_minutes=hours.total_minutes,
        break_minutes=hours.break_minutes,
        actual_hours=hours.total_hours.quantize(Decimal("0.01")),
        billable_hours=hours.billable_hours.quantize(Decimal("0.01")),
        regular_hours=amounts.regular_hours.quantize(Decimal("0.01")),
        overtime_hours=amounts.overtime_hours.quantize(Decimal("0.01")),
        hourly_rate=quote.hourly_rate,
        overtime_multiplier=quote.overtime_multiplier,
        regular_amount=amounts.regular_amount,
        overtime_amount=amounts.overtime_amount,
        subtotal=amounts.subtotal,
        platform_fee_percentage=amounts.platform_fee_percentage,
        platform_fee=amounts.platform_fee,
        total_charged=amounts.total_charged,
        worker_payout=amounts.worker_payout,
        escrow_held=quote.escrow_held,
        escrow_adjustment=quote.escrow_adjustment,
    )


@router.post("/timesheets/{timesheet_id}/settle", response_model=SettleResponse)
@limiter.limit("10/minute")
async def settle_timesheet(
    request: Request,
    timesheet_id: str,
    user: Caller,
    store: Store,
    engine: Engine,
):
    """
    Confirm a timesheet as the shift's employer and settle it.

    Safe to call again: an already-settled shift returns the existing
    payment with ``already_settled=true``.
    """
    logger.info(f"POST /timesheets/{timesheet_id}/settle | user={user.id}")
    timesheet = await load_timesheet(store, timesheet_id)
    shift = await load_timesheet_shift(store, timesheet)
    require_employer(shift, user.id)

    settleable = timesheet.clock_out_time is not None and not timesheet.is_disputed
    if settleable and not timesheet.employer_confirmed:
        # Raises before the flag is written if the shift cannot be settled
        await engine.preview(timesheet_id)
        await store.update(TIMESHEETS_TABLE, {"id": timesheet_id}, {"employer_confirmed": True})

    result = await engine.settle(timesheet_id)
    if not result.shift_updated:
        logger.warning(
            f"Settlement {result.settlement_id} released payment but shift {shift.id} "
            "is not completed yet; left for reconciliation"
        )

    return SettleResponse(
        payment=result.payment,
        shift_updated=result.shift_updated,
        already_settled=result.already_settled,
        settlement_id=result.settlement_id,
        escrow_adjustment=result.escrow_adjustment,
        settled_at=result.payment.released_at,
    )
