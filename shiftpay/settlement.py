"""
Timesheet settlement.

Turns a confirmed timesheet into a released payment and a completed shift.
Settlement is a small saga recorded in the ``settlements`` table (one row
per shift):

    pending -> released_pending_shift_update -> completed

The payment release and the shift status update are separate writes. If
the second one fails the settlement stays ``released_pending_shift_update``
and ``reconcile_pending`` finishes it later. Running ``settle`` again is
always safe: a released payment for the shift short-circuits to a no-op.
"""

import logging
from datetime import datetime, timezone

from .config import DEFAULT_POLICY, PayrollPolicy
from .errors import (
    IncompleteStateError,
    MissingRateError,
    NotFoundError,
    ShiftPayError,
    ValidationError,
)
from .escrow import EscrowLedger
from .gateway import GatewayReceipt, MockPaymentGateway, PaymentGateway
from .hours import calculate_hours
from .invoices import InvoiceService
from .logging_config import log_payment_event
from .models import (
    EscrowPayment,
    NotificationCategory,
    PaymentStatus,
    ReconciliationReport,
    Settlement,
    SettlementQuote,
    SettlementResult,
    SettlementState,
    Shift,
    ShiftStatus,
    Timesheet,
    amounts_to_row,
    can_transition_shift,
)
from .notifications import (
    NotificationBridge,
    NotificationOutbox,
    NotificationRequest,
    OutboxDispatcher,
    StoreNotificationSender,
)
from .pricing import price_actual
from .storage.base import (
    PAYMENTS_TABLE,
    SETTLEMENTS_TABLE,
    SHIFTS_TABLE,
    TIMESHEETS_TABLE,
    ConstraintViolationError,
    DataStore,
    DataStoreError,
)

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SettlementEngine:
    """Settles timesheets against escrow holds.

    Usage:
        engine = SettlementEngine(store, gateway=create_payment_gateway("mock", store))
        result = await engine.settle(timesheet_id)
    """

    def __init__(
        self,
        store: DataStore,
        gateway: PaymentGateway | None = None,
        outbox: NotificationOutbox | None = None,
        dispatcher: OutboxDispatcher | None = None,
        invoices: InvoiceService | None = None,
        policy: PayrollPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.gateway = gateway or MockPaymentGateway()
        self.policy = policy
        self.ledger = EscrowLedger(store, self.gateway, policy)
        self.outbox = outbox or NotificationOutbox(store)
        self.dispatcher = dispatcher or OutboxDispatcher(
            store,
            NotificationBridge(StoreNotificationSender(store)),
            max_attempts=policy.notification_max_attempts,
        )
        self.invoices = invoices or InvoiceService(store)

    # =========================================================================
    # Loading and pricing (no writes)
    # =========================================================================

    async def _load(self, timesheet_id: str) -> tuple[Timesheet, Shift]:
        """Fetch the timesheet and the shift it belongs to."""
        row = await self.store.fetch_one(TIMESHEETS_TABLE, {"id": timesheet_id})
        if row is None:
            raise NotFoundError("timesheet", timesheet_id)
        timesheet = Timesheet.model_validate(row)
        if not timesheet.shift_id:
            raise ValidationError(f"Timesheet {timesheet_id} is not linked to a shift")

        row = await self.store.fetch_one(SHIFTS_TABLE, {"id": timesheet.shift_id})
        if row is None:
            raise NotFoundError("shift", timesheet.shift_id)
        return timesheet, Shift.model_validate(row)

    @staticmethod
    def _check_settleable(timesheet: Timesheet, shift: Shift) -> None:
        """Reject a first settlement the timesheet or shift is not ready for."""
        if timesheet.clock_in_time is None or timesheet.clock_out_time is None:
            raise IncompleteStateError(f"Timesheet {timesheet.id} has no clock-in/clock-out yet")
        if timesheet.is_disputed:
            raise IncompleteStateError(f"Timesheet {timesheet.id} is disputed")
        if shift.hourly_rate is None:
            raise MissingRateError(f"Shift {shift.id} has no hourly rate")
        if shift.status != ShiftStatus.completed and not can_transition_shift(
            shift.status, ShiftStatus.completed
        ):
            raise ValidationError(
                f"Shift {shift.id} is {shift.status.value} and cannot be completed"
            )

    def _quote(
        self, timesheet: Timesheet, shift: Shift, hold: EscrowPayment | None
    ) -> SettlementQuote:
        hours = calculate_hours(
            timesheet.clock_in_time,
            timesheet.clock_out_time,
            timesheet.break_duration_minutes,
            minimum_hours=self.policy.minimum_hours,
            overtime_threshold_hours=self.policy.overtime_threshold_hours,
        )
        fee_percentage = (
            self.policy.platform_fee_percentage if hold is None else hold.platform_fee_percentage
        )
        multiplier = shift.effective_overtime_multiplier
        amounts = price_actual(hours, shift.hourly_rate, multiplier, fee_percentage)
        return SettlementQuote(
            timesheet_id=timesheet.id or "",
            shift_id=shift.id or "",
            hours=hours,
            hourly_rate=shift.hourly_rate,
            overtime_multiplier=multiplier,
            amounts=amounts,
            escrow_held=hold.total_charged if hold is not None else None,
        )

    async def preview(self, timesheet_id: str) -> SettlementQuote:
        """Compute what settling *timesheet_id* would charge. Writes nothing."""
        timesheet, shift = await self._load(timesheet_id)
        self._check_settleable(timesheet, shift)
        hold = await self.ledger.get_hold(shift.id)
        return self._quote(timesheet, shift, hold)

    # =========================================================================
    # Settlement
    # =========================================================================

    async def settle(self, timesheet_id: str) -> SettlementResult:
        """Settle a confirmed timesheet.

        Args:
            timesheet_id: The timesheet to settle.

        Returns:
            SettlementResult. ``already_settled`` is True when the shift had
            a released payment before this call; ``shift_updated`` is False
            when the shift status write failed after the money moved.
            A released payment is returned as-is even if the timesheet was
            disputed afterwards. A shift already marked completed without a
            released payment is still paid.

        Raises:
            NotFoundError: Timesheet or shift missing.
            IncompleteStateError: No clock-out, disputed, or another
                timesheet's settlement is in progress for the shift.
            ValidationError: No shift link, no rate, or the shift cannot
                be completed.
        """
        timesheet, shift = await self._load(timesheet_id)

        released = await self.ledger.get_released(shift.id)
        if released is not None:
            return await self._resume_released(released, shift)

        self._check_settleable(timesheet, shift)

        settlement = await self._begin(timesheet, shift)
        if settlement.timesheet_id != timesheet.id:
            raise IncompleteStateError(
                f"Shift {shift.id} is being settled from timesheet {settlement.timesheet_id}"
            )
        if settlement.state != SettlementState.pending:
            released = await self.ledger.get_released(shift.id)
            if released is not None:
                return await self._resume_released(released, shift)

        hold = await self.ledger.get_hold(shift.id)
        quote = self._quote(timesheet, shift, hold)
        amounts = quote.amounts

        receipt = await self.gateway.release_funds(
            idempotency_key=settlement.id,
            shift_id=shift.id,
            amount=amounts.total_charged,
            payout=amounts.worker_payout,
        )
        payment, won = await self._release(hold, timesheet, shift, quote, receipt)
        if not won:
            logger.info("Shift %s was settled concurrently; returning existing payment", shift.id)
            return await self._resume_released(payment, shift)

        log_payment_event("released", payment.id, True, f"total={payment.total_charged}")
        state = await self._advance(settlement, payment)

        await self.invoices.issue_invoice(payment, shift)
        await self.invoices.record_worker_earning(payment)

        shift_updated = await self._complete_shift(shift)
        if not shift_updated:
            await self._note_error(settlement.id, "shift status update failed")
            return SettlementResult(
                payment=payment,
                shift_updated=False,
                settlement_id=settlement.id,
                escrow_adjustment=quote.escrow_adjustment,
            )

        await self._finish(settlement.id, state, payment, shift)
        return SettlementResult(
            payment=payment,
            shift_updated=True,
            settlement_id=settlement.id,
            escrow_adjustment=quote.escrow_adjustment,
        )

    async def _begin(self, timesheet: Timesheet, shift: Shift) -> Settlement:
        """Insert the settlement intent, or return the one already recorded."""
        row = await self.store.fetch_one(SETTLEMENTS_TABLE, {"shift_id": shift.id})
        if row is None:
            intent = Settlement(shift_id=shift.id, timesheet_id=timesheet.id)
            try:
                row = await self.store.insert(SETTLEMENTS_TABLE, intent.to_row())
            except ConstraintViolationError:
                # Lost the race to another settle call
                row = await self.store.fetch_one(SETTLEMENTS_TABLE, {"shift_id": shift.id})
                if row is None:
                    raise
        return Settlement.model_validate(row)

    async def _release(
        self,
        hold: EscrowPayment | None,
        timesheet: Timesheet,
        shift: Shift,
        quote: SettlementQuote,
        receipt: GatewayReceipt,
    ) -> tuple[EscrowPayment, bool]:
        """Close the hold (or create the payment). Returns (payment, won)."""
        now = _utc_now()
        patch = {
            **amounts_to_row(quote.amounts),
            "worker_payout": str(quote.amounts.worker_payout),
            "status": PaymentStatus.released.value,
            "timesheet_id": timesheet.id,
            "worker_id": timesheet.worker_id,
            "gateway_transfer_ref": receipt.reference,
            "payment_captured_at": now,
            "released_at": now,
        }

        try:
            if hold is not None:
                row = await self.store.update(
                    PAYMENTS_TABLE,
                    {"id": hold.id, "status": PaymentStatus.held.value},
                    patch,
                )
            else:
                base = EscrowPayment(shift_id=shift.id, employer_id=shift.employer_id).to_row()
                row = await self.store.insert(PAYMENTS_TABLE, {**base, **patch})
        except ConstraintViolationError:
            row = None

        if row is not None:
            return EscrowPayment.model_validate(row), True

        existing = await self.ledger.get_released(shift.id)
        if existing is None:
            raise IncompleteStateError(f"Escrow hold for shift {shift.id} is no longer held")
        return existing, False

    async def _advance(self, settlement: Settlement, payment: EscrowPayment) -> SettlementState:
        """Record that money moved. Returns the state the settlement is now in."""
        try:
            row = await self.store.update(
                SETTLEMENTS_TABLE,
                {"id": settlement.id, "state": SettlementState.pending.value},
                {
                    "state": SettlementState.released_pending_shift_update.value,
                    "payment_id": payment.id,
                },
            )
        except DataStoreError as e:
            logger.warning("Could not advance settlement %s: %s", settlement.id, e)
            return settlement.state
        if row is None:
            return settlement.state
        return SettlementState.released_pending_shift_update

    async def _complete_shift(self, shift: Shift) -> bool:
        """Flip the shift to completed. Returns False on failure, never raises."""
        if shift.status == ShiftStatus.completed:
            return True
        try:
            row = await self.store.update(
                SHIFTS_TABLE,
                {"id": shift.id, "status": shift.status.value},
                {"status": ShiftStatus.completed.value},
            )
            if row is None:
                current = await self.store.fetch_one(SHIFTS_TABLE, {"id": shift.id})
                if current and current.get("status") == ShiftStatus.completed.value:
                    return True
                logger.warning(
                    "Shift %s changed status concurrently (now %s); not completed",
                    shift.id,
                    current.get("status") if current else None,
                )
                return False
        except DataStoreError as e:
            logger.warning(
                "Payment released but shift %s status update failed: %s", shift.id, e
            )
            return False
        return True

    async def _note_error(self, settlement_id: str, message: str) -> None:
        try:
            await self.store.update(SETTLEMENTS_TABLE, {"id": settlement_id}, {"last_error": message})
        except DataStoreError as e:
            logger.warning("Could not record error on settlement %s: %s", settlement_id, e)

    async def _resume_released(self, payment: EscrowPayment, shift: Shift) -> SettlementResult:
        """Idempotent path: the shift already has a released payment."""
        shift_updated = await self._complete_shift(shift)

        row = await self.store.fetch_one(SETTLEMENTS_TABLE, {"shift_id": shift.id})
        settlement = Settlement.model_validate(row) if row else None
        if shift_updated and settlement and settlement.state != SettlementState.completed:
            await self._finish(settlement.id, settlement.state, payment, shift)

        return SettlementResult(
            payment=payment,
            shift_updated=shift_updated,
            already_settled=True,
            settlement_id=settlement.id if settlement else None,
        )

    async def _finish(
        self,
        settlement_id: str,
        state: SettlementState,
        payment: EscrowPayment,
        shift: Shift,
    ) -> None:
        """Mark the settlement completed and queue the payment notifications."""
        try:
            row = await self.store.update(
                SETTLEMENTS_TABLE,
                {"id": settlement_id, "state": state.value},
                {
                    "state": SettlementState.completed.value,
                    "payment_id": payment.id,
                    "last_error": None,
                    "completed_at": _utc_now(),
                },
            )
        except DataStoreError as e:
            logger.warning("Could not complete settlement %s: %s", settlement_id, e)
            return
        if row is None:
            return

        log_payment_event("settlement_completed", settlement_id, True)
        await self._notify(payment, shift)

    # =========================================================================
    # Notifications
    # =========================================================================

    def _payment_notifications(
        self, payment: EscrowPayment, shift: Shift
    ) -> list[tuple[NotificationRequest, str]]:
        title = shift.job_title or "shift"
        currency = self.policy.currency_label
        requests = [
            (
                NotificationRequest(
                    user_id=payment.employer_id,
                    category=NotificationCategory.payment,
                    title="Payment Released Successfully",
                    message=f"Payment of {currency} ${payment.total_charged} has been released for shift: {title}",
                    link=f"/employer/payment/{payment.id}",
                ),
                f"{payment.id}:employer",
            )
        ]
        if payment.worker_id:
            requests.append(
                (
                    NotificationRequest(
                        user_id=payment.worker_id,
                        category=NotificationCategory.payment,
                        title="You've Been Paid!",
                        message=f"You received {currency} ${payment.worker_payout} for shift: {title}",
                        link=f"/worker/earning/{payment.id}",
                    ),
                    f"{payment.id}:worker",
                )
            )
        return requests

    async def _notify(self, payment: EscrowPayment, shift: Shift) -> None:
        try:
            events = [
                await self.outbox.enqueue(request, dedupe_key)
                for request, dedupe_key in self._payment_notifications(payment, shift)
            ]
            if self.policy.dispatch_notifications_inline:
                await self.dispatcher.dispatch_pending(ids=[e.id for e in events])
        except DataStoreError as e:
            logger.warning("Payment %s notifications not queued: %s", payment.id, e)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def reconcile_pending(self, limit: int = 50) -> ReconciliationReport:
        """Finish settlements left in ``pending`` or ``released_pending_shift_update``."""
        report = ReconciliationReport()
        rows = []
        for state in (SettlementState.released_pending_shift_update, SettlementState.pending):
            rows.extend(
                await self.store.fetch_many(
                    SETTLEMENTS_TABLE, {"state": state.value}, order_by="created_at", limit=limit
                )
            )

        for row in rows[:limit]:
            report.examined += 1
            try:
                result = await self.settle(row["timesheet_id"])
            except (ShiftPayError, DataStoreError) as e:
                report.still_pending += 1
                report.errors.append(f"{row['id']}: {e}")
                log_payment_event("reconcile", row["id"], False, str(e))
                continue

            if result.shift_updated:
                report.completed += 1
                log_payment_event("reconcile", row["id"], True)
            else:
                report.still_pending += 1

        if report.examined:
            logger.info(
                "Reconciled %d settlements: %d completed, %d still pending",
                report.examined,
                report.completed,
                report.still_pending,
            )
        return report
