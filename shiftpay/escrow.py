"""
Escrow ledger.

Opens a provisional ``held`` payment when an employer posts a shift. The
hold is sized from an estimate (planned hours x rate, workers included);
overtime is never estimated. Real amounts are computed at settlement.
"""

import logging
import uuid
from decimal import Decimal

from .config import DEFAULT_POLICY, PayrollPolicy
from .errors import MissingRateError, ValidationError
from .gateway import MockPaymentGateway, PaymentGateway
from .hours import estimate_shift_hours
from .logging_config import log_payment_event
from .models import EscrowPayment, PaymentStatus, Shift, amounts_to_row
from .pricing import MoneyValue, price_estimate, to_decimal
from .storage.base import PAYMENTS_TABLE, DataStore

logger = logging.getLogger(__name__)


class EscrowLedger:
    """Creates and looks up escrow holds."""

    def __init__(
        self,
        store: DataStore,
        gateway: PaymentGateway | None = None,
        policy: PayrollPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.gateway = gateway or MockPaymentGateway()
        self.policy = policy

    @staticmethod
    def _validate(
        shift_id: str,
        employer_id: str,
        estimated_hours: Decimal,
        hourly_rate: Decimal,
        fee_percentage: Decimal,
    ) -> None:
        if not shift_id or not employer_id:
            raise ValidationError("Shift ID and Employer ID are required")
        if estimated_hours <= 0 or hourly_rate <= 0:
            raise ValidationError("Estimated hours and hourly rate must be greater than zero")
        if fee_percentage < 0 or fee_percentage > 1:
            raise ValidationError("Platform fee percentage must be between 0 and 1")

    async def open_hold(
        self,
        shift_id: str,
        employer_id: str,
        estimated_hours: MoneyValue,
        hourly_rate: MoneyValue,
        fee_percentage: MoneyValue | None = None,
    ) -> EscrowPayment:
        """Create the escrow hold for a newly posted shift.

        Args:
            shift_id: The shift being posted.
            employer_id: The employer funding it.
            estimated_hours: Total estimated hours across all workers.
            hourly_rate: Rate per hour.
            fee_percentage: Platform fee as a fraction (default from policy, 0.15).

        Returns:
            The created ``held`` EscrowPayment.

        Raises:
            ValidationError: On bad input; nothing is written.
            DataStoreError: If the insert fails. Not retried.
        """
        hours = to_decimal(estimated_hours)
        rate = to_decimal(hourly_rate)
        fee = to_decimal(
            self.policy.platform_fee_percentage if fee_percentage is None else fee_percentage
        )
        self._validate(shift_id, employer_id, hours, rate, fee)

        amounts = price_estimate(hours, rate, fee)
        receipt = await self.gateway.authorize_hold(
            idempotency_key=uuid.uuid4().hex,
            shift_id=shift_id,
            amount=amounts.total_charged,
        )

        payment = EscrowPayment(
            shift_id=shift_id,
            employer_id=employer_id,
            status=PaymentStatus.held,
            gateway_hold_ref=receipt.reference,
        )
        row = {**payment.to_row(), **amounts_to_row(amounts)}
        # Worker is unknown until settlement
        row["worker_id"] = None
        row["worker_payout"] = None

        created = await self.store.insert(PAYMENTS_TABLE, row)
        log_payment_event("hold_opened", created["id"], True, f"total={amounts.total_charged}")
        return EscrowPayment.model_validate(created)

    async def open_hold_for_shift(self, shift: Shift) -> EscrowPayment:
        """Open a hold sized from the shift's own schedule and worker count."""
        if shift.hourly_rate is None:
            raise MissingRateError(f"Shift {shift.id} has no hourly rate")
        if shift.start_time is None or shift.end_time is None:
            raise ValidationError(f"Shift {shift.id} has no planned start/end time")

        estimated = estimate_shift_hours(shift.start_time, shift.end_time, shift.workers_needed)
        return await self.open_hold(
            shift_id=shift.id or "",
            employer_id=shift.employer_id,
            estimated_hours=estimated,
            hourly_rate=shift.hourly_rate,
        )

    async def get_hold(self, shift_id: str) -> EscrowPayment | None:
        """Most recent ``held`` payment for a shift."""
        rows = await self.store.fetch_many(
            PAYMENTS_TABLE,
            {"shift_id": shift_id, "status": PaymentStatus.held.value},
            order_by="created_at",
            descending=True,
            limit=1,
        )
        return EscrowPayment.model_validate(rows[0]) if rows else None

    async def get_released(self, shift_id: str) -> EscrowPayment | None:
        """The released payment for a shift, if settlement happened."""
        row = await self.store.fetch_one(
            PAYMENTS_TABLE, {"shift_id": shift_id, "status": PaymentStatus.released.value}
        )
        return EscrowPayment.model_validate(row) if row else None

    async def get_payment_for_shift(self, shift_id: str) -> EscrowPayment | None:
        """Released payment if there is one, otherwise the current hold."""
        return await self.get_released(shift_id) or await self.get_hold(shift_id)
