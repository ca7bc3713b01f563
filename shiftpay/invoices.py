"""
Invoice and worker-earnings records written after a payment is released.

Both writes are best-effort: the money has already moved when they run,
so a failure here is logged and never undoes settlement.
"""

import logging
import random
from datetime import datetime, timezone

from .models import EscrowPayment, Shift
from .storage.base import (
    INVOICES_TABLE,
    WORKER_EARNINGS_TABLE,
    ConstraintViolationError,
    DataStore,
    DataStoreError,
    Row,
)

logger = logging.getLogger(__name__)


def generate_invoice_number(reference_id: str, issued_on: datetime | None = None) -> str:
    """Build ``INV-YYYYMMDD-XXXXXXXX`` from the first 8 chars of *reference_id*."""
    issued_on = issued_on or datetime.now(timezone.utc)
    return f"INV-{issued_on:%Y%m%d}-{reference_id[:8].upper()}"


class InvoiceService:
    """Issues invoices and books worker earnings for released payments."""

    def __init__(self, store: DataStore):
        self._store = store

    async def issue_invoice(self, payment: EscrowPayment, shift: Shift) -> Row | None:
        """Create an ``issued`` invoice for *payment*.

        A clashing invoice number is retried once with a random suffix.
        Returns the invoice row, or None if it could not be written.
        """
        number = generate_invoice_number(payment.timesheet_id or payment.shift_id)
        data = {
            "invoice_number": number,
            "shift_id": payment.shift_id,
            "timesheet_id": payment.timesheet_id,
            "payment_id": payment.id,
            "employer_id": payment.employer_id,
            "worker_id": payment.worker_id,
            "regular_hours": str(payment.regular_hours),
            "regular_amount": str(payment.regular_amount),
            "overtime_hours": str(payment.overtime_hours),
            "overtime_amount": str(payment.overtime_amount),
            "subtotal": str(payment.subtotal),
            "platform_fee": str(payment.platform_fee),
            "total_amount": str(payment.total_charged),
            "status": "issued",
            "job_title": shift.job_title,
            "shift_date": shift.shift_date.isoformat() if shift.shift_date else None,
            "location": shift.location,
        }

        try:
            try:
                return await self._store.insert(INVOICES_TABLE, data)
            except ConstraintViolationError:
                data["invoice_number"] = f"{number}-{random.randint(100000, 999999)}"
                logger.info("Invoice number %s taken, retrying as %s", number, data["invoice_number"])
                return await self._store.insert(INVOICES_TABLE, data)
        except DataStoreError as e:
            logger.warning("Could not issue invoice for payment %s: %s", payment.id, e)
            return None

    async def record_worker_earning(self, payment: EscrowPayment) -> bool:
        """Book the worker's earnings for *payment*.

        An existing row for the payment counts as success.
        """
        if not payment.worker_id:
            logger.warning("Payment %s has no worker; earnings not recorded", payment.id)
            return False

        released = payment.released_at or datetime.now(timezone.utc)
        data = {
            "worker_id": payment.worker_id,
            "payment_id": payment.id,
            "shift_id": payment.shift_id,
            "timesheet_id": payment.timesheet_id,
            "gross_amount": str(payment.subtotal),
            "platform_fee_amount": str(payment.platform_fee),
            "net_amount": str(payment.subtotal),
            "period_month": f"{released:%Y-%m}",
        }
        try:
            await self._store.insert(WORKER_EARNINGS_TABLE, data)
        except ConstraintViolationError:
            logger.debug("Earnings for payment %s already recorded", payment.id)
        except DataStoreError as e:
            logger.warning("Could not record earnings for payment %s: %s", payment.id, e)
            return False
        return True
