"""Tests for invoices and worker earnings."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from shiftpay.invoices import InvoiceService, generate_invoice_number
from shiftpay.models import EscrowPayment, PaymentStatus, Shift
from shiftpay.storage import (
    INVOICES_TABLE,
    WORKER_EARNINGS_TABLE,
    InMemoryDataStore,
    StoreTransportError,
)


class BrokenStore(InMemoryDataStore):
    async def insert(self, table, record):
        raise StoreTransportError("timeout")


@pytest.fixture
def payment():
    return EscrowPayment(
        id="pay-1",
        shift_id="shift-1",
        employer_id="employer-1",
        timesheet_id="abcdef12-3456-7890-abcd-ef1234567890",
        worker_id="worker-1",
        regular_hours=Decimal("8"),
        regular_amount=Decimal("120.00"),
        overtime_hours=Decimal("1.5"),
        overtime_amount=Decimal("33.75"),
        subtotal=Decimal("153.75"),
        platform_fee=Decimal("23.06"),
        total_charged=Decimal("176.81"),
        worker_payout=Decimal("153.75"),
        status=PaymentStatus.released,
        released_at=datetime(2026, 3, 2, 18, 45, tzinfo=timezone.utc),
    )


@pytest.fixture
def shift():
    return Shift(id="shift-1", employer_id="employer-1", job_title="Barista", location="Bugis")


def test_invoice_number_format():
    issued = datetime(2026, 3, 2, tzinfo=timezone.utc)
    assert generate_invoice_number("abcdef123456", issued) == "INV-20260302-ABCDEF12"


class TestIssueInvoice:
    @pytest.mark.asyncio
    async def test_issues_invoice(self, store, payment, shift):
        invoice = await InvoiceService(store).issue_invoice(payment, shift)

        assert invoice["invoice_number"].endswith("-ABCDEF12")
        assert invoice["status"] == "issued"
        assert invoice["payment_id"] == "pay-1"
        assert invoice["total_amount"] == "176.81"
        assert invoice["job_title"] == "Barista"

    @pytest.mark.asyncio
    async def test_duplicate_number_gets_suffix(self, store, payment, shift):
        store.seed(
            INVOICES_TABLE,
            {"invoice_number": generate_invoice_number(payment.timesheet_id)},
        )

        invoice = await InvoiceService(store).issue_invoice(payment, shift)

        suffix = invoice["invoice_number"].rsplit("-", 1)[1]
        assert len(suffix) == 6 and suffix.isdigit()
        assert len(store.all(INVOICES_TABLE)) == 2

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, payment, shift):
        assert await InvoiceService(BrokenStore()).issue_invoice(payment, shift) is None


class TestWorkerEarnings:
    @pytest.mark.asyncio
    async def test_records_earning(self, store, payment):
        assert await InvoiceService(store).record_worker_earning(payment) is True

        rows = store.all(WORKER_EARNINGS_TABLE)
        assert len(rows) == 1
        assert rows[0]["gross_amount"] == "153.75"
        assert rows[0]["net_amount"] == "153.75"
        assert rows[0]["platform_fee_amount"] == "23.06"
        assert rows[0]["period_month"] == "2026-03"

    @pytest.mark.asyncio
    async def test_existing_row_counts_as_success(self, store, payment):
        service = InvoiceService(store)
        await service.record_worker_earning(payment)
        assert await service.record_worker_earning(payment) is True
        assert len(store.all(WORKER_EARNINGS_TABLE)) == 1

    @pytest.mark.asyncio
    async def test_no_worker(self, store, payment):
        unassigned = payment.model_copy(update={"worker_id": None})
        assert await InvoiceService(store).record_worker_earning(unassigned) is False
        assert store.all(WORKER_EARNINGS_TABLE) == []

    @pytest.mark.asyncio
    async def test_store_failure(self, payment):
        assert await InvoiceService(BrokenStore()).record_worker_earning(payment) is False
