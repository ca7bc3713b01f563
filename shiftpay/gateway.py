"""Payment gateway strategies.

Fund movement is simulated: no card or bank rails are called. The
gateway is chosen once at startup from configuration, so escrow and
settlement run one code path whichever implementation is active.

- ``MockPaymentGateway``: moves nothing, returns ``mock_`` references.
- ``LedgerPaymentGateway``: records every simulated movement in the
  ``gateway_transactions`` table, keyed by an idempotency key so a replay
  returns the first receipt instead of moving money twice.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from .storage.base import GATEWAY_TRANSACTIONS_TABLE, ConstraintViolationError, DataStore

logger = logging.getLogger(__name__)

HOLD = "hold"
RELEASE = "release"


@dataclass(frozen=True)
class GatewayReceipt:
    """Reference for a (simulated) fund movement."""

    reference: str
    kind: str
    amount: Decimal
    simulated: bool = True


class PaymentGateway(Protocol):
    """Protocol for fund movement backends."""

    async def authorize_hold(
        self, idempotency_key: str, shift_id: str, amount: Decimal
    ) -> GatewayReceipt:
        """Reserve the employer's funds for a shift."""
        ...

    async def release_funds(
        self, idempotency_key: str, shift_id: str, amount: Decimal, payout: Decimal
    ) -> GatewayReceipt:
        """Capture *amount* from the employer and pay *payout* to the worker."""
        ...


class MockPaymentGateway:
    """Gateway that only logs."""

    async def authorize_hold(
        self, idempotency_key: str, shift_id: str, amount: Decimal
    ) -> GatewayReceipt:
        logger.info("[mock gateway] hold %s for shift %s", amount, shift_id)
        return GatewayReceipt(reference=f"mock_{HOLD}_{idempotency_key[:12]}", kind=HOLD, amount=amount)

    async def release_funds(
        self, idempotency_key: str, shift_id: str, amount: Decimal, payout: Decimal
    ) -> GatewayReceipt:
        logger.info(
            "[mock gateway] release %s (payout %s) for shift %s", amount, payout, shift_id
        )
        return GatewayReceipt(
            reference=f"mock_{RELEASE}_{idempotency_key[:12]}", kind=RELEASE, amount=amount
        )


class LedgerPaymentGateway:
    """Gateway that books simulated movements in the data store."""

    def __init__(self, store: DataStore):
        self._store = store

    async def _record(
        self,
        kind: str,
        idempotency_key: str,
        shift_id: str,
        amount: Decimal,
        payout: Decimal | None = None,
    ) -> GatewayReceipt:
        data = {
            "idempotency_key": f"{kind}:{idempotency_key}",
            "kind": kind,
            "shift_id": shift_id,
            "amount": str(amount),
            "payout": str(payout) if payout is not None else None,
            "reference": f"ldg_{uuid.uuid4().hex[:16]}",
        }
        try:
            row = await self._store.insert(GATEWAY_TRANSACTIONS_TABLE, data)
        except ConstraintViolationError:
            row = await self._store.fetch_one(
                GATEWAY_TRANSACTIONS_TABLE, {"idempotency_key": data["idempotency_key"]}
            )
            if row is None:
                raise
            logger.info("Replayed %s transaction %s for shift %s", kind, row["reference"], shift_id)

        return GatewayReceipt(
            reference=row["reference"], kind=kind, amount=Decimal(str(row["amount"]))
        )

    async def authorize_hold(
        self, idempotency_key: str, shift_id: str, amount: Decimal
    ) -> GatewayReceipt:
        return await self._record(HOLD, idempotency_key, shift_id, amount)

    async def release_funds(
        self, idempotency_key: str, shift_id: str, amount: Decimal, payout: Decimal
    ) -> GatewayReceipt:
        return await self._record(RELEASE, idempotency_key, shift_id, amount, payout)


def create_payment_gateway(kind: str, store: DataStore) -> PaymentGateway:
    """Build the gateway named by configuration (``mock`` or ``ledger``)."""
    if kind == "mock":
        return MockPaymentGateway()
    if kind == "ledger":
        return LedgerPaymentGateway(store)
    raise ValueError(f"Unknown payment gateway: {kind}")
