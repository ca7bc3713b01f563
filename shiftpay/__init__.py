"""
shiftpay - Shift escrow and timesheet settlement.

Holds employer funds when a shift is posted and settles them against the
worker's real clock data once the timesheet is confirmed.
"""

from .config import DEFAULT_POLICY, PayrollPolicy, Settings, get_settings
from .errors import (
    ForbiddenError,
    IncompleteStateError,
    MissingRateError,
    NotFoundError,
    ShiftPayError,
    UnauthenticatedError,
    ValidationError,
)
from .escrow import EscrowLedger
from .gateway import LedgerPaymentGateway, MockPaymentGateway, create_payment_gateway
from .hours import HoursBreakdown, calculate_hours, estimate_shift_hours
from .notifications import NotificationBridge, NotificationOutbox, OutboxDispatcher
from .pricing import PaymentAmounts, price_actual, price_estimate
from .settlement import SettlementEngine

try:
    from importlib.metadata import version

    __version__ = version("shiftpay")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    # Services
    "EscrowLedger",
    "SettlementEngine",
    "NotificationBridge",
    "NotificationOutbox",
    "OutboxDispatcher",
    "MockPaymentGateway",
    "LedgerPaymentGateway",
    "create_payment_gateway",
    # Calculations
    "HoursBreakdown",
    "PaymentAmounts",
    "calculate_hours",
    "estimate_shift_hours",
    "price_actual",
    "price_estimate",
    # Config
    "DEFAULT_POLICY",
    "PayrollPolicy",
    "Settings",
    "get_settings",
    # Errors
    "ShiftPayError",
    "ValidationError",
    "MissingRateError",
    "NotFoundError",
    "IncompleteStateError",
    "UnauthenticatedError",
    "ForbiddenError",
]
