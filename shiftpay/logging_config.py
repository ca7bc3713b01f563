"""Logging helpers for shiftpay.

Core modules log through ``logging.getLogger(__name__)``; the HTTP layer
asks for named loggers here so all API output shares one namespace.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``shiftpay`` logger.

    Safe to call more than once; only the level changes on later calls.
    """
    global _configured
    root = logging.getLogger("shiftpay")
    root.setLevel(level.upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the shiftpay namespace."""
    if not name.startswith("shiftpay"):
        name = f"shiftpay.{name}"
    return logging.getLogger(name)


def log_payment_event(
    event: str,
    ref: str,
    success: bool,
    detail: str | None = None,
) -> None:
    """Emit one line for a hold/release/reconcile outcome."""
    logger = get_logger("shiftpay.payments")
    outcome = "ok" if success else "failed"
    message = f"payment_event={event} ref={ref} outcome={outcome}"
    if detail:
        message += f" detail={detail}"
    if success:
        logger.info(message)
    else:
        logger.warning(message)
