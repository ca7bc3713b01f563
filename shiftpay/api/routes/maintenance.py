"""Maintenance routes for shiftpay.

Meant to be called periodically (e.g. from cron) with an admin token:
- finish settlements stuck between payment release and shift completion
- deliver notification events still waiting in the outbox
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from ...logging_config import get_logger
from ..auth import AdminUser
from ..database import Dispatcher, Engine
from ..rate_limit import limiter

logger = get_logger("shiftpay.api.maintenance")
router = APIRouter(prefix="/maintenance", tags=["maintenance"])


# =============================================================================
# Response Models
# =============================================================================


class ReconcileResponse(BaseModel):
    """Result of a reconciliation pass."""

    examined: int
    completed: int
    still_pending: int
    errors: list[str]
    checked_at: datetime


class DispatchResponse(BaseModel):
    """Result of an outbox dispatch pass."""

    sent: int
    failed: int
    dead: int
    skipped: int
    checked_at: datetime


# =============================================================================
# Routes
# =============================================================================


@router.post("/reconcile-settlements", response_model=ReconcileResponse)
@limiter.limit("10/minute")
async def reconcile_settlements(
    request: Request,
    admin: AdminUser,
    engine: Engine,
    limit: int = Query(50, ge=1, le=500),
):
    """Complete settlements whose shift update did not go through."""
    logger.info(f"POST /maintenance/reconcile-settlements | user={admin.id} | limit={limit}")
    report = await engine.reconcile_pending(limit=limit)
    if report.errors:
        logger.warning(f"Reconciliation left {len(report.errors)} settlements with errors")

    return ReconcileResponse(
        examined=report.examined,
        completed=report.completed,
        still_pending=report.still_pending,
        errors=report.errors,
        checked_at=datetime.now(timezone.utc),
    )


@router.post("/dispatch-notifications", response_model=DispatchResponse)
@limiter.limit("10/minute")
async def dispatch_notifications(
    request: Request,
    admin: AdminUser,
    dispatcher: Dispatcher,
    limit: int = Query(50, ge=1, le=500),
):
    """Deliver pending and previously failed outbox events."""
    logger.info(f"POST /maintenance/dispatch-notifications | user={admin.id} | limit={limit}")
    report = await dispatcher.dispatch_pending(limit=limit)

    return DispatchResponse(
        sent=report.sent,
        failed=report.failed,
        dead=report.dead,
        skipped=report.skipped,
        checked_at=datetime.now(timezone.utc),
    )
