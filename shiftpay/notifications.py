"""
Notifications for payment events.

Delivery is best-effort: a failed notification is logged and counted,
never raised. Settlement does not call the sender directly; it appends
events to ``notification_outbox`` and ``OutboxDispatcher`` delivers them,
so a crash after release cannot lose or double-send a notification.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Protocol

from .models import NotificationCategory, OutboxEvent, OutboxStatus
from .storage.base import (
    NOTIFICATIONS_TABLE,
    OUTBOX_TABLE,
    ConstraintViolationError,
    DataStore,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class NotificationRequest:
    """One message for one recipient."""

    user_id: str
    category: NotificationCategory
    title: str
    message: str
    link: str


@dataclass
class BatchResult:
    """Counts from a batch send."""

    sent: int = 0
    failed: int = 0
    failed_user_ids: list[str] = field(default_factory=list)


class NotificationSender(Protocol):
    """Protocol for notification transports."""

    async def send(self, request: NotificationRequest) -> None:
        """Deliver *request*; raise on failure."""
        ...


class StoreNotificationSender:
    """Writes notifications into the app's ``notifications`` table."""

    def __init__(self, store: DataStore):
        self._store = store

    async def send(self, request: NotificationRequest) -> None:
        await self._store.insert(
            NOTIFICATIONS_TABLE,
            {
                "user_id": request.user_id,
                "type": request.category.value,
                "title": request.title,
                "message": request.message,
                "link": request.link,
                "is_read": False,
            },
        )


class NotificationBridge:
    """Fire-and-forget wrapper around a NotificationSender."""

    def __init__(self, sender: NotificationSender):
        self.sender = sender

    async def notify(
        self,
        user_id: str,
        category: NotificationCategory,
        title: str,
        message: str,
        link: str,
    ) -> bool:
        """Send one notification. Returns False instead of raising."""
        return await self.deliver(NotificationRequest(user_id, category, title, message, link))

    async def deliver(self, request: NotificationRequest) -> bool:
        try:
            await self.sender.send(request)
        except Exception as e:
            logger.warning(
                "Notification to %s (%s) failed: %s", request.user_id, request.category.value, e
            )
            return False
        return True

    async def notify_many(self, requests: Iterable[NotificationRequest]) -> BatchResult:
        """Send each request in turn; one failure never stops the batch."""
        result = BatchResult()
        for request in requests:
            if await self.deliver(request):
                result.sent += 1
            else:
                result.failed += 1
                result.failed_user_ids.append(request.user_id)
        if result.failed:
            logger.warning("Notification batch: %d sent, %d failed", result.sent, result.failed)
        return result


# =============================================================================
# Outbox
# =============================================================================


class NotificationOutbox:
    """Appends notification events keyed by a dedupe key."""

    def __init__(self, store: DataStore):
        self._store = store

    async def enqueue(self, request: NotificationRequest, dedupe_key: str) -> OutboxEvent:
        """Append an event. A repeated *dedupe_key* returns the existing row."""
        event = OutboxEvent(
            user_id=request.user_id,
            category=request.category,
            title=request.title,
            message=request.message,
            link=request.link,
            dedupe_key=dedupe_key,
        )
        try:
            row = await self._store.insert(OUTBOX_TABLE, event.to_row())
        except ConstraintViolationError:
            row = await self._store.fetch_one(OUTBOX_TABLE, {"dedupe_key": dedupe_key})
            if row is None:
                raise
            logger.debug("Outbox event %s already queued", dedupe_key)
        return OutboxEvent.model_validate(row)


@dataclass
class DispatchReport:
    """Counts from one dispatch pass."""

    sent: int = 0
    failed: int = 0
    dead: int = 0
    skipped: int = 0


class OutboxDispatcher:
    """Delivers pending and failed outbox events through a NotificationBridge."""

    def __init__(
        self,
        store: DataStore,
        bridge: NotificationBridge,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._store = store
        self.bridge = bridge
        self.max_attempts = max_attempts

    async def _due(self, limit: int, ids: list[str] | None) -> list[OutboxEvent]:
        if ids is not None:
            rows = []
            for event_id in ids:
                row = await self._store.fetch_one(OUTBOX_TABLE, {"id": event_id})
                if row is not None:
                    rows.append(row)
        else:
            rows = []
            for status in (OutboxStatus.pending, OutboxStatus.failed):
                rows.extend(
                    await self._store.fetch_many(
                        OUTBOX_TABLE,
                        {"status": status.value},
                        order_by="created_at",
                        limit=limit,
                    )
                )
            rows.sort(key=lambda r: r.get("created_at") or "")
        return [OutboxEvent.model_validate(r) for r in rows[:limit]]

    async def dispatch_pending(self, limit: int = 50, ids: list[str] | None = None) -> DispatchReport:
        """Deliver up to *limit* due events (or exactly *ids*).

        Each event is claimed with a compare-and-set on its current status
        and attempt count, so two dispatchers never send the same event.
        """
        report = DispatchReport()
        for event in await self._due(limit, ids):
            if event.status not in (OutboxStatus.pending, OutboxStatus.failed):
                report.skipped += 1
                continue

            attempts = event.attempts + 1
            claimed = await self._store.update(
                OUTBOX_TABLE,
                {"id": event.id, "status": event.status.value, "attempts": event.attempts},
                {"attempts": attempts},
            )
            if claimed is None:
                report.skipped += 1
                continue

            request = NotificationRequest(
                event.user_id, event.category, event.title, event.message, event.link
            )
            if await self.bridge.deliver(request):
                await self._store.update(
                    OUTBOX_TABLE,
                    {"id": event.id},
                    {
                        "status": OutboxStatus.sent.value,
                        "last_error": None,
                        "dispatched_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
                report.sent += 1
                continue

            status = OutboxStatus.dead if attempts >= self.max_attempts else OutboxStatus.failed
            await self._store.update(
                OUTBOX_TABLE,
                {"id": event.id},
                {"status": status.value, "last_error": f"delivery failed (attempt {attempts})"},
            )
            if status is OutboxStatus.dead:
                logger.error("Outbox event %s dead after %d attempts", event.dedupe_key, attempts)
                report.dead += 1
            else:
                report.failed += 1
        return report
