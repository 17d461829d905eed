"""
Notification Service - plan notifications and the unread badge aggregate

The badge total is derived from three sources and owns no state besides the
read flags on Notification rows:
- pending incoming connection requests
- unread plan notifications
- per-connection unread message counters
"""
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crewmate.core.clock import utcnow
from crewmate.core.db import store_operation
from crewmate.core.events import (
    EventBus,
    get_event_bus,
    notifications_topic,
    connection_requests_topic,
    connections_topic,
)
from crewmate.core.exceptions import NotFoundError
from crewmate.models.connection import Connection, ConnectionRequest, RequestStatus
from crewmate.models.notification import Notification, NotificationType
from crewmate.schemas.notification import UnreadBreakdown

logger = logging.getLogger(__name__)


class NotificationService:
    """Writes plan notifications and computes unread counts"""

    def __init__(self, db: AsyncSession, bus: Optional[EventBus] = None):
        self.db = db
        self.bus = bus or get_event_bus()

    def add_notification(
        self,
        user_id: int,
        type: NotificationType,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Stage a notification in the caller's transaction.
        The caller commits and then publishes notifications_topic(user_id).
        """
        notification = Notification(user_id=user_id, type=type, payload=payload or {}, read=False)
        self.db.add(notification)
        return notification

    @store_operation("notify")
    async def notify(
        self,
        user_id: int,
        type: NotificationType,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Write a single notification and push it to live subscribers"""
        notification = self.add_notification(user_id, type, payload)
        await self.db.commit()
        self.bus.publish(notifications_topic(user_id), "notification_created", notification_id=notification.id)
        return notification

    async def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        """User's notifications, newest first"""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def unread_breakdown(self, user_id: int) -> UnreadBreakdown:
        """Each unread source counted separately"""
        pending = await self.db.execute(
            select(func.count(ConnectionRequest.id)).where(
                ConnectionRequest.to_user_id == user_id,
                ConnectionRequest.status == RequestStatus.PENDING,
            )
        )
        plan_unread = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        # The reader's counter lives in the low or high column depending on pair order
        user_unread = case(
            (Connection.user_low_id == user_id, Connection.unread_low),
            else_=Connection.unread_high,
        )
        messages = await self.db.execute(
            select(func.coalesce(func.sum(user_unread), 0)).where(
                (Connection.user_low_id == user_id) | (Connection.user_high_id == user_id)
            )
        )
        return UnreadBreakdown(
            pending_requests=pending.scalar() or 0,
            plan_notifications=plan_unread.scalar() or 0,
            messages=messages.scalar() or 0,
        )

    async def aggregate_unread_count(self, user_id: int) -> int:
        """Badge total: pending requests + unread plan notifications + unread messages"""
        breakdown = await self.unread_breakdown(user_id)
        return breakdown.total

    @store_operation("mark_read")
    async def mark_read(self, user_id: int, notification_ids: Iterable[int]) -> int:
        """
        Mark the caller's notifications read.
        Already-read, unknown and foreign ids are ignored.

        Returns:
            Number of notifications that changed from unread to read
        """
        ids = sorted(set(notification_ids))
        if not ids:
            return 0
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.id.in_(ids),
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
            .values(read=True, read_at=utcnow())
        )
        await self.db.commit()
        changed = result.rowcount or 0
        if changed:
            self.bus.publish(notifications_topic(user_id), "notifications_read", count=changed)
        return changed

    @store_operation("mark_all_read")
    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=utcnow())
        )
        await self.db.commit()
        changed = result.rowcount or 0
        if changed:
            self.bus.publish(notifications_topic(user_id), "notifications_read", count=changed)
        return changed

    @store_operation("delete_notification")
    async def delete_notification(self, user_id: int, notification_id: int) -> None:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        await self.db.delete(notification)
        await self.db.commit()
        self.bus.publish(notifications_topic(user_id), "notification_deleted", notification_id=notification_id)


async def watch_unread_count(
    session_factory: async_sessionmaker,
    user_id: int,
    bus: Optional[EventBus] = None,
) -> AsyncIterator[UnreadBreakdown]:
    """
    Live badge feed for a user.

    Yields the current breakdown immediately, then a fresh one after every
    change to the user's notifications, incoming requests or connections.
    Closing the generator (aclose) drops the subscription.
    """
    bus = bus or get_event_bus()
    subscription = bus.subscribe(
        notifications_topic(user_id),
        connection_requests_topic(user_id),
        connections_topic(user_id),
    )

    async def snapshot() -> UnreadBreakdown:
        async with session_factory() as session:
            return await NotificationService(session, bus).unread_breakdown(user_id)

    try:
        yield await snapshot()
        async for _event in subscription:
            # Coalesce bursts into a single snapshot
            while subscription.pending():
                await subscription.next()
            yield await snapshot()
    finally:
        subscription.unsubscribe()
