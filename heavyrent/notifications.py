import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError
from .models import Notification, NotificationType
from .rabbitmq import publisher

logger = logging.getLogger(__name__)


@dataclass
class Outgoing:
    recipient_id: str
    title: str
    message: str
    type: NotificationType
    data: dict = field(default_factory=dict)


async def notify(db: AsyncSession, *items: Outgoing) -> int:
    """Write notifications after the primary change has been committed.

    Fan-out is best effort and runs in its own session on the same engine, so
    a failed insert never touches the caller's booking/payment state.
    Returns the number of notifications stored.
    """
    if not items:
        return 0

    rows = [
        Notification(
            recipient_id=item.recipient_id,
            title=item.title,
            message=item.message,
            type=item.type.value,
            data=item.data,
        )
        for item in items
    ]

    try:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as session:
            session.add_all(rows)
            await session.commit()
    except Exception as e:
        logger.warning("notification write failed (%d dropped): %s", len(rows), e)
        return 0

    for row in rows:
        await publisher.publish_event(
            "notification.created",
            {"notification_id": row.id, "recipient_id": row.recipient_id, "type": row.type, "data": row.data},
        )
    return len(rows)


async def list_for(db: AsyncSession, recipient_id: str, unread_only: bool = False, limit: int = 50) -> list[Notification]:
    stmt = select(Notification).where(Notification.recipient_id == recipient_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    res = await db.execute(stmt.order_by(Notification.created_at.desc()).limit(limit))
    return list(res.scalars().all())


async def mark_read(db: AsyncSession, recipient_id: str, notification_id: str) -> Notification:
    res = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
        )
    )
    notification = res.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        notification.is_read = True
        await db.commit()
    return notification
