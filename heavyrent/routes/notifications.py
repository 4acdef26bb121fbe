from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import notifications
from ..db import get_db
from ..schemas import NotificationOut
from ..security import CurrentUser, get_current_user

router = APIRouter()


@router.get("/notifications")
async def list_notifications(
    unread: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await notifications.list_for(db, user.profile_id, unread_only=unread, limit=limit)
    return {"success": True, "notifications": [NotificationOut.model_validate(n) for n in rows]}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    row = await notifications.mark_read(db, user.profile_id, notification_id)
    return {"success": True, "notification": NotificationOut.model_validate(row)}
