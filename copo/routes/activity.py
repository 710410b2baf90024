from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from copo.audit import audited
from copo.database import get_db
from copo.models.system import ActivityLog, Notification
from copo.models.user import User
from copo.permissions import ADMIN_ONLY, ADMIN_OR_HOD
from copo.schemas.system_schema import ActivityLogResponse, NotificationCreate, NotificationResponse
from copo.security import get_current_user
from copo.services import repository

router = APIRouter(prefix="/api/activity-logs", tags=["Activity Logs"])
notification_router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

DEFAULT_LOG_LIMIT = 20

@router.get("", response_model=List[ActivityLogResponse])
async def list_activity_logs(
    limit: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_ONLY)
):
    if limit is None:
        size = DEFAULT_LOG_LIMIT
    else:
        try:
            size = int(limit)
        except ValueError:
            raise HTTPException(status_code=400, detail="Limit must be an integer")
        if size < 1:
            raise HTTPException(status_code=400, detail="Limit must be a positive integer")

    return await repository.activity_logs.list(
        db,
        order_by=ActivityLog.created_at.desc(),
        limit=size,
    )

# --- Notifications ---

@notification_router.get("", response_model=List[NotificationResponse])
async def list_notifications(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    return await repository.notifications.list(
        db, Notification.user_id == current_user.id, order_by=Notification.created_at.desc()
    )

@notification_router.get("/unread", response_model=List[NotificationResponse])
async def list_unread_notifications(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    return await repository.notifications.list(
        db,
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
        order_by=Notification.created_at.desc(),
    )

@notification_router.get("/unread/count")
async def count_unread_notifications(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    count = await repository.notifications.count(
        db, Notification.user_id == current_user.id, Notification.is_read.is_(False)
    )
    return {"count": count}

@notification_router.post("/read/{notification_id}", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = await repository.notifications.get(db, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    if notification.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return await repository.notifications.update(db, notification, {"is_read": True})

@notification_router.post("/read-all")
async def mark_all_notifications_read(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    unread = await repository.notifications.list(
        db, Notification.user_id == current_user.id, Notification.is_read.is_(False)
    )
    for notification in unread:
        notification.is_read = True
    await db.commit()
    return {"success": True}

@notification_router.post("", response_model=NotificationResponse, status_code=201)
@audited("created", "notification")
async def create_notification(
    notification_in: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_OR_HOD)
):
    recipient = await repository.users.get(db, notification_in.user_id)
    if not recipient:
        raise HTTPException(status_code=404, detail="User not found")
    return await repository.notifications.create(db, notification_in.model_dump())
