from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.services.auth_service import get_current_user
from xclone.services.notification_service import NotificationService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def get_notifications(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Latest notifications of the current user"""
    try:
        notifications = await NotificationService(db).get_notifications(current_user.id)
        return envelope(200, notifications, "Notifications fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching notifications of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch notifications")


@router.get("/unread-count")
async def get_unread_notification_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        count = await NotificationService(db).get_unread_count(current_user.id)
        return envelope(200, {"unread_count": count}, "Unread count fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error counting notifications of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch unread count")


@router.patch("/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        updated = await NotificationService(db).mark_all_read(current_user.id)
        return envelope(200, {"updated": updated}, "All notifications marked as read")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error marking notifications of user {current_user.id} read: {e}")
        raise APIError(500, "Failed to mark notifications as read")


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        notification = await NotificationService(db).mark_read(notification_id, current_user.id)
        return envelope(200, notification, "Notification marked as read")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {e}")
        raise APIError(500, "Failed to mark notification as read")
