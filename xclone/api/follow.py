from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.services.auth_service import get_current_user
from xclone.services.follow_service import FollowService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{user_id}")
async def toggle_follow(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Follow or unfollow a user"""
    try:
        result = await FollowService(db).toggle_follow(current_user.id, user_id)
        message = "User followed successfully" if result.following else "User unfollowed successfully"
        return envelope(200, result, message)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error toggling follow on user {user_id}: {e}")
        raise APIError(500, "Failed to toggle follow")


@router.get("/{user_id}/followers")
async def get_followers(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get followers of a user"""
    try:
        followers = await FollowService(db).get_followers(user_id, current_user.id, page, limit)
        return envelope(200, followers, "Followers fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching followers of user {user_id}: {e}")
        raise APIError(500, "Failed to fetch followers")


@router.get("/{user_id}/following")
async def get_following(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get users followed by a user"""
    try:
        following = await FollowService(db).get_following(user_id, current_user.id, page, limit)
        return envelope(200, following, "Following fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching following of user {user_id}: {e}")
        raise APIError(500, "Failed to fetch following")
