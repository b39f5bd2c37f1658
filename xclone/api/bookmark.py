from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.services.auth_service import get_current_user
from xclone.services.bookmark_service import BookmarkService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def get_user_bookmarks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The current user's bookmarks"""
    try:
        bookmarks = await BookmarkService(db).get_user_bookmarks(current_user.id, page, limit)
        return envelope(200, bookmarks, "Bookmarks fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching bookmarks of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch bookmarks")


@router.post("/{tweet_id}")
async def toggle_bookmark(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Bookmark a tweet or remove the bookmark"""
    try:
        result = await BookmarkService(db).toggle_bookmark(tweet_id, current_user.id)
        message = "Tweet bookmarked successfully" if result.bookmarked else "Bookmark removed successfully"
        return envelope(200, result, message)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error toggling bookmark on tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to toggle bookmark")
