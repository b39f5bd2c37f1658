from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.services.auth_service import get_current_user
from xclone.services.like_service import LikeService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tweet/{tweet_id}")
async def toggle_like(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Like or unlike a tweet"""
    try:
        result = await LikeService(db).toggle_like(tweet_id, current_user.id)
        message = "Tweet liked successfully" if result.liked else "Tweet unliked successfully"
        return envelope(200, result, message)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error toggling like on tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to toggle like")


@router.get("/tweet/{tweet_id}")
async def get_tweet_likes(
    tweet_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Users who liked a tweet"""
    try:
        likes = await LikeService(db).get_tweet_likes(tweet_id, current_user.id, page, limit)
        return envelope(200, likes, "Likes fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching likes of tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to fetch likes")


@router.get("/user/{user_id}")
async def get_user_liked_tweets(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Tweets a user has liked"""
    try:
        tweets = await LikeService(db).get_user_liked_tweets(user_id, current_user.id, page, limit)
        return envelope(200, tweets, "Liked tweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching liked tweets of user {user_id}: {e}")
        raise APIError(500, "Failed to fetch liked tweets")
