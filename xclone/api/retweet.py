from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.schemas.retweet_schema import RetweetCreate
from xclone.services.auth_service import get_current_user
from xclone.services.retweet_service import RetweetService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me")
async def get_my_retweets(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The current user's retweets"""
    try:
        retweets = await RetweetService(db).get_user_retweets(current_user.id, current_user.id, page, limit)
        return envelope(200, retweets, "Retweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching retweets of user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch retweets")


@router.get("/user/{user_id}")
async def get_user_retweets(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """A user's retweets"""
    try:
        retweets = await RetweetService(db).get_user_retweets(user_id, current_user.id, page, limit)
        return envelope(200, retweets, "Retweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching retweets of user {user_id}: {e}")
        raise APIError(500, "Failed to fetch retweets")


@router.post("/{tweet_id}", status_code=status.HTTP_201_CREATED)
async def create_retweet(
    tweet_id: int,
    data: Optional[RetweetCreate] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Retweet a tweet, optionally with a comment"""
    try:
        retweet = await RetweetService(db).create_retweet(
            tweet_id, current_user.id, data.comment if data else None
        )
        return envelope(201, retweet, "Retweeted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error retweeting tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to retweet")


@router.delete("/{tweet_id}")
async def remove_retweet(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Undo a retweet"""
    try:
        await RetweetService(db).remove_retweet(tweet_id, current_user.id)
        return envelope(200, None, "Retweet removed successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error removing retweet of tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to remove retweet")


@router.get("/{tweet_id}/users")
async def get_tweet_retweets(
    tweet_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Who retweeted a tweet"""
    try:
        retweets = await RetweetService(db).get_tweet_retweets(tweet_id, current_user.id, page, limit)
        return envelope(200, retweets, "Retweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching retweets of tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to fetch retweets")


@router.get("/{tweet_id}/status")
async def check_retweet_status(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Whether the current user retweeted a tweet"""
    try:
        retweet_status = await RetweetService(db).check_retweet_status(tweet_id, current_user.id)
        return envelope(200, retweet_status, "Retweet status fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error checking retweet status of tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to check retweet status")
