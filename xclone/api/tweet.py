from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from xclone.db.session import get_db
from xclone.models.user import User
from xclone.schemas.tweet_schema import Visibility
from xclone.services.auth_service import get_current_user
from xclone.services.tweet_service import TweetService
from xclone.utils.errors import APIError, envelope

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_tweet(
    content: str = Form(...),
    reply_to: Optional[int] = Form(None),
    quote_of: Optional[int] = Form(None),
    visibility: Visibility = Form(Visibility.PUBLIC),
    files: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a tweet, a reply or a quote"""
    try:
        tweet = await TweetService(db).create_tweet(
            author_id=current_user.id,
            content=content,
            visibility=visibility,
            reply_to_id=reply_to,
            quote_of_id=quote_of,
            files=files,
        )
        return envelope(201, tweet, "Tweet created successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error creating tweet: {e}")
        raise APIError(500, "Failed to create tweet")


@router.get("/timeline")
async def get_timeline(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Home timeline for the current user"""
    try:
        timeline = await TweetService(db).get_timeline(current_user.id, page, limit)
        return envelope(200, timeline, "Timeline fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching timeline for user {current_user.id}: {e}")
        raise APIError(500, "Failed to fetch timeline")


@router.get("/search")
async def search_tweets(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Search tweet content"""
    try:
        results = await TweetService(db).search_tweets(q, current_user.id, page, limit)
        return envelope(200, results, "Tweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error searching tweets: {e}")
        raise APIError(500, "Failed to search tweets")


@router.get("/user/{user_id}")
async def get_user_tweets(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Tweets posted by a user"""
    try:
        tweets = await TweetService(db).get_user_tweets(user_id, current_user.id, page, limit)
        return envelope(200, tweets, "User tweets fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching tweets of user {user_id}: {e}")
        raise APIError(500, "Failed to fetch user tweets")


@router.get("/{tweet_id}")
async def get_tweet(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a single tweet"""
    try:
        tweet = await TweetService(db).get_tweet(tweet_id, current_user.id)
        return envelope(200, tweet, "Tweet fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to fetch tweet")


@router.put("/{tweet_id}")
async def update_tweet(
    tweet_id: int,
    content: Optional[str] = Form(None),
    visibility: Optional[Visibility] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Edit a tweet's content, visibility or media"""
    try:
        tweet = await TweetService(db).update_tweet(tweet_id, current_user.id, content, visibility, files)
        return envelope(200, tweet, "Tweet updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error updating tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to update tweet")


@router.delete("/{tweet_id}")
async def delete_tweet(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a tweet"""
    try:
        await TweetService(db).delete_tweet(tweet_id, current_user.id)
        return envelope(200, None, "Tweet deleted successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error deleting tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to delete tweet")


@router.get("/{tweet_id}/replies")
async def get_tweet_replies(
    tweet_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Replies to a tweet, oldest first"""
    try:
        replies = await TweetService(db).get_tweet_replies(tweet_id, current_user.id, page, limit)
        return envelope(200, replies, "Replies fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching replies of tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to fetch replies")


@router.post("/{tweet_id}/pin")
async def toggle_pin(
    tweet_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Pin or unpin one of your tweets"""
    try:
        tweet = await TweetService(db).toggle_pin(tweet_id, current_user.id)
        message = "Tweet pinned successfully" if tweet.pinned else "Tweet unpinned successfully"
        return envelope(200, tweet, message)
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error pinning tweet {tweet_id}: {e}")
        raise APIError(500, "Failed to update pin")
