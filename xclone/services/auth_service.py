import time
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from xclone.config import settings
from xclone.schemas.auth_schema import TokenData
from xclone.models.user import User
from xclone.db.session import get_db
from xclone.services.redis_service import RedisService, get_redis
from xclone.utils.errors import APIError

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/user/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password (or OTP) against its hash"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password (or OTP)"""
    return pwd_context.hash(password)


class AuthService:
    def __init__(self, db: AsyncSession, redis: Optional[RedisService] = None):
        self.db = db
        self.redis = redis

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

        to_encode.update({"exp": expire, "type": "access", "jti": uuid.uuid4().hex})
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.ALGORITHM)

    def create_refresh_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT refresh token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))

        to_encode.update({"exp": expire, "type": "refresh", "jti": uuid.uuid4().hex})
        return jwt.encode(to_encode, settings.refresh_secret_key, algorithm=settings.ALGORITHM)

    def issue_tokens(self, user: User) -> Tuple[str, str]:
        """Create an access/refresh pair and remember the refresh token on the user"""
        claims = {"sub": str(user.id), "user_id": user.id, "username": user.username}
        access_token = self.create_access_token(claims)
        refresh_token = self.create_refresh_token(claims)
        user.refresh_token = refresh_token
        return access_token, refresh_token

    def _decode(self, token: str, key: str, token_type: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, key, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != token_type or payload.get("user_id") is None:
            return None

        return TokenData(
            user_id=payload["user_id"],
            username=payload.get("username"),
            exp=payload.get("exp"),
        )

    async def verify_token(self, token: str) -> Optional[TokenData]:
        """Verify an access token, rejecting blacklisted ones"""
        if self.redis is not None and await self.redis.get(f"blacklist:{token}"):
            return None
        return self._decode(token, settings.secret_key, "access")

    def verify_refresh_token(self, token: str) -> Optional[TokenData]:
        """Verify a refresh token"""
        return self._decode(token, settings.refresh_secret_key, "refresh")

    async def blacklist_token(self, token: str) -> None:
        """Add an access token to the blacklist until it would expire anyway"""
        token_data = self._decode(token, settings.secret_key, "access")
        if token_data is None or token_data.exp is None:
            return

        expires_in = int(token_data.exp - time.time())
        if expires_in > 0:
            await self.redis.setex(f"blacklist:{token}", expires_in, "1")

    async def refresh_tokens(self, refresh_token: Optional[str]) -> Tuple[User, str, str]:
        """Exchange the current refresh token for a new pair"""
        if not refresh_token:
            raise APIError(401, "Unauthorized request")

        token_data = self.verify_refresh_token(refresh_token)
        if token_data is None:
            raise APIError(401, "Invalid refresh token")

        user = await self.db.get(User, token_data.user_id)
        if user is None or user.refresh_token != refresh_token:
            logger.warning(f"Refresh token reuse or unknown user {token_data.user_id}")
            raise APIError(401, "Refresh token is expired or used")

        access_token, new_refresh_token = self.issue_tokens(user)
        return user, access_token, new_refresh_token

    async def logout(self, user: User, access_token: Optional[str]) -> None:
        user.refresh_token = None
        if access_token:
            await self.blacklist_token(access_token)
        logger.info(f"User {user.id} logged out")


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    options = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
    }
    response.set_cookie(ACCESS_COOKIE, access_token,
                        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, **options)
    response.set_cookie(REFRESH_COOKIE, refresh_token,
                        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600, **options)


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, secure=settings.COOKIE_SECURE, samesite=settings.COOKIE_SAMESITE)
    response.delete_cookie(REFRESH_COOKIE, secure=settings.COOKIE_SECURE, samesite=settings.COOKIE_SAMESITE)


async def get_request_token(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[str]:
    """Access token from the Authorization header, else from the cookie"""
    return token or request.cookies.get(ACCESS_COOKIE)


async def get_current_user(
    token: Optional[str] = Depends(get_request_token),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis),
) -> User:
    """Dependency to get current authenticated user"""
    if not token:
        raise APIError(401, "Unauthorized request")

    token_data = await AuthService(db, redis).verify_token(token)
    if token_data is None:
        raise APIError(401, "Invalid access token")

    user = await db.get(User, token_data.user_id)
    if user is None:
        raise APIError(401, "Invalid access token")

    if not user.is_active:
        raise APIError(403, "Inactive user")

    return user
