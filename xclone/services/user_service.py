from datetime import datetime, timedelta
from typing import List, Optional
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging
import math

from xclone.config import settings
from xclone.models.user import User
from xclone.schemas.auth_schema import RegisterRequest
from xclone.schemas.user_schema import UserProfile, UserUpdate
from xclone.services.auth_service import get_password_hash, verify_password
from xclone.services.follow_service import FollowService
from xclone.tasks.email_tasks import send_verification_email, send_welcome_email
from xclone.utils.errors import APIError
from xclone.utils.file_upload import PROFILE_MEDIA, delete_file, save_media
from xclone.utils.security import generate_otp, username_base, username_candidates

logger = logging.getLogger(__name__)


def minutes_left(until: datetime) -> int:
    return max(1, math.ceil((until - datetime.utcnow()).total_seconds() / 60))


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username.lower()))
        return result.scalar_one_or_none()

    async def _get_user_by_email_or_404(self, email: str) -> User:
        user = await self.get_user_by_email(email)
        if user is None:
            raise APIError(404, "User not found")
        return user

    def _issue_otp(self, user: User, now: datetime) -> str:
        otp = generate_otp(settings.OTP_LENGTH)
        user.otp_code = get_password_hash(otp)
        user.otp_expires_at = now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        user.last_otp_request_at = now
        return otp

    async def suggest_usernames(self, full_name: str, email: str, count: int = 2) -> List[str]:
        """Up to `count` available usernames derived from the name or email"""
        base = username_base(full_name, email)
        suggestions: List[str] = []
        for candidate in username_candidates(base):
            if candidate in suggestions:
                continue
            if await self.get_user_by_username(candidate) is None:
                suggestions.append(candidate)
            if len(suggestions) == count:
                break
        return suggestions

    async def register(self, data: RegisterRequest) -> User:
        """Create an unverified account and email it a verification code"""
        if await self.get_user_by_email(data.email):
            raise APIError(409, "User with this email already exists")

        suggestions = await self.suggest_usernames(data.full_name, data.email, count=1)
        now = datetime.utcnow()

        user = User(
            email=data.email,
            full_name=data.full_name,
            birth_date=data.date_of_birth.to_date(),
            username=suggestions[0] if suggestions else None,
            is_active=True,
            is_verified=False,
            otp_requests=1,
        )
        otp = self._issue_otp(user, now)

        self.db.add(user)
        await self.db.flush()

        send_verification_email.delay(user.email, user.full_name, otp)
        logger.info(f"Registered user {user.id} ({user.email})")
        return user

    async def resend_otp(self, email: str) -> int:
        """
        Issue a fresh verification code.

        Returns:
            how many more codes may be requested before the account is blocked
        """
        user = await self._get_user_by_email_or_404(email)
        now = datetime.utcnow()

        if user.otp_blocked_until and user.otp_blocked_until > now:
            raise APIError(429, f"Too many OTP requests. Try again after {minutes_left(user.otp_blocked_until)} minutes")

        if user.otp_blocked_until:
            user.otp_blocked_until = None
            user.otp_requests = 0

        if user.otp_requests >= settings.MAX_OTP_REQUESTS:
            user.otp_blocked_until = now + timedelta(minutes=settings.OTP_BLOCK_TIME_MINUTES)
            await self.db.commit()
            logger.warning(f"OTP requests blocked for user {user.id}")
            raise APIError(429, f"Too many OTP requests. Try again after {settings.OTP_BLOCK_TIME_MINUTES} minutes")

        otp = self._issue_otp(user, now)
        user.otp_requests += 1
        await self.db.flush()

        send_verification_email.delay(user.email, user.full_name, otp)
        return settings.MAX_OTP_REQUESTS - user.otp_requests

    async def verify_otp(self, email: str, otp: str) -> User:
        user = await self._get_user_by_email_or_404(email)

        if not user.otp_code or not user.otp_expires_at:
            raise APIError(400, "No OTP request found")

        if user.otp_expires_at < datetime.utcnow():
            raise APIError(400, "OTP has expired")

        if not verify_password(otp, user.otp_code):
            raise APIError(400, "Invalid OTP")

        user.is_verified = True
        user.otp_code = None
        user.otp_expires_at = None
        user.otp_requests = 0
        user.otp_blocked_until = None
        await self.db.flush()

        send_welcome_email.delay(user.email, user.full_name)
        logger.info(f"User {user.id} verified their email")
        return user

    async def login(self, email: str, password: str) -> User:
        """Check credentials, counting failures towards a temporary lock"""
        user = await self._get_user_by_email_or_404(email)
        now = datetime.utcnow()

        if not user.is_verified:
            raise APIError(400, "Please verify your email first")

        if user.is_locked:
            if user.lock_until and user.lock_until > now:
                raise APIError(403, f"Account is locked. Try again after {minutes_left(user.lock_until)} minutes")
            user.is_locked = False
            user.lock_until = None
            user.login_attempts = 0

        if not user.hashed_password or not verify_password(password, user.hashed_password):
            user.login_attempts += 1
            if user.login_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                user.is_locked = True
                user.lock_until = now + timedelta(minutes=settings.LOCK_TIME_MINUTES)
                await self.db.commit()
                logger.warning(f"User {user.id} locked after {user.login_attempts} failed logins")
                raise APIError(400, f"Too many failed attempts. Account locked for {settings.LOCK_TIME_MINUTES} minutes")

            remaining = settings.MAX_LOGIN_ATTEMPTS - user.login_attempts
            await self.db.commit()
            logger.info(f"Failed login for user {user.id}, {remaining} attempts left")
            raise APIError(400, f"Invalid password. {remaining} attempts remaining")

        user.login_attempts = 0
        user.is_locked = False
        user.lock_until = None
        user.last_login_at = now
        await self.db.flush()
        return user

    async def set_password(self, user: User, password: str) -> None:
        if not user.is_verified:
            raise APIError(400, "Please verify your email first")
        user.hashed_password = get_password_hash(password)
        await self.db.flush()

    async def set_username(self, user: User, username: str) -> User:
        username = username.lower()
        existing = await self.get_user_by_username(username)
        if existing is not None and existing.id != user.id:
            raise APIError(409, "Username is already taken")

        user.username = username
        await self.db.flush()
        return user

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                continue
            setattr(user, field, value.strip() if isinstance(value, str) else value)
        await self.db.flush()
        return user

    async def _set_image(self, user: User, file: Optional[UploadFile], field: str, subdirectory: str) -> User:
        if file is None or not file.filename:
            raise APIError(400, "Image file is required")

        urls = await save_media([file], PROFILE_MEDIA, 1, subdirectory)
        old_url = getattr(user, field)
        setattr(user, field, urls[0])
        await self.db.flush()

        if old_url and old_url.startswith("/uploads/"):
            delete_file(old_url)
        return user

    async def set_profile_image(self, user: User, file: Optional[UploadFile]) -> User:
        return await self._set_image(user, file, "avatar_url", "avatars")

    async def set_banner_image(self, user: User, file: Optional[UploadFile]) -> User:
        return await self._set_image(user, file, "banner_url", "banners")

    async def get_profile(self, username: str, viewer_id: int) -> UserProfile:
        user = await self.get_user_by_username(username)
        if user is None:
            raise APIError(404, "User not found")

        follows = FollowService(self.db)
        return UserProfile.model_validate(user).model_copy(update={
            "is_following": await follows.is_following(viewer_id, user.id),
            "follows_you": await follows.is_following(user.id, viewer_id),
            "is_self": user.id == viewer_id,
        })
