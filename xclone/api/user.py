from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from xclone.config import settings
from xclone.db.session import get_db
from xclone.models.user import User
from xclone.schemas.auth_schema import (
    EmailRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    SetPasswordRequest,
    SetUsernameRequest,
    TokenResponse,
    VerifyOTPRequest,
)
from xclone.schemas.user_schema import UserResponse, UsernameSuggestions, UserUpdate
from xclone.services.auth_service import (
    REFRESH_COOKIE,
    AuthService,
    clear_auth_cookies,
    get_current_user,
    get_request_token,
    set_auth_cookies,
)
from xclone.services.redis_service import RedisService, get_redis
from xclone.services.user_service import UserService
from xclone.utils.errors import APIError, envelope
from xclone.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_payload(user: User, access_token: str, refresh_token: str) -> dict:
    return {
        "user": UserResponse.model_validate(user),
        **TokenResponse(access_token=access_token, refresh_token=refresh_token).model_dump(),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """Register a new account and send its verification code"""
    try:
        user = await UserService(db).register(data)
        return envelope(201, {"user_id": user.id}, "User registered. Check your email for the OTP")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise APIError(500, "Registration failed")


@router.post("/resend-otp")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def resend_otp(
    request: Request,
    data: EmailRequest,
    db: AsyncSession = Depends(get_db)
):
    """Send a new verification code"""
    try:
        remaining = await UserService(db).resend_otp(data.email)
        return envelope(200, {"remaining_attempts": remaining}, "OTP sent successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Resend OTP error: {e}")
        raise APIError(500, "Failed to resend OTP")


@router.post("/verify-otp")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def verify_otp(
    request: Request,
    response: Response,
    data: VerifyOTPRequest,
    db: AsyncSession = Depends(get_db)
):
    """Verify the email and sign the user in"""
    try:
        user = await UserService(db).verify_otp(data.email, data.otp)
        access_token, refresh_token = AuthService(db).issue_tokens(user)
        set_auth_cookies(response, access_token, refresh_token)
        return envelope(200, _session_payload(user, access_token, refresh_token), "Email verified successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"OTP verification error: {e}")
        raise APIError(500, "OTP verification failed")


@router.post("/login")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login user and return tokens"""
    try:
        user = await UserService(db).login(data.email, data.password)
        access_token, refresh_token = AuthService(db).issue_tokens(user)
        set_auth_cookies(response, access_token, refresh_token)
        logger.info(f"User {user.id} logged in")
        return envelope(200, _session_payload(user, access_token, refresh_token), "Logged in successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise APIError(500, "Login failed")


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    response: Response,
    data: Optional[RefreshTokenRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new token pair"""
    try:
        token = (data.refresh_token if data else None) or request.cookies.get(REFRESH_COOKIE)
        user, access_token, new_refresh_token = await AuthService(db).refresh_tokens(token)
        set_auth_cookies(response, access_token, new_refresh_token)
        return envelope(200, _session_payload(user, access_token, new_refresh_token), "Access token refreshed")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Token refresh error: {e}")
        raise APIError(500, "Token refresh failed")


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    token: Optional[str] = Depends(get_request_token),
    db: AsyncSession = Depends(get_db),
    redis: RedisService = Depends(get_redis),
):
    """Logout user (invalidate tokens)"""
    try:
        await AuthService(db, redis).logout(current_user, token)
        clear_auth_cookies(response)
        return envelope(200, None, "Logged out successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Logout error: {e}")
        raise APIError(500, "Logout failed")


@router.get("/current-user")
async def current_user(current_user: User = Depends(get_current_user)):
    """Get the signed in user's account"""
    return envelope(200, UserResponse.model_validate(current_user), "Current user fetched successfully")


@router.get("/profile/{username}")
async def get_user_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a user's public profile with the relationship to the viewer"""
    try:
        profile = await UserService(db).get_profile(username, current_user.id)
        return envelope(200, profile, "User profile fetched successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error fetching profile {username}: {e}")
        raise APIError(500, "Failed to fetch user profile")


@router.put("/update-profile")
async def update_profile(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update profile fields"""
    try:
        user = await UserService(db).update_profile(current_user, data)
        return envelope(200, UserResponse.model_validate(user), "Profile updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error updating profile for user {current_user.id}: {e}")
        raise APIError(500, "Failed to update profile")


@router.post("/set-password")
async def set_password(
    data: SetPasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Set the account password"""
    try:
        await UserService(db).set_password(current_user, data.password)
        return envelope(200, None, "Password set successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error setting password for user {current_user.id}: {e}")
        raise APIError(500, "Failed to set password")


@router.get("/suggest-usernames")
async def suggest_usernames(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Suggest available usernames"""
    try:
        usernames = await UserService(db).suggest_usernames(current_user.full_name, current_user.email)
        return envelope(200, UsernameSuggestions(usernames=usernames), "Usernames generated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error suggesting usernames for user {current_user.id}: {e}")
        raise APIError(500, "Failed to suggest usernames")


@router.post("/set-username")
async def set_username(
    data: SetUsernameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Choose a username"""
    try:
        user = await UserService(db).set_username(current_user, data.username)
        return envelope(200, UserResponse.model_validate(user), "Username set successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error setting username for user {current_user.id}: {e}")
        raise APIError(500, "Failed to set username")


@router.post("/set-profile-image")
async def set_profile_image(
    profile_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Upload a new avatar"""
    try:
        user = await UserService(db).set_profile_image(current_user, profile_image)
        return envelope(200, UserResponse.model_validate(user), "Profile image updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error setting profile image for user {current_user.id}: {e}")
        raise APIError(500, "Failed to update profile image")


@router.post("/set-banner-image")
async def set_banner_image(
    banner_image: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Upload a new banner"""
    try:
        user = await UserService(db).set_banner_image(current_user, banner_image)
        return envelope(200, UserResponse.model_validate(user), "Banner image updated successfully")
    except APIError:
        raise
    except Exception as e:
        logger.error(f"Error setting banner image for user {current_user.id}: {e}")
        raise APIError(500, "Failed to update banner image")
