from sqlalchemy import Column, String, Boolean, Text, DateTime, Date, Integer, Index
from xclone.db.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(50), unique=True, index=True, nullable=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    refresh_token = Column(Text, nullable=True)
    bio = Column(Text, default="", nullable=False)
    location = Column(String(100))
    website = Column(String(255))
    avatar_url = Column(String(255))
    banner_url = Column(String(255))
    birth_date = Column(Date)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    # Denormalized counts for performance
    followers_count = Column(Integer, default=0, nullable=False)
    following_count = Column(Integer, default=0, nullable=False)
    tweets_count = Column(Integer, default=0, nullable=False)

    # Email verification OTP; the code is stored hashed
    otp_code = Column(String(255))
    otp_expires_at = Column(DateTime)
    otp_requests = Column(Integer, default=0, nullable=False)
    last_otp_request_at = Column(DateTime)
    otp_blocked_until = Column(DateTime)

    # Login lockout
    is_locked = Column(Boolean, default=False, nullable=False)
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime)
    last_login_at = Column(DateTime)

    __table_args__ = (
        Index('ix_users_created_at', 'created_at'),
        Index('ix_users_followers_count', 'followers_count'),
    )
