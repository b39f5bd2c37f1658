from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import date as calendar_date


class DateOfBirth(BaseModel):
    """Birth date as sent by the sign-up form"""
    date: int = Field(..., ge=1, le=31, description="Day of month")
    month: int = Field(..., ge=1, le=12, description="Month")
    year: int = Field(..., ge=1900, description="Year")

    def to_date(self) -> calendar_date:
        return calendar_date(self.year, self.month, self.date)


class RegisterRequest(BaseModel):
    """Schema for registration request"""
    email: EmailStr = Field(..., description="Email address")
    full_name: str = Field(..., min_length=1, max_length=100, description="Full name")
    date_of_birth: DateOfBirth = Field(..., description="Date of birth")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Full name is required")
        return value

    @model_validator(mode="after")
    def check_birth_date(self):
        try:
            self.date_of_birth.to_date()
        except ValueError:
            raise ValueError("Invalid date of birth")
        return self


class EmailRequest(BaseModel):
    """Schema for OTP resend request"""
    email: EmailStr = Field(..., description="Email address")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class VerifyOTPRequest(EmailRequest):
    """Schema for OTP verification"""
    otp: str = Field(..., min_length=1, max_length=10, description="One-time passcode")


class LoginRequest(EmailRequest):
    """Schema for login request"""
    password: str = Field(..., min_length=1, max_length=100, description="Password")


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request"""
    refresh_token: Optional[str] = Field(None, description="Refresh token, read from the cookie when omitted")


class SetPasswordRequest(BaseModel):
    """Schema for setting the account password"""
    password: str = Field(..., min_length=6, max_length=100, description="Password (min 6 characters)")


class SetUsernameRequest(BaseModel):
    """Schema for choosing a username"""
    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        pattern=r'^[a-zA-Z0-9_]+$',
        description="Username (letters, numbers, underscores only)"
    )

    @field_validator("username")
    @classmethod
    def lowercase_username(cls, value: str) -> str:
        return value.lower()


class TokenResponse(BaseModel):
    """Schema for token response"""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")


class TokenData(BaseModel):
    """Schema for token payload data"""
    user_id: int = Field(..., description="User ID")
    username: Optional[str] = Field(None, description="Username")
    exp: Optional[int] = Field(None, description="Expiration timestamp")
