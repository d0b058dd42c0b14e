from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict, ValidationInfo
from datetime import datetime
from typing import List, Optional

from app.schemas.user import WatchlistEntry

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 72  # bcrypt limit


def ensure_password_length(password: str) -> str:
    """Validate password length requirements."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValueError(f'Password cannot be longer than {MAX_PASSWORD_LENGTH} characters')
    return password


def normalize_email(email: str) -> str:
    return email.strip().lower()


# Schema for user registration
class UserRegister(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(default="", max_length=255)

    @field_validator('email')
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)

    # Password validation
    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return ensure_password_length(v)


# Schema for user login
class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


# Schema for user response
class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    is_active: bool
    favorites: List[int] = []
    watchlist: List[WatchlistEntry] = []
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class ForgotPasswordResponse(BaseModel):
    message: str
    # Development only
    reset_token: Optional[str] = None
    reset_url: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v):
        return ensure_password_length(v)

    @field_validator('confirm_password')
    @classmethod
    def confirm_matches(cls, v, info: ValidationInfo):
        new_password = info.data.get('new_password')
        if v is not None and new_password and v != new_password:
            raise ValueError('Passwords do not match')
        return v


class MessageResponse(BaseModel):
    message: str


class ProfileResponse(BaseModel):
    user: UserResponse


class VerifyResponse(BaseModel):
    valid: bool = True
    user: UserResponse
