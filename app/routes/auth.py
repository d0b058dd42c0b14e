"""Authentication endpoints: sessions and password reset"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    MessageResponse,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
    VerifyResponse,
)
from app.services.auth_service import AuthService
from app.services.password_reset_service import PasswordResetService
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    """Create an account; the response already carries a session token."""
    return AuthService.register_user(db, payload)


@router.post("/login", response_model=AuthResponse)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    return AuthService.login_user(db, payload)


@router.post("/logout", response_model=MessageResponse)
def logout():
    # Tokens are not tracked server-side; the client drops its copy
    return {"message": "Logged out successfully"}


@router.get("/verify", response_model=VerifyResponse)
def verify(current_user: User = Depends(get_current_user)):
    return {"valid": True, "user": current_user}


@router.post("/forgot-password", response_model=ForgotPasswordResponse,
             status_code=status.HTTP_202_ACCEPTED)
def forgot_password(payload: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Start a password reset. The reply is the same whether or not the email is registered."""
    requester = request.client.host if request.client else None
    return PasswordResetService.request_reset(db, payload.email, requester)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    PasswordResetService.reset_password(db, payload.token, payload.new_password)
    return {"message": "Password reset successful. You can now log in with your new password."}
