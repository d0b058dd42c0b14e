import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.email_service import EmailService
from app.utils.errors import TokenInvalidOrExpired
from app.utils.security import (
    RESET_TOKEN_PURPOSE,
    create_reset_token,
    decode_token,
    hash_password,
    password_fingerprint,
)

logger = logging.getLogger(__name__)

PASSWORD_RESET_URL = os.getenv("PASSWORD_RESET_URL", "http://localhost:5173/reset-password")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
GENERIC_RESET_MESSAGE = "If your email exists in our system, you will receive a reset link"
INVALID_RESET_TOKEN = "Invalid or expired reset token."


class PasswordResetService:
    """
    Stateless password reset.

    The reset token is a signed JWT carrying ``purpose`` and a fingerprint of
    the password hash it was issued against. Changing the password changes the
    fingerprint, so a token can be redeemed at most once.
    """

    @staticmethod
    def _build_reset_link(raw_token: str) -> str:
        base = PASSWORD_RESET_URL.rstrip("/")
        return f"{base}/{raw_token}"

    @classmethod
    def request_reset(cls, db: Session, email: str, client_ip: Optional[str] = None,
                      now: Optional[datetime] = None) -> dict:
        """Issue a reset token for ``email``; the reply never reveals whether it exists."""
        response = {"message": GENERIC_RESET_MESSAGE}

        user = db.query(User).filter(User.email == email).first()
        if not user or not user.is_active:
            logger.info(f"Password reset requested for unknown email from {client_ip}")
            return response

        raw_token = create_reset_token(user.id, str(user.password_hash), now=now)
        reset_link = cls._build_reset_link(raw_token)

        if EmailService.is_configured():
            try:
                EmailService.send_password_reset_email(user.email, reset_link)
            except HTTPException as e:
                # The reply must match the unknown-email case
                logger.error(f"Reset email for user {user.id} was not delivered: {e.detail}")
        else:
            logger.warning("SMTP is not configured; reset link was not emailed")

        if ENVIRONMENT == "development":
            response["reset_token"] = raw_token
            response["reset_url"] = reset_link
        return response

    @classmethod
    def reset_password(cls, db: Session, token: str, new_password: str,
                       now: Optional[datetime] = None) -> None:
        try:
            payload = decode_token(token, now)
        except TokenInvalidOrExpired:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_RESET_TOKEN)

        if payload.get("purpose") != RESET_TOKEN_PURPOSE:
            logger.warning("Rejected reset attempt with a non-reset token")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_RESET_TOKEN)

        user = db.query(User).filter(User.id == payload.get("user_id")).first()
        if not user or payload.get("pwd") != password_fingerprint(str(user.password_hash)):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_RESET_TOKEN)

        user.password_hash = hash_password(new_password)
        db.commit()
        logger.info(f"Password reset completed for user {user.id}")
