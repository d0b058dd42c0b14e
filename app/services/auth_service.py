from datetime import timedelta
from typing import Any, Dict
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.user import User
from app.schemas.auth import UserLogin, UserRegister
from app.utils.security import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


def _session_for(user: User) -> Dict[str, Any]:
    """Bearer session payload returned by register and login."""
    lifetime = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return {
        "token": create_access_token({"sub": user.email, "user_id": user.id}, expires_delta=lifetime),
        "token_type": "bearer",
        "expires_in": int(lifetime.total_seconds()),
        "user": user,
    }


class AuthService:
    @staticmethod
    def register_user(db: Session, user_data: UserRegister) -> Dict[str, Any]:
        if db.query(User.id).filter(User.email == user_data.email).first() is not None:
            logger.info(f"Registration refused, email in use: {user_data.email}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

        account = User(
            email=user_data.email,
            password_hash=hash_password(user_data.password),
            name=user_data.name,
            favorites=[],
            watchlist=[],
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        logger.info(f"Registered user {account.id}")

        # A new account starts signed in
        return _session_for(account)

    @staticmethod
    def login_user(db: Session, credentials: UserLogin) -> Dict[str, Any]:
        account = db.query(User).filter(User.email == credentials.email).first()

        # Unknown email and wrong password are indistinguishable to the caller
        if account is None or not verify_password(credentials.password, account.password_hash):
            logger.warning(f"Failed sign-in for {credentials.email}")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

        if not account.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")

        return _session_for(account)
