from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.database import get_db
from app.utils.errors import TokenExpired, TokenInvalid
from app.utils.security import decode_access_token
from app.models.user import User
import logging

logger = logging.getLogger(__name__)

# Dependency to get the current authenticated user
security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
        )
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db)
) -> User:
    # Expired and forged tokens are both rejected, but reported differently
    try:
        payload = decode_access_token(token)
    except TokenExpired as e:
        logger.info("Rejected request with expired session token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except TokenInvalid as e:
        logger.warning("Rejected request with invalid session token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)

    user_id = payload.get("user_id")
    user = db.query(User).filter(User.id == user_id).first()

    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

    return user
