from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from dotenv import load_dotenv
import hashlib
import logging
import os

from app.utils.errors import TokenExpired, TokenInvalid

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

# Security settings
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
SECRET_KEY = os.getenv("SECRET_KEY", "fallback-secret-key")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60"))
RESET_TOKEN_PURPOSE = "password_reset"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Password hashing and verification
def hash_password(password: str) -> str:
    """Hash a password with automatic truncation for bcrypt"""
    # Bcrypt has a 72 byte limit, truncate if needed
    if len(password) > 72:
        password = password[:72]
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if len(plain_password) > 72:
        plain_password = plain_password[:72]
    return pwd_context.verify(plain_password, hashed_password)


def password_fingerprint(password_hash: str) -> str:
    """Short digest of the stored hash; changes whenever the password does."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


# Session lifetime
def session_expired(
    issued_at: datetime,
    now: Optional[datetime] = None,
    lifetime: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
) -> bool:
    """True once ``lifetime`` has elapsed since ``issued_at``."""
    now = now or utcnow()
    return now - issued_at >= lifetime


# JWT token creation and decoding
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None,
                        now: Optional[datetime] = None) -> str:
    issued_at = now or utcnow()
    to_encode = data.copy()
    expire = issued_at + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
        "type": "access",
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_reset_token(user_id: int, password_hash: str, now: Optional[datetime] = None) -> str:
    issued_at = now or utcnow()
    to_encode = {
        "sub": str(user_id),
        "user_id": user_id,
        "purpose": RESET_TOKEN_PURPOSE,
        "pwd": password_fingerprint(password_hash),
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)).timestamp()),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, now: Optional[datetime] = None) -> dict:
    """
    Verify signature and expiry.

    Raises:
        TokenInvalid: bad signature or malformed token
        TokenExpired: signature fine but the ``exp`` claim has passed
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_exp": False})
    except JWTError as e:
        logger.warning(f"Token failed verification: {e}")
        raise TokenInvalid()

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenInvalid()
    if (now or utcnow()) >= datetime.fromtimestamp(exp, tz=timezone.utc):
        logger.warning("Token expired")
        raise TokenExpired()
    return payload


def decode_access_token(token: str, now: Optional[datetime] = None) -> dict:
    """Decode a bearer token and enforce the 30 minute session window."""
    payload = decode_token(token, now)
    if payload.get("type") != "access":
        raise TokenInvalid()

    issued_at = payload.get("iat")
    if not isinstance(issued_at, (int, float)):
        raise TokenInvalid()
    if session_expired(datetime.fromtimestamp(issued_at, tz=timezone.utc), now):
        logger.warning(f"Session expired for user_id={payload.get('user_id')}")
        raise TokenExpired()
    return payload


def unverified_issued_at(token: str) -> Optional[datetime]:
    """Read ``iat`` without verifying the signature (client-side expiry check)."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    issued_at = claims.get("iat")
    if not isinstance(issued_at, (int, float)):
        return None
    return datetime.fromtimestamp(issued_at, tz=timezone.utc)
