from datetime import datetime, timedelta
from typing import Optional

import jwt
from passlib.context import CryptContext

from edurecords.config import settings

# ==========================================================
# PASSWORD HASHING CONFIG
# ==========================================================

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto"
)

# bcrypt only supports 72 BYTES
MAX_BCRYPT_BYTES = 72


def _truncate_password(password: str) -> bytes:
    """
    Ensures password respects bcrypt 72-byte limit.
    We slice AFTER encoding to avoid multi-byte UTF-8 overflow.
    """
    if not password:
        return b""
    return password.encode("utf-8")[:MAX_BCRYPT_BYTES]


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify plain password against hashed password.
    A missing or malformed hash never verifies.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(_truncate_password(plain_password), hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_truncate_password(password))


# ==========================================================
# JWT UTILITIES
# ==========================================================

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token. `data` must carry the user's email as `sub`.
    """
    to_encode = data.copy()

    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.algorithm
    )


def decode_access_token(token: str) -> Optional[str]:
    """
    Decode JWT token and return email (sub).
    Returns None if invalid or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm]
        )
    except jwt.PyJWTError:
        return None

    return payload.get("sub")
