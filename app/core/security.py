import logging
import bcrypt
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from app.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72

# passlib only verifies hashes written before the switch to bcrypt-native
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _truncate_password(password: str) -> bytes:
    """Encode and cut to bcrypt's 72-byte limit without splitting a UTF-8 character."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= BCRYPT_MAX_BYTES:
        return password_bytes
    logger.warning("Password exceeds 72 bytes, truncating before hashing")
    return password_bytes[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore").encode("utf-8")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt directly.

    Args:
        password: Plain text password

    Returns:
        Hashed password string (bcrypt format, passlib compatible)

    Raises:
        ValueError: If the password cannot be hashed
    """
    try:
        return bcrypt.hashpw(_truncate_password(password), bcrypt.gensalt()).decode("utf-8")
    except (TypeError, ValueError) as e:
        logger.error(f"Password hashing failed: {e}")
        raise ValueError("Invalid password") from e


def verify_password(password: str, hashed: str) -> bool:
    """
    Verify a password against its hash.

    Falls back to passlib for legacy hashes bcrypt refuses to parse.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_truncate_password(password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        try:
            return pwd_context.verify(password, hashed)
        except ValueError:
            return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
