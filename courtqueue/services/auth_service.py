"""
Authentication service: password hashing and JWT access tokens.
"""

import os
import logging
from datetime import timedelta
from typing import Dict, Optional

import bcrypt
import jwt

from courtqueue.utils.constants import MIN_PASSWORD_LENGTH, MIN_USERNAME_LENGTH
from courtqueue.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRATION_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRATION_MINUTES", "720"))

if JWT_SECRET_KEY == "dev-secret-change-me":
    logger.warning("JWT_SECRET_KEY is not set; using the development default")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to embed (e.g. {"agent_id": 1, "username": "sam"})
        expires_delta: Lifetime override (defaults to ACCESS_TOKEN_EXPIRATION_MINUTES)

    Returns:
        Encoded token string
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRATION_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Decode and validate an access token.

    Returns:
        The token payload, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired access token")
        return None
    except jwt.InvalidTokenError:
        return None


def normalize_username(username: str) -> str:
    """
    Trim and validate a username.

    Raises:
        ValueError: If the username is too short
    """
    username = (username or "").strip()
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValueError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
    return username


def validate_password(password: str) -> None:
    """
    Raises:
        ValueError: If the password is too short
    """
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
