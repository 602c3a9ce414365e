"""
Security helpers: JWT handling, password hashing and one-time codes.
"""

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from cafirm.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
    additional_claims: dict[str, Any] | None = None,
) -> str:
    """
    Creates a signed access token.

    Args:
        subject: Account id
        expires_delta: Custom lifetime
        additional_claims: Extra claims (firm_id, role, email)

    Returns:
        Encoded JWT
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> dict[str, Any] | None:
    """
    Verifies and decodes a JWT.

    Returns:
        The payload, or None when the token is invalid or expired
    """
    try:
        return jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except ExpiredSignatureError:
        return None
    except JWTError:
        return None


def is_token_expired(token: str) -> bool:
    """True when the token is well formed but past its expiry."""
    try:
        jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        return True
    except JWTError:
        return False
    return False


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Checks a plain password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hashes a password with bcrypt."""
    return pwd_context.hash(password)


def generate_otp(length: int = 6) -> str:
    """Numeric one-time code."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def generate_temporary_password(length: int = 12) -> str:
    """Random password handed out with the welcome e-mail."""
    alphabet = string.ascii_letters + string.digits
    # Guarantee at least one digit and one letter of each case
    password = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
    ]
    password += [secrets.choice(alphabet) for _ in range(length - len(password))]
    secrets.SystemRandom().shuffle(password)
    return "".join(password)


def mask_email(email: str) -> str:
    """Shows the first two characters of the local part: ab***@example.com."""
    local, _, domain = email.partition("@")
    if not domain:
        return email
    return f"{local[:2]}***@{domain}"
