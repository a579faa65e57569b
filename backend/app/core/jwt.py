"""
API token utilities.

Tokens are issued at sign-in and identify the caller by email. They carry no
role: roles are resolved from the users collection on every request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from email_validator import validate_email, EmailNotValidError
from jose import JWTError, jwt

from backend.app.core.config import settings


def create_access_token(email: str, user_id: Optional[str] = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed token for a signed-in user.

    Claims:
        sub: the user's email
        user_id: the user's id, when known
        iat / exp: issue and expiry times (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims: Dict[str, Any] = {"sub": email, "iat": issued_at, "exp": issued_at + lifetime}
    if user_id:
        claims["user_id"] = user_id

    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify signature and expiry and return the claims.

    Returns None for a bad signature, an expired token, or a subject that is
    not an email address.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str):
        return None
    try:
        validate_email(subject, check_deliverability=False)
    except EmailNotValidError:
        return None

    return payload
