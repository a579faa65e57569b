"""
Token Revocation System using Redis.

Implements token blacklisting so that a signed-out token stops working
before its natural expiry.
"""

import logging

from redis.exceptions import RedisError

import backend.app.core.redis_client as redis_store
from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, email: str) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        email: Email of the user who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens expire on their own, so the entry only has to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60

        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis_store.redis_client.setex(key, ttl_seconds, email)

        return True
    except RedisError as e:
        logger.error("Error revoking token for %s: %s", email, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Args:
        token: JWT token string to check

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis_store.redis_client.exists(key)
        return exists > 0
    except RedisError as e:
        # Redis outage lets signature-valid tokens through; role checks still hit the database
        logger.warning("Error checking token revocation: %s", e)
        return False
