"""Revoked access tokens, kept in Redis under ``revoked:<jti>``.

The login service writes these entries with a TTL matching the token's
remaining lifetime; this service only reads them.
"""

from app.redis import get_redis

_KEY_PREFIX = "revoked:"


def revoked_key(jti: str) -> str:
    return f"{_KEY_PREFIX}{jti}"


async def is_token_revoked(jti: str) -> bool:
    r = await get_redis()
    return await r.exists(revoked_key(jti)) > 0
