import logging
import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.blacklist import is_token_revoked
from app.auth.service import decode_access_token
from app.certificates.exceptions import RetrievalFailure, Unauthorized
from app.config import settings
from app.database import get_db
from app.users.models import User
from app.users.service import get_user_by_id

logger = logging.getLogger(__name__)

# auto_error=False so a missing header reaches our own Unauthorized error
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user or raise ``Unauthorized``."""
    if not credentials or not credentials.credentials:
        raise Unauthorized("Missing authorization header")

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise Unauthorized("Invalid token")

    jti = payload.get("jti")
    if settings.token_blacklist_enabled and jti:
        try:
            revoked = await is_token_revoked(jti)
        except RedisError as e:
            logger.exception("Token blacklist lookup failed for jti=%s", jti)
            raise RetrievalFailure("Failed to verify token") from e
        if revoked:
            raise Unauthorized("Token has been revoked")

    try:
        user = await get_user_by_id(db, user_id)
    except SQLAlchemyError as e:
        logger.exception("Failed to load user %s", user_id)
        raise RetrievalFailure("Failed to get user profile") from e
    if not user or not user.is_active:
        raise Unauthorized("User not found or inactive")
    return user
