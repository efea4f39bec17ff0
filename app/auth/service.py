import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt

from app.config import settings


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Sign an access token for ``subject`` (a user id)."""
    now = datetime.now(timezone.utc)
    lifetime = expires_delta
    if lifetime is None:
        lifetime = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    claims = {
        "sub": subject,
        "exp": now + lifetime,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "type": "access",
    }
    return jwt.encode(claims, settings.jwt_signing_key(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    claims = jwt.decode(
        token, settings.jwt_verification_key(), algorithms=[settings.jwt_algorithm]
    )
    if claims.get("type") != "access":
        raise ValueError("Invalid token type")
    return claims
