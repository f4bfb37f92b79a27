"""
Bearer token handling

Sessions are issued elsewhere; this service only verifies the signed
token and reads its claims (``sub``, optional ``email`` / ``name``).
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import HTTPException
from jose import JWTError, jwt
import structlog

logger = structlog.get_logger(__name__)


def create_access_token(settings, subject: str, expires_delta: Optional[timedelta] = None, **claims) -> str:
    """Create a signed access token for ``subject``"""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(seconds=settings.jwt_expiration))
    to_encode = {"sub": subject, "exp": expire, "iat": datetime.now(timezone.utc), **claims}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings, token: str) -> Dict:
    """Decode and validate a bearer token, raising 401 on any failure"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("JWT decode error", error=str(e))
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=401,
            detail="Token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload
