# userhub/utils/auth_utils.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from userhub.core.config import settings
from userhub.core.error_messages import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)


def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
    issued_at: Optional[datetime] = None,
) -> str:
    """Sign a bearer token for `user_id`, valid for one hour unless told otherwise."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    issued_at = issued_at or datetime.now(timezone.utc)
    to_encode = {
        "userId": str(user_id),
        "iat": issued_at,
        "exp": issued_at + expires_delta,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Return the token claims or raise `InvalidTokenError` / `TokenExpiredError`."""
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info("Rejected invalid token: %s", e)
        raise InvalidTokenError("Invalid token")

    if decoded.get("type") != expected_type:
        raise InvalidTokenError(f"Invalid token type: expected {expected_type}")
    if not decoded.get("userId"):
        raise InvalidTokenError("Token carries no user id")
    return decoded
