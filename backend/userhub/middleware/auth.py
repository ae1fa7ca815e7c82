# userhub/middleware/auth.py
import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from userhub.core.error_messages import TokenError, UnauthorizedError
from userhub.crud.user_crud import UserStore
from userhub.db.database import get_user_store
from userhub.utils.auth_utils import decode_token

logger = logging.getLogger(__name__)

# auto_error=False: a missing or non-Bearer header is ours to reject with 401
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: UserStore = Depends(get_user_store),
) -> dict:
    """Resolve the bearer token to a stored user and attach it to `request.state.user`.

    Only the signature, expiry and the user's existence are checked; the
    user's stored `token` field is not compared (logout is a soft logout).
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    try:
        payload = decode_token(credentials.credentials)
    except TokenError as e:
        logger.info("Bearer token rejected: %s", e)
        raise UnauthorizedError()

    user = await store.find_by_id(payload["userId"])
    if not user:
        raise UnauthorizedError()

    request.state.user = user
    return user
