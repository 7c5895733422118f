# backend/agenda/api/dependencies/auth.py
"""
Caller identity dependencies.

Session issuance lives outside this service: the first-party frontend's auth
layer forwards the signed-in user as ``X-User-Id``. Requests without it are
anonymous visitors of the public booking page. Integration calls present an
API key as ``Authorization: Bearer <token>``.
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from ...core.enums import ErrorCode
from ...core.exceptions import UnauthorizedException
from ...models.user import User
from ...services.api_key_service import ApiKeyService
from ...services.tenant_scope import TenantScope
from .database import get_db
from .services import get_api_key_service

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


async def get_session_scope(
    request: Request,
    user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
    db: Session = Depends(get_db),
) -> TenantScope:
    """
    Scope of a first-party caller.

    Raises:
        UnauthorizedException: The forwarded user id does not exist
    """
    if not user_id:
        return TenantScope.public()

    user = await asyncio.to_thread(db.get, User, user_id)
    if user is None:
        logger.info("Rejected unknown session user %s", user_id)
        raise UnauthorizedException("Unknown session user", code=ErrorCode.UNAUTHENTICATED)
    scope = TenantScope.for_user(user)
    request.state.user_id = user.id
    return scope


async def get_api_key_scope(
    request: Request,
    authorization: Optional[str] = Header(None),
    api_key_service: ApiKeyService = Depends(get_api_key_service),
) -> TenantScope:
    """
    Scope of an integration API call.

    Also records the key on ``request.state`` so the usage middleware can
    audit the call once the response status is known.

    Raises:
        UnauthorizedException: Missing, unknown, inactive or expired key
        RateLimitException: Hourly budget spent
    """
    token = _bearer_token(authorization)
    api_key = await asyncio.to_thread(api_key_service.authenticate, token)
    request.state.api_key_id = api_key.id
    return TenantScope.for_api_key(api_key)
