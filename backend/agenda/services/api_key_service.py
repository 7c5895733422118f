# backend/agenda/services/api_key_service.py
"""
Integration API key authentication, rate limiting and usage audit.

Bearer tokens are never stored; keys are looked up by the SHA-256 hex digest
of the presented token. Each key may make ``rate_limit`` requests per rolling
hour, counted from its usage log.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import hashlib
import logging
import secrets
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import API_KEY_PREFIX_LENGTH, API_KEY_TOKEN_PREFIX
from ..core.enums import ErrorCode
from ..core.exceptions import RateLimitException, UnauthorizedException, ValidationException
from ..core.timezone_utils import Clock
from ..models.api_key import ApiKey, ApiUsageLog
from ..repositories import RepositoryFactory
from .base import BaseService
from .tenant_scope import CapabilitySet

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW = timedelta(hours=1)


def hash_api_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedApiKey:
    """A newly created key; ``token`` is only available at creation time."""

    api_key: ApiKey
    token: str


class ApiKeyService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_api_key_repository(db)

    @BaseService.measure_operation("authenticate_api_key")
    def authenticate(self, token: Optional[str]) -> ApiKey:
        """
        Resolve a bearer token to an active, unexpired key within its rate limit.

        Raises:
            UnauthorizedException: Missing, unknown, inactive or expired key
            RateLimitException: Hourly request budget spent
        """
        if not token:
            raise UnauthorizedException("API key is required", code=ErrorCode.INVALID_API_KEY)

        api_key = self.repository.get_by_hash(hash_api_key(token))
        now = self.now()
        if api_key is None or not api_key.active:
            raise UnauthorizedException(
                "Invalid or expired API key", code=ErrorCode.INVALID_API_KEY
            )
        if api_key.expires_at is not None and api_key.expires_at <= now:
            raise UnauthorizedException(
                "Invalid or expired API key", code=ErrorCode.INVALID_API_KEY
            )

        limit = api_key.rate_limit or settings.default_api_rate_limit
        recent = self.repository.count_requests_since(api_key.id, now - RATE_LIMIT_WINDOW)
        if recent >= limit:
            self.logger.warning("API key %s exceeded %d requests/hour", api_key.key_prefix, limit)
            raise RateLimitException(
                "Rate limit exceeded",
                code=ErrorCode.RATE_LIMIT_EXCEEDED,
                details={"limit": limit, "window_seconds": int(RATE_LIMIT_WINDOW.total_seconds())},
            )

        with self.transaction():
            self.repository.touch_last_used(api_key.id, now)
        return api_key

    def record_usage(
        self,
        api_key_id: str,
        *,
        method: str,
        path: str,
        status_code: int,
        duration_ms: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ApiUsageLog:
        """Append one audit row; committed on its own."""
        with self.transaction():
            entry = self.repository.log_usage(
                api_key_id=api_key_id,
                method=method.upper(),
                path=path[:500],
                status_code=status_code,
                duration_ms=max(duration_ms, 0),
                ip_address=ip_address,
                user_agent=(user_agent or "")[:500] or None,
                created_at=self.now(),
            )
        return entry

    @BaseService.measure_operation("issue_api_key")
    def issue(
        self,
        name: str,
        permissions: Dict[str, Any],
        *,
        company_id: Optional[str] = None,
        store_id: Optional[str] = None,
        auto_confirm: bool = False,
        rate_limit: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        created_by_id: Optional[str] = None,
    ) -> IssuedApiKey:
        """Create a key and return its one-time clear token."""
        if company_id and store_id:
            raise ValidationException("An API key is bound to a company or a store, not both")
        if not len(CapabilitySet.parse(permissions)):
            raise ValidationException("API key permissions grant nothing")

        token = f"{API_KEY_TOKEN_PREFIX}{secrets.token_hex(32)}"
        with self.transaction():
            api_key = self.repository.create(
                name=name,
                key_hash=hash_api_key(token),
                key_prefix=token[:API_KEY_PREFIX_LENGTH],
                permissions=permissions,
                company_id=company_id,
                store_id=store_id,
                auto_confirm=auto_confirm,
                rate_limit=rate_limit,
                expires_at=expires_at,
                created_by_id=created_by_id,
            )
        self.log_operation("issue_api_key", api_key_id=api_key.id, key_prefix=api_key.key_prefix)
        return IssuedApiKey(api_key=api_key, token=token)
