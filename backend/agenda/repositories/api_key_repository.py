# backend/agenda/repositories/api_key_repository.py
"""Integration API key lookups and usage log writes."""

from datetime import datetime
import logging
from typing import Any, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models.api_key import ApiKey, ApiUsageLog
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ApiKeyRepository(BaseRepository[ApiKey]):
    def __init__(self, db: Session):
        super().__init__(db, ApiKey)

    def get_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        return self.find_one_by(key_hash=key_hash)

    def count_requests_since(self, api_key_id: str, since: datetime) -> int:
        return int(
            self.db.query(func.count(ApiUsageLog.id))
            .filter(ApiUsageLog.api_key_id == api_key_id, ApiUsageLog.created_at >= since)
            .scalar()
            or 0
        )

    def touch_last_used(self, api_key_id: str, when: datetime) -> None:
        self.db.execute(
            update(ApiKey)
            .where(ApiKey.id == api_key_id)
            .values(last_used_at=when)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()

    def log_usage(self, **values: Any) -> ApiUsageLog:
        entry = ApiUsageLog(**values)
        self.db.add(entry)
        self.db.flush()
        return entry
