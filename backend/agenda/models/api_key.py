# backend/agenda/models/api_key.py
"""
Integration API key models.

Keys are stored as a SHA-256 hash of the bearer token; only a short prefix is
kept in clear text for display. A key is bound to a company, a single store,
or neither (platform-wide), never both.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from ..database import Base
from .types import TimestampMixin, UTCDateTime, _now_utc, generate_ulid


class ApiKey(TimestampMixin, Base):
    __tablename__ = "api_keys"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(200), nullable=False)
    key_hash = Column(String(64), nullable=False, unique=True, index=True)
    key_prefix = Column(String(16), nullable=False)
    permissions = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"), nullable=False, default=dict
    )
    company_id = Column(String(26), ForeignKey("companies.id"), nullable=True, index=True)
    store_id = Column(String(26), ForeignKey("stores.id"), nullable=True, index=True)
    auto_confirm = Column(Boolean, nullable=False, default=False)
    rate_limit = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(UTCDateTime(), nullable=True)
    last_used_at = Column(UTCDateTime(), nullable=True)
    created_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    usage_logs = relationship("ApiUsageLog", back_populates="api_key")

    __table_args__ = (
        CheckConstraint(
            "company_id IS NULL OR store_id IS NULL", name="ck_api_keys_single_binding"
        ),
        CheckConstraint("rate_limit IS NULL OR rate_limit > 0", name="ck_api_keys_rate_limit"),
    )

    def __repr__(self) -> str:
        return f"<ApiKey {self.id}: {self.key_prefix}...>"


class ApiUsageLog(Base):
    """Audit row for one integration API request."""

    __tablename__ = "api_usage_logs"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    api_key_id = Column(String(26), ForeignKey("api_keys.id"), nullable=False, index=True)
    method = Column(String(10), nullable=False)
    path = Column(String(500), nullable=False)
    status_code = Column(Integer, nullable=False)
    duration_ms = Column(Integer, nullable=False, default=0)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc, index=True)

    api_key = relationship("ApiKey", back_populates="usage_logs")
