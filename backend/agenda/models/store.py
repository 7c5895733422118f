# backend/agenda/models/store.py
"""
Store model.

A store owns the calendar policy every booking is validated against: a
weekly working-hours table in the configured store timezone plus the
minimum and maximum booking lead times.
"""

from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from ..core.working_hours import WorkingHours
from ..database import Base
from .types import TimestampMixin, generate_ulid


class Store(TimestampMixin, Base):
    """
    Bookable business location.

    Attributes:
        working_hours: ``{"monday": {"start": "08:00", "end": "18:00", "active": true}, ...}``
        min_advance_hours: Minimum lead time between now and an appointment start
        advance_booking_days: Furthest day ahead an appointment may start
        company_id: Optional multi-store tenant
        owner_id: User allowed to manage this store
    """

    __tablename__ = "stores"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(200), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    phone = Column(String(32), nullable=True)
    working_hours = Column(JSONB().with_variant(JSON(), "sqlite"), nullable=False, default=dict)
    min_advance_hours = Column(Integer, nullable=False, default=0)
    advance_booking_days = Column(Integer, nullable=False, default=30)
    company_id = Column(String(26), ForeignKey("companies.id"), nullable=True, index=True)
    owner_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    active = Column(Boolean, nullable=False, default=True)

    company = relationship("Company", back_populates="stores")
    owner = relationship("User", back_populates="owned_stores")
    services = relationship("Service", back_populates="store")
    coupons = relationship("Coupon", back_populates="store")

    __table_args__ = (
        CheckConstraint("min_advance_hours >= 0", name="ck_stores_min_advance_non_negative"),
        CheckConstraint("advance_booking_days >= 1", name="ck_stores_advance_days_positive"),
    )

    def __init__(self, **kwargs: Any) -> None:
        hours = kwargs.get("working_hours")
        if hours is not None:
            # Rejects unknown weekdays and inverted windows up front
            kwargs["working_hours"] = WorkingHours.parse(hours).to_dict()
        super().__init__(**kwargs)

    @property
    def calendar(self) -> WorkingHours:
        return WorkingHours.parse(self.working_hours)

    def __repr__(self) -> str:
        return f"<Store {self.id}: {self.slug}>"
