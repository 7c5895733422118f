# backend/agenda/models/service.py
"""
Service model.

A bookable offering of a store with a fixed duration and price. Services
with appointments are never deleted; they are deactivated instead, which the
``RESTRICT`` foreign key on appointments enforces.
"""

from decimal import Decimal
import logging

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..database import Base
from .types import TimestampMixin, generate_ulid

logger = logging.getLogger(__name__)


class Service(TimestampMixin, Base):
    """
    Model representing a service offered by a store.

    Attributes:
        store_id: Owning store (never changes after creation)
        duration: Length in minutes
        price: Raw price before any coupon
        active: Whether new bookings are accepted
    """

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    store_id = Column(String(26), ForeignKey("stores.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    active = Column(Boolean, nullable=False, default=True, index=True)

    store = relationship("Store", back_populates="services")
    appointments = relationship("Appointment", back_populates="service", passive_deletes="all")

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_services_duration_positive"),
        CheckConstraint("price >= 0", name="ck_services_price_non_negative"),
    )

    def deactivate(self) -> None:
        """Stop accepting bookings while keeping history intact."""
        self.active = False
        logger.info("Deactivated service %s", self.id)

    def __repr__(self) -> str:
        return f"<Service {self.id}: {self.name} ({self.duration}min)>"
