# backend/agenda/models/coupon.py
"""
Coupon and coupon usage models.

A coupon discounts the raw price of a service either by a percentage
(optionally capped) or by a fixed amount. Every successful redemption leaves
exactly one ``CouponUsage`` row tied one-to-one to the appointment it paid
for; usage rows are insert-only and drive the global and per-client limits.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .types import TimestampMixin, UTCDateTime, _now_utc, generate_ulid


class CouponType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


def normalize_code(code: str) -> str:
    return code.strip().upper()


class Coupon(TimestampMixin, Base):
    """Store-scoped discount code."""

    __tablename__ = "coupons"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    store_id = Column(String(26), ForeignKey("stores.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    min_amount = Column(Numeric(10, 2), nullable=True)
    max_discount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    user_usage_limit = Column(Integer, nullable=True)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    store = relationship("Store", back_populates="coupons")
    usages = relationship("CouponUsage", back_populates="coupon")

    __table_args__ = (
        UniqueConstraint("store_id", "code", name="uq_coupons_store_code"),
        CheckConstraint("type IN ('PERCENTAGE', 'FIXED_AMOUNT')", name="ck_coupons_type"),
        CheckConstraint("value > 0", name="ck_coupons_value_positive"),
        CheckConstraint(
            "type <> 'PERCENTAGE' OR value <= 100", name="ck_coupons_percentage_max_100"
        ),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date > start_date",
            name="ck_coupons_date_order",
        ),
        CheckConstraint("usage_limit IS NULL OR usage_limit > 0", name="ck_coupons_usage_limit"),
        CheckConstraint(
            "user_usage_limit IS NULL OR user_usage_limit > 0", name="ck_coupons_user_usage_limit"
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        if kwargs.get("code"):
            kwargs["code"] = normalize_code(kwargs["code"])
        coupon_type = kwargs.get("type")
        if isinstance(coupon_type, CouponType):
            kwargs["type"] = coupon_type.value
        value: Optional[Decimal] = kwargs.get("value")
        if kwargs.get("type") == CouponType.PERCENTAGE.value and value is not None:
            if Decimal(str(value)) > 100:
                raise ValueError("Percentage coupons cannot exceed 100")
        start, end = kwargs.get("start_date"), kwargs.get("end_date")
        if start is not None and end is not None and end <= start:
            raise ValueError("Coupon end_date must be after start_date")
        super().__init__(**kwargs)

    @property
    def coupon_type(self) -> CouponType:
        return CouponType(self.type)

    def __repr__(self) -> str:
        return f"<Coupon {self.id}: {self.code} {self.type}={self.value}>"


class CouponUsage(Base):
    """One redemption of a coupon; one-to-one with the appointment it priced."""

    __tablename__ = "coupon_usages"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    coupon_id = Column(String(26), ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    client_email = Column(String(255), nullable=True, index=True)
    appointment_id = Column(String(26), ForeignKey("appointments.id"), nullable=False, unique=True)
    discount_amount = Column(Numeric(10, 2), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=_now_utc)

    coupon = relationship("Coupon", back_populates="usages")
    appointment = relationship("Appointment", back_populates="coupon_usage")

    def __repr__(self) -> str:
        return f"<CouponUsage {self.id}: coupon={self.coupon_id} appointment={self.appointment_id}>"
