# backend/agenda/schemas/coupon.py
"""Coupon preview schemas (``POST /api/coupons/validate``)."""

from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class CouponValidateRequest(StrictRequestModel):
    code: str = Field(..., min_length=1, max_length=50)
    store_id: str = Field(..., min_length=1, max_length=26)
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    client_email: Optional[EmailStr] = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v: str) -> str:
        return v.upper()


class CouponValidateResponse(StrictModel):
    valid: bool = True
    coupon_id: str
    code: str
    name: str
    type: str
    value: Decimal
    original_amount: Decimal
    discount: Decimal
    final_amount: Decimal
    discount_percentage: Decimal
