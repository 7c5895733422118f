# backend/agenda/routes/coupons.py
"""
Coupon routes.

Endpoints:
    POST /api/coupons/validate - Price preview for a coupon code in a store
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends

from ..api.dependencies import get_coupon_evaluator, get_session_scope
from ..core.exceptions import DomainException
from ..schemas.coupon import CouponValidateRequest, CouponValidateResponse
from ..services.coupon_evaluator import ClientIdentity, CouponEvaluator
from ..services.tenant_scope import TenantScope
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["coupons"])


@router.post(
    "/validate",
    response_model=CouponValidateResponse,
    responses={
        400: {"description": "Coupon rejected (expired, minimum amount, usage limits)"},
        404: {"description": "Coupon not found"},
    },
)
async def validate_coupon(
    payload: CouponValidateRequest = Body(...),
    scope: TenantScope = Depends(get_session_scope),
    evaluator: CouponEvaluator = Depends(get_coupon_evaluator),
) -> CouponValidateResponse:
    """Check a coupon without redeeming it."""
    # Staff previewing for a client are not that client; count by email instead
    client_user_id = scope.user_id if scope.is_public else None
    client = ClientIdentity(user_id=client_user_id, email=payload.client_email)
    try:
        application = await asyncio.to_thread(
            evaluator.preview, scope, payload.store_id, payload.code, payload.amount, client
        )
    except DomainException as e:
        handle_domain_exception(e)

    coupon = application.coupon
    return CouponValidateResponse(
        coupon_id=coupon.id,
        code=coupon.code,
        name=coupon.name,
        type=coupon.type,
        value=coupon.value,
        original_amount=application.raw_price,
        discount=application.discount,
        final_amount=application.final_price,
        discount_percentage=application.discount_percentage,
    )
