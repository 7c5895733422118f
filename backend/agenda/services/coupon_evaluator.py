# backend/agenda/services/coupon_evaluator.py
"""
Coupon Evaluator for the Agenda booking engine.

Checks a coupon against a raw price and a client, computes the discount, and
stages (but does not save) the ``CouponUsage`` row. The appointment service
commits that row together with the appointment it pays for.

Rule order, first failure wins:
    1. active and inside [start_date, end_date] at the booking instant
    2. raw price >= min_amount
    3. global usage below usage_limit
    4. per-client usage below user_usage_limit
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.enums import ApiAction, ApiResource, ErrorCode
from ..core.exceptions import CouponRejectedException, NotFoundException
from ..core.timezone_utils import Clock, ensure_utc
from ..models.coupon import Coupon, CouponType, CouponUsage
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.coupon_repository import CouponRepository
from .base import BaseService
from .tenant_scope import TenantScope

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Amount = Union[Decimal, int, float, str]


def to_money(value: Optional[Amount]) -> Decimal:
    """Exact decimal rounded half-up to cents. Floats go through ``str`` first."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ClientIdentity:
    """Who is redeeming; per-client limits count by user id, else by email."""

    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def normalized_email(self) -> Optional[str]:
        return self.email.strip().lower() if self.email else None


@dataclass(frozen=True)
class CouponApplication:
    coupon: Coupon
    raw_price: Decimal
    discount: Decimal
    final_price: Decimal
    usage: Optional[CouponUsage] = None

    @property
    def discount_percentage(self) -> Decimal:
        if self.raw_price == 0:
            return ZERO
        return to_money(self.discount * 100 / self.raw_price)


class CouponEvaluator(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        coupon_repository: Optional[CouponRepository] = None,
    ):
        super().__init__(db, clock)
        self.coupon_repository = coupon_repository or RepositoryFactory.create_coupon_repository(db)

    @BaseService.measure_operation("apply_coupon")
    def apply(
        self,
        coupon: Coupon,
        raw_price: Amount,
        client: ClientIdentity,
        booking_instant: Optional[datetime] = None,
    ) -> CouponApplication:
        """
        Price ``raw_price`` with ``coupon`` and stage the usage row.

        ``booking_instant`` is when the booking is made (defaults to now), not
        when the appointment takes place.

        Raises:
            CouponRejectedException: With the code of the first failing rule
        """
        application = self._evaluate(coupon, raw_price, client, booking_instant)
        usage = CouponUsage(
            coupon_id=coupon.id,
            user_id=client.user_id,
            client_email=client.normalized_email,
            discount_amount=application.discount,
        )
        prometheus_metrics.record_coupon_outcome("applied")
        return CouponApplication(
            coupon=coupon,
            raw_price=application.raw_price,
            discount=application.discount,
            final_price=application.final_price,
            usage=usage,
        )

    @BaseService.measure_operation("preview_coupon")
    def preview(
        self,
        scope: TenantScope,
        store_id: str,
        code: str,
        amount: Amount,
        client: ClientIdentity,
    ) -> CouponApplication:
        """Resolve ``code`` inside a visible store and return the price breakdown."""
        scope.require(ApiResource.COUPONS, ApiAction.READ)
        coupon = self.resolve_code(scope, store_id, code)
        return self._evaluate(coupon, amount, client, None)

    def resolve_code(self, scope: TenantScope, store_id: str, code: str) -> Coupon:
        store = RepositoryFactory.create_store_repository(self.db).get_in_scope(scope, store_id)
        coupon = self.coupon_repository.get_by_code(store_id, code) if store else None
        if coupon is None:
            prometheus_metrics.record_coupon_outcome(ErrorCode.COUPON_NOT_FOUND.value)
            raise NotFoundException(
                "Coupon not found",
                code=ErrorCode.COUPON_NOT_FOUND,
                details={"code": code.strip().upper()},
            )
        return coupon

    def _evaluate(
        self,
        coupon: Coupon,
        raw_price: Amount,
        client: ClientIdentity,
        booking_instant: Optional[datetime],
    ) -> CouponApplication:
        price = to_money(raw_price)
        instant = ensure_utc(booking_instant) if booking_instant else self.now()

        if not coupon.active:
            self._reject(ErrorCode.COUPON_EXPIRED, "Coupon is no longer active", coupon)
        if coupon.start_date is not None and instant < coupon.start_date:
            self._reject(
                ErrorCode.COUPON_NOT_YET_ACTIVE,
                "Coupon is not valid yet",
                coupon,
                start_date=coupon.start_date.isoformat(),
            )
        if coupon.end_date is not None and instant > coupon.end_date:
            self._reject(
                ErrorCode.COUPON_EXPIRED,
                "Coupon has expired",
                coupon,
                end_date=coupon.end_date.isoformat(),
            )

        if coupon.min_amount is not None and price < to_money(coupon.min_amount):
            self._reject(
                ErrorCode.MIN_AMOUNT_NOT_MET,
                f"Minimum amount for this coupon is {to_money(coupon.min_amount)}",
                coupon,
                min_amount=str(to_money(coupon.min_amount)),
            )

        if coupon.usage_limit is not None:
            used = self.coupon_repository.count_usages(coupon.id)
            if used >= coupon.usage_limit:
                self._reject(
                    ErrorCode.USAGE_LIMIT_REACHED,
                    "Coupon usage limit reached",
                    coupon,
                    usage_limit=coupon.usage_limit,
                )

        if coupon.user_usage_limit is not None:
            used_by_client = self.coupon_repository.count_client_usages(
                coupon.id, user_id=client.user_id, client_email=client.normalized_email
            )
            if used_by_client >= coupon.user_usage_limit:
                self._reject(
                    ErrorCode.USER_USAGE_LIMIT_REACHED,
                    "You have reached the usage limit for this coupon",
                    coupon,
                    user_usage_limit=coupon.user_usage_limit,
                )

        discount = self.compute_discount(coupon, price)
        final_price = max(price - discount, ZERO)
        return CouponApplication(
            coupon=coupon, raw_price=price, discount=discount, final_price=final_price
        )

    @staticmethod
    def compute_discount(coupon: Coupon, price: Decimal) -> Decimal:
        value = Decimal(str(coupon.value))
        if coupon.coupon_type == CouponType.PERCENTAGE:
            discount = to_money(price * value / Decimal(100))
            if coupon.max_discount is not None:
                discount = min(discount, to_money(coupon.max_discount))
        else:
            discount = to_money(value)
        return min(discount, price)

    def _reject(self, code: ErrorCode, message: str, coupon: Coupon, **details: object) -> None:
        prometheus_metrics.record_coupon_outcome(code.value)
        self.logger.info("Coupon %s rejected: %s", coupon.code, code.value)
        raise CouponRejectedException(
            message, code=code, details={"coupon_code": coupon.code, **details}
        )
