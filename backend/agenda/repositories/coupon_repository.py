# backend/agenda/repositories/coupon_repository.py
"""Coupon lookups and usage counters."""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.coupon import Coupon, CouponUsage, normalize_code
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CouponRepository(BaseRepository[Coupon]):
    def __init__(self, db: Session):
        super().__init__(db, Coupon)

    def get_by_code(self, store_id: str, code: str) -> Optional[Coupon]:
        """Codes are unique per store and compared upper-case."""
        return self.find_one_by(store_id=store_id, code=normalize_code(code))

    def count_usages(self, coupon_id: str) -> int:
        try:
            return int(
                self.db.query(func.count(CouponUsage.id))
                .filter(CouponUsage.coupon_id == coupon_id)
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self.logger.error("Error counting usages for coupon %s: %s", coupon_id, e)
            raise RepositoryException(f"Failed to count coupon usages: {e}") from e

    def count_client_usages(
        self,
        coupon_id: str,
        user_id: Optional[str] = None,
        client_email: Optional[str] = None,
    ) -> int:
        """
        Usages by one client.

        Identified by ``user_id`` when known, otherwise by lower-cased email.
        Anonymous clients without an email cannot be counted and yield 0.
        """
        query = self.db.query(func.count(CouponUsage.id)).filter(
            CouponUsage.coupon_id == coupon_id
        )
        if user_id:
            query = query.filter(CouponUsage.user_id == user_id)
        elif client_email:
            query = query.filter(func.lower(CouponUsage.client_email) == client_email.lower())
        else:
            return 0
        try:
            return int(query.scalar() or 0)
        except SQLAlchemyError as e:
            self.logger.error("Error counting client usages for coupon %s: %s", coupon_id, e)
            raise RepositoryException(f"Failed to count coupon usages: {e}") from e

    def lock_for_update(self, coupon_id: str) -> Optional[Coupon]:
        """Hold the coupon row until commit so concurrent redemptions count each other."""
        return self.lock_row(coupon_id)
