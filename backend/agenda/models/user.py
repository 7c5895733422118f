# backend/agenda/models/user.py
"""
User model.

Holds only the identity needed for tenant scoping and per-client coupon
limits. Credentials and sessions are issued by the external auth layer.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, String
from sqlalchemy.orm import relationship

from ..core.enums import UserRole
from ..database import Base
from .types import TimestampMixin, generate_ulid


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)
    active = Column(Boolean, nullable=False, default=True)

    owned_stores = relationship("Store", back_populates="owner")

    __table_args__ = (
        CheckConstraint("role IN ('ADMIN', 'STORE_OWNER', 'CLIENT')", name="ck_users_role"),
    )

    def __init__(self, **kwargs):
        email = kwargs.get("email")
        if email:
            kwargs["email"] = email.strip().lower()
        super().__init__(**kwargs)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
