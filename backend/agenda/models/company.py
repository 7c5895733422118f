# backend/agenda/models/company.py
"""Company model: groups the stores of a multi-store tenant."""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from ..database import Base
from .types import TimestampMixin, generate_ulid


class Company(TimestampMixin, Base):
    __tablename__ = "companies"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(200), nullable=False)

    stores = relationship("Store", back_populates="company")

    def __repr__(self) -> str:
        return f"<Company {self.id}: {self.name}>"
