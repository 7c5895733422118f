# backend/agenda/schemas/service.py
from decimal import Decimal
from typing import List, Optional

from ._strict_base import StrictModel


class ServiceResponse(StrictModel):
    id: str
    store_id: str
    name: str
    description: Optional[str] = None
    duration: int
    price: Decimal
    active: bool


class ServiceListResponse(StrictModel):
    items: List[ServiceResponse]
    total: int
