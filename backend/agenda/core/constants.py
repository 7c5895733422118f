"""Application-wide constants for the Agenda booking engine."""

from __future__ import annotations

BRAND_NAME = "Agenda"

API_TITLE = f"{BRAND_NAME} Booking API"
API_DESCRIPTION = "Appointment booking and conflict engine for service businesses"
API_VERSION = "1.0.0"

# Service duration constraints (minutes)
MIN_SERVICE_DURATION = 5
MAX_SERVICE_DURATION = 480

# Query limits
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Weekday keys used by Store.working_hours, indexed like datetime.weekday()
WEEKDAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# Statuses that hold a slot
ACTIVE_APPOINTMENT_STATUSES = ("PENDING", "CONFIRMED")

API_KEY_PREFIX_LENGTH = 12
API_KEY_TOKEN_PREFIX = "sk_"
API_V1_PREFIX = "/api/v1"
