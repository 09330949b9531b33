# slotwise/models/__init__.py
from .base import Base, UTCDateTime
from .tenant import Tenant
from .user import User, UserRole
from .provider import Provider, service_providers
from .service import Service, ServiceType
from .availability import WeeklyRule, DateOverride, ServiceWindow, ServiceOverride
from .booking import Booking, BookingStatus, OVERLAP_CONSTRAINT_NAME

__all__ = [
    "Base",
    "UTCDateTime",
    "Tenant",
    "User",
    "UserRole",
    "Provider",
    "service_providers",
    "Service",
    "ServiceType",
    "WeeklyRule",
    "DateOverride",
    "ServiceWindow",
    "ServiceOverride",
    "Booking",
    "BookingStatus",
    "OVERLAP_CONSTRAINT_NAME",
]
