# ===== slotwise/services/availability/slot_validator.py =====
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID
from sqlalchemy.orm import Session
import logging

from slotwise.config.settings import get_settings
from slotwise.services.availability.availability_service import AvailabilityService, ServiceContext
from slotwise.utils.timezone import get_timezone, ensure_utc, utc_now, parse_instant

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class SlotCheckResult:
    available: bool
    reason: Optional[str] = None
    conflict_type: Optional[str] = None  # provider, window, schedule, booking, capacity

    def to_dict(self):
        result = {"available": self.available}
        if self.reason:
            result["reason"] = self.reason
            result["conflict_type"] = self.conflict_type
        return result


class SlotValidator:
    """
    Re-validates a single requested slot right before booking.

    Advisory only: the database overlap guard is what actually prevents
    double booking.
    """

    @staticmethod
    def check_slot(
            db: Session,
            service_id: UUID,
            tenant_id: UUID,
            provider_id: UUID,
            start_time: Union[str, datetime],
            timezone: Optional[str] = None,
            now: Optional[datetime] = None,
            context: Optional[ServiceContext] = None
    ) -> SlotCheckResult:
        """
        Check whether ``provider_id`` can take the service at ``start_time``.

        Naive start times are read in ``timezone``. Rules are checked in order
        and the first failure is reported.
        """
        tz = get_timezone(timezone or settings.DEFAULT_TIMEZONE)
        start = ensure_utc(parse_instant(start_time), tz)
        now = ensure_utc(now) if now else utc_now()

        ctx = context or AvailabilityService.load_context(db, service_id, tenant_id)
        service = ctx.service

        provider = next((p for p in ctx.providers if p.id == provider_id), None)
        if provider is None:
            return SlotCheckResult(False, "provider not assigned to service", "provider")

        earliest, latest = AvailabilityService.booking_window(ctx, now)
        if start < earliest or start >= latest:
            return SlotCheckResult(False, "outside booking window", "window")

        end = start + timedelta(minutes=service.duration_minutes)
        blocked = AvailabilityService.interval_block_reason(db, ctx, provider, start, end)
        if blocked:
            reason, conflict_type = blocked
            logger.debug(f"Slot {start.isoformat()} for provider {provider_id} unavailable: {reason}")
            return SlotCheckResult(False, reason, conflict_type)

        return SlotCheckResult(True)
