# ===== slotwise/services/booking/provider_assignment.py =====
"""
Strategies for picking a provider when a client books "any provider".

The availability resolver only reports which providers are free; choosing one
happens here, at booking time.
"""
import random
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from slotwise.core.exceptions import ValidationError
from slotwise.models.booking import Booking, BookingStatus
from slotwise.models.provider import Provider
from slotwise.utils.timezone import local_day_bounds_utc, local_date

logger = logging.getLogger(__name__)

FIRST_AVAILABLE = "first_available"
LEAST_BOOKED = "least_booked"
ROUND_ROBIN = "round_robin"
RANDOM = "random"

STRATEGIES = (FIRST_AVAILABLE, LEAST_BOOKED, ROUND_ROBIN, RANDOM)


def select_first_available(candidates: List[Provider]) -> Provider:
    return candidates[0]


def select_least_booked(candidates: List[Provider], booking_counts: Dict[UUID, int]) -> Provider:
    """Fewest bookings wins; ties go to the earlier candidate"""
    return min(candidates, key=lambda p: booking_counts.get(p.id, 0))


def select_round_robin(candidates: List[Provider], slot_index: int) -> Provider:
    return candidates[slot_index % len(candidates)]


def select_random(candidates: List[Provider]) -> Provider:
    return random.choice(candidates)


def _day_booking_counts(db: Session, provider_ids: List[UUID], start: datetime, tz) -> Dict[UUID, int]:
    day_start, day_end = local_day_bounds_utc(local_date(start, tz), tz)
    rows = db.query(Booking.provider_id, func.count(Booking.id)).filter(
        Booking.provider_id.in_(provider_ids),
        Booking.status.in_(BookingStatus.ACTIVE),
        Booking.start_time >= day_start,
        Booking.start_time < day_end
    ).group_by(Booking.provider_id).all()
    return {provider_id: count for provider_id, count in rows}


def _service_booking_total(db: Session, service_id: UUID) -> int:
    return db.query(func.count(Booking.id)).filter(Booking.service_id == service_id).scalar() or 0


def assign_provider(
        db: Session,
        candidates: List[Provider],
        service_id: UUID,
        start: datetime,
        tz,
        strategy: Optional[str] = None
) -> Optional[Provider]:
    """
    Pick one of the free providers (already in display order).

    Returns:
        the chosen provider, or None when there are no candidates
    """
    if not candidates:
        return None

    strategy = strategy or FIRST_AVAILABLE
    if strategy not in STRATEGIES:
        raise ValidationError(f"Unknown provider assignment strategy: {strategy}")

    if strategy == LEAST_BOOKED:
        counts = _day_booking_counts(db, [p.id for p in candidates], start, tz)
        chosen = select_least_booked(candidates, counts)
    elif strategy == ROUND_ROBIN:
        chosen = select_round_robin(candidates, _service_booking_total(db, service_id))
    elif strategy == RANDOM:
        chosen = select_random(candidates)
    else:
        chosen = select_first_available(candidates)

    logger.info(f"Assigned provider {chosen.id} using {strategy} from {len(candidates)} candidate(s)")
    return chosen
