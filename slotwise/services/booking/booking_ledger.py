# ===== slotwise/services/booking/booking_ledger.py =====
"""
Persistence of bookings and the busy-interval queries that feed availability.

The overlap guard lives in the database (``bookings_no_overlap``); this module
only translates its violation into a CONFLICT.
"""
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from slotwise.core.exceptions import ConflictError, InternalError
from slotwise.models.booking import Booking, BookingStatus, OVERLAP_CONSTRAINT_NAME, SESSION_FULL_GUARD_NAME
from slotwise.utils.intervals import TimeRange

logger = logging.getLogger(__name__)

LOST_RACE_MESSAGE = "Time slot was just booked by someone else"
SESSION_FULL_MESSAGE = "Slot no longer available: session is full"

# SQLSTATE exclusion_violation
PG_EXCLUSION_VIOLATION = "23P01"


def is_overlap_violation(exc: IntegrityError) -> bool:
    """True if the integrity error came from the booking overlap guard"""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == PG_EXCLUSION_VIOLATION:
        return True

    diag = getattr(orig, "diag", None)
    if diag is not None and getattr(diag, "constraint_name", None) == OVERLAP_CONSTRAINT_NAME:
        return True

    return OVERLAP_CONSTRAINT_NAME in str(orig if orig is not None else exc)


def is_session_full_violation(exc: IntegrityError) -> bool:
    """True if the integrity error came from the class seat limit"""
    orig = getattr(exc, "orig", None)
    return SESSION_FULL_GUARD_NAME in str(orig if orig is not None else exc)


class BookingLedger:

    @staticmethod
    def active_bookings_for_providers(
            db: Session,
            provider_ids: Iterable[UUID],
            window_start: datetime,
            window_end: datetime
    ) -> Dict[UUID, List[Booking]]:
        """Active bookings whose occupied interval touches [window_start, window_end)"""
        provider_ids = list(provider_ids)
        by_provider = defaultdict(list)
        if not provider_ids:
            return by_provider

        bookings = db.query(Booking).filter(
            Booking.provider_id.in_(provider_ids),
            Booking.status.in_(BookingStatus.ACTIVE),
            Booking.occupied_start < window_end,
            Booking.occupied_end > window_start
        ).order_by(Booking.occupied_start).all()

        for booking in bookings:
            by_provider[booking.provider_id].append(booking)
        return by_provider

    @staticmethod
    def busy_ranges(bookings: Iterable[Booking], skip_session_of_service: Optional[UUID] = None) -> List[TimeRange]:
        """
        Occupied intervals of the given bookings.

        Bookings of ``skip_session_of_service`` are left out so that class
        sessions can be evaluated by capacity instead.
        """
        return [
            TimeRange(b.occupied_start, b.occupied_end)
            for b in bookings
            if skip_session_of_service is None or b.service_id != skip_session_of_service
        ]

    @staticmethod
    def insert(db: Session, booking: Booking) -> Booking:
        """
        Insert and commit a booking.

        Raises:
            ConflictError: the overlap guard rejected the row (lost race)
            InternalError: any other storage failure
        """
        db.add(booking)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if is_overlap_violation(exc):
                logger.info(
                    f"Overlap guard rejected booking for provider {booking.provider_id} at {booking.start_time}"
                )
                raise ConflictError(LOST_RACE_MESSAGE, lost_race=True)
            if is_session_full_violation(exc):
                logger.info(f"Seat limit rejected booking for session {booking.session_key}")
                raise ConflictError(SESSION_FULL_MESSAGE, lost_race=True)
            logger.error(f"Integrity error inserting booking: {exc}")
            raise InternalError("Failed to create booking")
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Database error inserting booking: {exc}")
            raise InternalError("Failed to create booking")

        db.refresh(booking)
        return booking

    @staticmethod
    def save(db: Session, booking: Booking) -> Booking:
        """Commit changes to an existing booking (status transitions)"""
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if is_overlap_violation(exc):
                raise ConflictError(LOST_RACE_MESSAGE, lost_race=True)
            if is_session_full_violation(exc):
                raise ConflictError(SESSION_FULL_MESSAGE, lost_race=True)
            logger.error(f"Integrity error updating booking {booking.id}: {exc}")
            raise InternalError("Failed to update booking")
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Database error updating booking {booking.id}: {exc}")
            raise InternalError("Failed to update booking")

        db.refresh(booking)
        return booking
