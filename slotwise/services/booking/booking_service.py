# ===== slotwise/services/booking/booking_service.py =====
"""
Booking lifecycle: create (validate, then atomic insert), cancel, status changes.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Union
from uuid import UUID, uuid4
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from slotwise.config.settings import get_settings
from slotwise.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from slotwise.models.booking import Booking, BookingStatus
from slotwise.models.provider import Provider
from slotwise.models.tenant import Tenant
from slotwise.models.user import User, UserRole
from slotwise.services.availability.availability_service import AvailabilityService, ServiceContext
from slotwise.services.availability.slot_validator import SlotValidator
from slotwise.services.booking.booking_ledger import BookingLedger, SESSION_FULL_MESSAGE
from slotwise.services.booking.provider_assignment import assign_provider
from slotwise.tasks import notification_tasks
from slotwise.utils.timezone import (
    get_timezone, ensure_utc, parse_instant, to_local, local_range_bounds_utc, utc_now
)

logger = logging.getLogger(__name__)
settings = get_settings()

SLOT_UNAVAILABLE_MESSAGE = "Slot no longer available"

# Allowed status changes made by admins and providers
STATUS_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.NO_SHOW, BookingStatus.CANCELLED},
}


def session_key_for(service_id: UUID, start: datetime) -> str:
    """Shared key of every seat in one class session"""
    return f"{service_id}:{ensure_utc(start).strftime('%Y-%m-%dT%H:%M:%SZ')}"


class BookingService:

    @staticmethod
    def create_booking(
            db: Session,
            service_id: UUID,
            tenant_id: UUID,
            start_time: Union[str, datetime],
            client: Dict,
            provider_id: Optional[UUID] = None,
            timezone: Optional[str] = None,
            actor: Optional[User] = None,
            now: Optional[datetime] = None
    ) -> Booking:
        """
        Book a slot.

        Args:
            client: name, email, and optionally phone and notes
            provider_id: omit to let the configured strategy pick a free provider
            actor: signed-in user the booking belongs to (guests pass None)

        Raises:
            NotFoundError: unknown tenant, service or provider
            ValidationError: malformed input
            ConflictError: slot rejected by re-validation, or lost the race at insert
        """
        tz = get_timezone(timezone or settings.DEFAULT_TIMEZONE)
        start = ensure_utc(parse_instant(start_time), tz)

        client_name = (client.get("name") or "").strip()
        client_email = (client.get("email") or "").strip()
        if not client_name or not client_email:
            raise ValidationError("Client name and email are required")

        ctx = AvailabilityService.load_context(db, service_id, tenant_id)
        service = ctx.service

        if provider_id is None:
            candidates = AvailabilityService.get_providers_for_slot(
                db, service.id, ctx.tenant.id, start, timezone=timezone
            )
            provider = assign_provider(
                db, candidates, service.id, start, ctx.tenant_tz, settings.PROVIDER_ASSIGNMENT_STRATEGY
            )
            if provider is None:
                raise ConflictError(f"{SLOT_UNAVAILABLE_MESSAGE}: no provider is free at this time")
            provider_id = provider.id
        else:
            known = db.query(Provider).filter(
                Provider.id == provider_id,
                Provider.tenant_id == ctx.tenant.id
            ).first()
            if not known:
                raise NotFoundError(f"Provider {provider_id} not found")

        check = SlotValidator.check_slot(
            db, service.id, ctx.tenant.id, provider_id, start, timezone, now=now, context=ctx
        )
        if not check.available:
            logger.info(f"Booking rejected by re-validation: {check.reason} (provider {provider_id}, {start})")
            raise ConflictError(f"{SLOT_UNAVAILABLE_MESSAGE}: {check.reason}")

        provider = next(p for p in ctx.providers if p.id == provider_id)
        end = start + timedelta(minutes=service.duration_minutes)
        booking_id = uuid4()

        if service.is_class:
            BookingService._reserve_seat(db, ctx, provider, start)
            session_key = session_key_for(service.id, start)
        else:
            session_key = str(booking_id)

        booking = Booking(
            id=booking_id,
            tenant_id=ctx.tenant.id,
            service_id=service.id,
            provider_id=provider.id,
            client_user_id=actor.id if actor else None,
            client_name=client_name,
            client_email=client_email,
            client_phone=client.get("phone"),
            client_notes=client.get("notes"),
            start_time=start,
            end_time=end,
            duration_minutes=service.duration_minutes,
            buffer_before_minutes=service.buffer_before_minutes,
            buffer_after_minutes=service.buffer_after_minutes,
            occupied_start=start - timedelta(minutes=service.buffer_before_minutes),
            occupied_end=end + timedelta(minutes=service.buffer_after_minutes),
            session_key=session_key,
            price=service.price,
            currency=service.currency,
            status=BookingStatus.CONFIRMED if ctx.tenant.auto_confirm_bookings else BookingStatus.PENDING,
        )

        booking = BookingLedger.insert(db, booking)
        logger.info(f"Created booking {booking.id} for provider {provider.id} at {start.isoformat()} ({booking.status})")

        BookingService._notify_created(booking, ctx, provider)
        return booking

    @staticmethod
    def _reserve_seat(db: Session, ctx: ServiceContext, provider: Provider, start: datetime) -> None:
        """
        Recount seats of a class session while holding the provider row lock.

        The overlap guard lets bookings of one session overlap. On PostgreSQL
        the lock serialises concurrent seat claims; SQLite ignores it and the
        ``bookings_session_full`` trigger rejects the extra seat at insert.
        """
        db.query(Provider).filter(Provider.id == provider.id).with_for_update().first()

        taken = db.query(func.count(Booking.id)).filter(
            Booking.provider_id == provider.id,
            Booking.service_id == ctx.service.id,
            Booking.start_time == start,
            Booking.status.in_(BookingStatus.ACTIVE)
        ).scalar() or 0

        if taken >= ctx.service.max_capacity:
            db.rollback()
            raise ConflictError(SESSION_FULL_MESSAGE, lost_race=True)

    @staticmethod
    def _notify_created(booking: Booking, ctx: ServiceContext, provider: Provider) -> None:
        """Fire-and-forget; a failed dispatch never fails the booking"""
        if not settings.NOTIFICATIONS_ENABLED:
            return

        try:
            start_display = to_local(booking.start_time, ctx.tenant_tz).strftime("%A, %B %d, %Y at %H:%M %Z")
            notification_tasks.send_booking_confirmation.delay(
                email=booking.client_email,
                client_name=booking.client_name,
                service_name=ctx.service.name,
                provider_name=provider.name,
                start_display=start_display,
                status=booking.status
            )
            if provider.email:
                notification_tasks.send_provider_notification.delay(
                    email=provider.email,
                    provider_name=provider.name,
                    client_name=booking.client_name,
                    service_name=ctx.service.name,
                    start_display=start_display
                )
        except Exception as exc:
            logger.error(f"Failed to dispatch notifications for booking {booking.id}: {exc}")

    @staticmethod
    def _notify_cancelled(booking: Booking, notify_client: bool = False) -> None:
        """Tell the other side: the provider when the client cancels, the client when staff cancel"""
        if not settings.NOTIFICATIONS_ENABLED:
            return

        if notify_client:
            email, recipient_name = booking.client_email, booking.client_name
        else:
            email, recipient_name = booking.provider.email, booking.provider.name

        try:
            tz = get_timezone(booking.tenant.timezone or settings.DEFAULT_TIMEZONE)
            start_display = to_local(booking.start_time, tz).strftime("%A, %B %d, %Y at %H:%M %Z")
            if email:
                notification_tasks.send_cancellation_notice.delay(
                    email=email,
                    recipient_name=recipient_name,
                    service_name=booking.service.name,
                    start_display=start_display,
                    reason=booking.cancellation_reason
                )
        except Exception as exc:
            logger.error(f"Failed to dispatch cancellation notice for booking {booking.id}: {exc}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _get_or_404(db: Session, booking_id: UUID) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def cancel_booking(
            db: Session,
            booking_id: UUID,
            actor: User,
            reason: Optional[str] = None
    ) -> Booking:
        """Cancel a booking on behalf of the client who owns it; frees the interval immediately"""
        booking = BookingService._get_or_404(db, booking_id)

        if booking.client_user_id is None or booking.client_user_id != actor.id:
            raise ForbiddenError("You can only cancel your own bookings")

        if booking.status in BookingStatus.TERMINAL:
            raise ValidationError(f"Cannot cancel a booking that is {booking.status}")

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = utc_now()
        booking.cancelled_by = actor.id
        booking.cancellation_reason = reason
        booking = BookingLedger.save(db, booking)

        logger.info(f"Booking {booking.id} cancelled by client {actor.id}")
        BookingService._notify_cancelled(booking)
        return booking

    @staticmethod
    def _can_manage(booking: Booking, actor: User) -> bool:
        if booking.tenant_id != actor.tenant_id:
            return False
        if actor.role == UserRole.ADMIN:
            return True
        return actor.role == UserRole.PROVIDER and booking.provider.user_id == actor.id

    @staticmethod
    def update_status(
            db: Session,
            booking_id: UUID,
            new_status: str,
            actor: User,
            internal_notes: Optional[str] = None
    ) -> Booking:
        """Admin or assigned-provider status change (confirm, reject, complete, ...)"""
        booking = BookingService._get_or_404(db, booking_id)
        if booking.tenant_id != actor.tenant_id:
            raise NotFoundError(f"Booking {booking_id} not found")
        if not BookingService._can_manage(booking, actor):
            raise ForbiddenError("Only an admin or the assigned provider can change this booking")

        allowed = STATUS_TRANSITIONS.get(booking.status, set())
        if new_status not in allowed:
            raise ValidationError(f"Cannot change booking status from {booking.status} to {new_status}")

        booking.status = new_status
        if internal_notes is not None:
            booking.internal_notes = internal_notes
        if new_status == BookingStatus.CANCELLED:
            booking.cancelled_at = utc_now()
            booking.cancelled_by = actor.id

        booking = BookingLedger.save(db, booking)
        logger.info(f"Booking {booking.id} moved to {new_status} by {actor.id}")

        if new_status == BookingStatus.CANCELLED:
            BookingService._notify_cancelled(booking, notify_client=True)
        return booking

    @staticmethod
    def get_booking(db: Session, booking_id: UUID, actor: User) -> Booking:
        booking = BookingService._get_or_404(db, booking_id)
        if booking.client_user_id == actor.id:
            return booking
        if booking.tenant_id != actor.tenant_id:
            raise NotFoundError(f"Booking {booking_id} not found")
        if not BookingService._can_manage(booking, actor):
            raise ForbiddenError("You do not have access to this booking")
        return booking

    @staticmethod
    def list_client_bookings(db: Session, actor: User, upcoming_only: bool = False) -> List[Booking]:
        query = db.query(Booking).filter(Booking.client_user_id == actor.id)
        if upcoming_only:
            query = query.filter(
                Booking.start_time >= utc_now(),
                Booking.status.in_(BookingStatus.ACTIVE)
            )
        return query.order_by(Booking.start_time).all()

    @staticmethod
    def list_tenant_bookings(
            db: Session,
            actor: User,
            status: Optional[str] = None,
            provider_id: Optional[UUID] = None,
            service_id: Optional[UUID] = None,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            skip: int = 0,
            limit: int = 50
    ) -> Dict:
        """Dashboard listing; providers only ever see their own bookings"""
        if actor.role == UserRole.CLIENT:
            raise ForbiddenError("Dashboard access requires an admin or provider account")

        query = db.query(Booking).filter(Booking.tenant_id == actor.tenant_id)

        if actor.role == UserRole.PROVIDER:
            own = db.query(Provider).filter(Provider.user_id == actor.id).first()
            if not own:
                raise NotFoundError("Provider profile not found")
            query = query.filter(Booking.provider_id == own.id)
        elif provider_id:
            query = query.filter(Booking.provider_id == provider_id)

        if status:
            query = query.filter(Booking.status == status)
        if service_id:
            query = query.filter(Booking.service_id == service_id)

        if start_date or end_date:
            tenant_tz = get_timezone(actor_tenant_timezone(db, actor))
            range_start, range_end = local_range_bounds_utc(
                start_date or end_date, end_date or start_date, tenant_tz
            )
            if start_date:
                query = query.filter(Booking.start_time >= range_start)
            if end_date:
                query = query.filter(Booking.start_time < range_end)

        total = query.count()
        bookings = query.order_by(Booking.start_time).offset(skip).limit(limit).all()

        return {
            "total": total,
            "skip": skip,
            "limit": limit,
            "bookings": [b.to_dict() for b in bookings],
        }


def actor_tenant_timezone(db: Session, actor: User) -> str:
    tenant = db.query(Tenant).filter(Tenant.id == actor.tenant_id).first()
    return tenant.timezone if tenant and tenant.timezone else settings.DEFAULT_TIMEZONE
