# ===== slotwise/services/availability/availability_service.py =====
from collections import defaultdict
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple, Union
from datetime import date, datetime, timedelta
from uuid import UUID
from sqlalchemy.orm import Session
import logging

from slotwise.config.settings import get_settings
from slotwise.core.exceptions import NotFoundError, ValidationError
from slotwise.models.availability import WeeklyRule, DateOverride, ServiceWindow, ServiceOverride
from slotwise.models.booking import Booking
from slotwise.models.provider import Provider
from slotwise.models.service import Service
from slotwise.models.tenant import Tenant
from slotwise.services.availability.slot_generator import generate_slots, conflicts_with_busy
from slotwise.services.booking.booking_ledger import BookingLedger
from slotwise.services.schedule.schedule_service import ScheduleService
from slotwise.utils.intervals import TimeRange, contains_range, intersect_ranges, merge_ranges, subtract_ranges
from slotwise.utils.timezone import (
    get_timezone, utc_now, wall_time_to_utc, local_day_bounds_utc, local_range_bounds_utc,
    local_date, to_local, iter_days, parse_date, ensure_utc, day_of_week
)

logger = logging.getLogger(__name__)
settings = get_settings()

DateInput = Union[str, date]


@dataclass
class ServiceContext:
    """Everything about a service that availability depends on, loaded once per request"""
    service: Service
    tenant: Tenant
    tenant_tz: object
    providers: List[Provider]
    service_windows: Dict[int, List[ServiceWindow]] = field(default_factory=dict)

    @property
    def restricts_hours(self) -> bool:
        return bool(self.service_windows)


@dataclass
class ProviderSlot:
    start: datetime
    end: datetime
    provider: Provider
    remaining_capacity: Optional[int] = None


def _as_date(value: DateInput) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(value)


class AvailabilityService:
    """Computes bookable slots from schedules, overrides, bookings and service rules"""

    # ------------------------------------------------------------------
    # Context loading
    # ------------------------------------------------------------------

    @staticmethod
    def load_context(db: Session, service_id: UUID, tenant_id: UUID) -> ServiceContext:
        """
        Load tenant, service, assigned providers and service hours.

        Raises:
            NotFoundError: unknown or inactive tenant/service, or service of another tenant
        """
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if not tenant or not tenant.is_active:
            raise NotFoundError(f"Tenant {tenant_id} not found")

        service = db.query(Service).filter(Service.id == service_id).first()
        if not service or service.tenant_id != tenant.id or not service.is_active:
            raise NotFoundError(f"Service {service_id} not found")

        providers = sorted(
            (p for p in service.providers if p.is_active and p.tenant_id == tenant.id),
            key=lambda p: (p.display_order or 0, p.name)
        )

        windows_by_day = defaultdict(list)
        for window in ScheduleService.get_service_windows(db, service.id):
            windows_by_day[window.day_of_week].append(window)

        return ServiceContext(
            service=service,
            tenant=tenant,
            tenant_tz=get_timezone(tenant.timezone or settings.DEFAULT_TIMEZONE),
            providers=providers,
            service_windows=dict(windows_by_day),
        )

    @staticmethod
    def booking_window(ctx: ServiceContext, now: datetime) -> Tuple[datetime, datetime]:
        """
        Earliest and latest (exclusive) bookable start.

        Earliest is now plus minimum notice; latest is the tenant-local midnight
        ending the day that lies max_future_days after today.
        """
        service = ctx.service
        earliest = now + timedelta(hours=service.min_notice_hours)
        today = local_date(now, ctx.tenant_tz)
        latest, _ = local_day_bounds_utc(today + timedelta(days=service.max_future_days + 1), ctx.tenant_tz)
        return earliest, latest

    # ------------------------------------------------------------------
    # Effective availability
    # ------------------------------------------------------------------

    @staticmethod
    def service_day_windows(
            ctx: ServiceContext,
            day: date,
            service_override: Optional[ServiceOverride] = None
    ) -> Optional[List[TimeRange]]:
        """
        UTC hours in which the service may be booked on one tenant-local day.

        Weekly service hours apply first, then the date's service override.
        Returns None when nothing restricts the service that day.
        """
        tz = ctx.tenant_tz

        def to_range(start, end):
            return TimeRange(wall_time_to_utc(day, start, tz), wall_time_to_utc(day, end, tz))

        if ctx.restricts_hours:
            base = [to_range(w.start_time, w.end_time) for w in ctx.service_windows.get(day_of_week(day), [])]
        else:
            base = None

        if service_override is None:
            return base

        if service_override.has_custom_hours:
            custom = to_range(service_override.start_time, service_override.end_time)
            if service_override.is_available:
                return [custom]
            whole_day = [TimeRange(*local_day_bounds_utc(day, tz))]
            return subtract_ranges(whole_day if base is None else base, [custom])

        return base if service_override.is_available else []

    @staticmethod
    def resolve_day_windows(
            ctx: ServiceContext,
            day: date,
            weekday_rules: List[WeeklyRule],
            override: Optional[DateOverride],
            service_override: Optional[ServiceOverride] = None
    ) -> List[TimeRange]:
        """
        Effective UTC availability of one provider on one tenant-local day.

        A date override wins over the weekly rule: unavailable blocks the day,
        custom hours replace the rule, available without hours keeps the rule.
        Service hours and service overrides, when present, narrow the result.
        """
        service_ranges = AvailabilityService.service_day_windows(ctx, day, service_override)
        if service_ranges is not None and not service_ranges:
            return []

        if override is not None and not override.is_available:
            return []

        if override is not None and override.has_custom_hours:
            wall_ranges = [(override.start_time, override.end_time)]
        else:
            wall_ranges = [(r.start_time, r.end_time) for r in weekday_rules if r.is_available]

        tz = ctx.tenant_tz
        windows = [
            TimeRange(wall_time_to_utc(day, start, tz), wall_time_to_utc(day, end, tz))
            for start, end in wall_ranges
        ]

        if service_ranges is not None:
            windows = intersect_ranges(windows, service_ranges)

        return merge_ranges(windows)

    @staticmethod
    def session_remaining(
            service: Service,
            start: datetime,
            bookings: List[Booking]
    ) -> Optional[int]:
        """
        Seats left in the class session starting at ``start``.

        None when another session of the same service overlaps the candidate.
        """
        booked = 0
        for booking in bookings:
            if booking.service_id != service.id:
                continue
            if booking.start_time == start:
                booked += 1
            elif conflicts_with_busy(
                    start,
                    service.duration_minutes,
                    [TimeRange(booking.occupied_start, booking.occupied_end)],
                    service.buffer_before_minutes,
                    service.buffer_after_minutes
            ):
                return None
        return service.max_capacity - booked

    @staticmethod
    def _provider_slots(
            ctx: ServiceContext,
            provider: Provider,
            tenant_days: List[date],
            rules: List[WeeklyRule],
            overrides: Dict[date, DateOverride],
            service_overrides: Dict[date, ServiceOverride],
            bookings: List[Booking],
            earliest: datetime,
            latest: datetime
    ) -> List[ProviderSlot]:
        service = ctx.service
        class_mode = service.is_class

        rules_by_weekday = defaultdict(list)
        for rule in rules:
            rules_by_weekday[rule.day_of_week].append(rule)

        busy = BookingLedger.busy_ranges(bookings, skip_session_of_service=service.id if class_mode else None)
        duration = timedelta(minutes=service.duration_minutes)

        slots = []
        for day in tenant_days:
            windows = AvailabilityService.resolve_day_windows(
                ctx, day, rules_by_weekday.get(day_of_week(day), []), overrides.get(day), service_overrides.get(day)
            )
            if not windows:
                continue

            starts = generate_slots(
                windows,
                busy,
                service.duration_minutes,
                service.buffer_before_minutes,
                service.buffer_after_minutes,
                earliest_start=earliest,
                latest_start=latest
            )

            for start in starts:
                remaining = None
                if class_mode:
                    remaining = AvailabilityService.session_remaining(service, start, bookings)
                    if remaining is None or remaining <= 0:
                        continue
                slots.append(ProviderSlot(start, start + duration, provider, remaining))

        return slots

    @staticmethod
    def collect_provider_slots(
            db: Session,
            ctx: ServiceContext,
            providers: List[Provider],
            window_start: datetime,
            window_end: datetime,
            now: datetime
    ) -> Dict[UUID, List[ProviderSlot]]:
        """Slots per provider whose start lies in [window_start, window_end)"""
        service = ctx.service
        tz = ctx.tenant_tz

        first_day = local_date(window_start, tz)
        last_day = local_date(window_end - timedelta(microseconds=1), tz)
        tenant_days = list(iter_days(first_day, last_day))

        provider_ids = [p.id for p in providers]
        rules = ScheduleService.get_weekly_rules_for_providers(db, provider_ids)
        overrides = ScheduleService.get_overrides_for_providers(db, provider_ids, first_day, last_day)
        service_overrides = ScheduleService.get_service_overrides(db, service.id, first_day, last_day)

        span_start, _ = local_day_bounds_utc(first_day, tz)
        _, span_end = local_day_bounds_utc(last_day, tz)
        bookings = BookingLedger.active_bookings_for_providers(
            db,
            provider_ids,
            span_start - timedelta(minutes=service.buffer_before_minutes),
            span_end + timedelta(minutes=service.buffer_after_minutes)
        )

        earliest, latest = AvailabilityService.booking_window(ctx, now)

        result = {}
        for provider in providers:
            slots = AvailabilityService._provider_slots(
                ctx,
                provider,
                tenant_days,
                rules.get(provider.id, []),
                overrides.get(provider.id, {}),
                service_overrides,
                bookings.get(provider.id, []),
                earliest,
                latest
            )
            result[provider.id] = [s for s in slots if window_start <= s.start < window_end]
        return result

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @staticmethod
    def get_availability(
            db: Session,
            service_id: UUID,
            tenant_id: UUID,
            start_date: DateInput,
            end_date: DateInput,
            timezone: Optional[str] = None,
            provider_id: Optional[UUID] = None,
            now: Optional[datetime] = None
    ) -> Dict:
        """
        Bookable slots for every local day in [start_date, end_date].

        Days are interpreted in the caller's ``timezone``; schedules are
        interpreted in the tenant's zone. With ``provider_id`` the slots belong
        to that provider; without it slots of all assigned providers are merged
        by start time and carry the providers free at that time.
        """
        start_day = _as_date(start_date)
        end_day = _as_date(end_date)
        if start_day > end_day:
            raise ValidationError("start_date must be on or before end_date")
        if (end_day - start_day).days + 1 > settings.MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {settings.MAX_AVAILABILITY_RANGE_DAYS} days"
            )

        tz_name = timezone or settings.DEFAULT_TIMEZONE
        caller_tz = get_timezone(tz_name)
        now = ensure_utc(now) if now else utc_now()

        ctx = AvailabilityService.load_context(db, service_id, tenant_id)
        service = ctx.service

        providers = ctx.providers
        if provider_id is not None:
            providers = [p for p in ctx.providers if p.id == provider_id]
            if not providers:
                raise NotFoundError(f"Provider {provider_id} is not assigned to this service")

        any_provider_mode = provider_id is None
        window_start, window_end = local_range_bounds_utc(start_day, end_day, caller_tz)

        slots_by_provider = {}
        if providers:
            slots_by_provider = AvailabilityService.collect_provider_slots(
                db, ctx, providers, window_start, window_end, now
            )
        else:
            logger.info(f"Service {service.id} has no active providers; returning empty availability")

        if any_provider_mode:
            rendered = AvailabilityService._merge_any_provider(providers, slots_by_provider, caller_tz)
        else:
            rendered = [
                AvailabilityService._render_slot(slot, caller_tz)
                for slot in slots_by_provider.get(provider_id, [])
            ]

        by_day = defaultdict(list)
        for slot_start, payload in rendered:
            by_day[local_date(slot_start, caller_tz)].append(payload)

        days = []
        total = 0
        for day in iter_days(start_day, end_day):
            day_slots = by_day.get(day, [])
            total += len(day_slots)
            days.append({
                "date": day.isoformat(),
                "slots": day_slots,
                "has_availability": bool(day_slots),
            })

        logger.debug(
            f"Availability for service {service.id} {start_day}..{end_day} ({tz_name}): {total} slot(s)"
        )

        return {
            "service_id": str(service.id),
            "tenant_id": str(ctx.tenant.id),
            "timezone": tz_name,
            "date_range": {"start": start_day.isoformat(), "end": end_day.isoformat()},
            "service_config": {
                "duration_minutes": service.duration_minutes,
                "buffer_before_minutes": service.buffer_before_minutes,
                "buffer_after_minutes": service.buffer_after_minutes,
                "min_notice_hours": service.min_notice_hours,
                "max_future_days": service.max_future_days,
                "max_capacity": service.max_capacity,
            },
            "days": days,
            "total_slots": total,
            "any_provider_mode": any_provider_mode,
        }

    @staticmethod
    def _render_slot(slot: ProviderSlot, tz) -> Tuple[datetime, Dict]:
        payload = {
            "start_time": to_local(slot.start, tz).isoformat(),
            "end_time": to_local(slot.end, tz).isoformat(),
            "duration_minutes": int((slot.end - slot.start).total_seconds() // 60),
            "provider_id": str(slot.provider.id),
            "provider_name": slot.provider.name,
        }
        if slot.remaining_capacity is not None:
            payload["remaining_capacity"] = slot.remaining_capacity
        return slot.start, payload

    @staticmethod
    def _merge_any_provider(
            providers: List[Provider],
            slots_by_provider: Dict[UUID, List[ProviderSlot]],
            tz
    ) -> List[Tuple[datetime, Dict]]:
        """Merge per-provider slots by start instant, keeping provider order"""
        merged: Dict[datetime, Dict] = {}
        for provider in providers:
            for slot in slots_by_provider.get(provider.id, []):
                entry = merged.get(slot.start)
                if entry is None:
                    entry = {
                        "start_time": to_local(slot.start, tz).isoformat(),
                        "end_time": to_local(slot.end, tz).isoformat(),
                        "duration_minutes": int((slot.end - slot.start).total_seconds() // 60),
                        "available_provider_ids": [],
                    }
                    merged[slot.start] = entry
                entry["available_provider_ids"].append(str(provider.id))
                if slot.remaining_capacity is not None:
                    entry["remaining_capacity"] = entry.get("remaining_capacity", 0) + slot.remaining_capacity

        return sorted(merged.items(), key=lambda item: item[0])

    @staticmethod
    def get_summary(
            db: Session,
            service_id: UUID,
            tenant_id: UUID,
            start_date: DateInput,
            end_date: DateInput,
            timezone: Optional[str] = None,
            provider_id: Optional[UUID] = None,
            now: Optional[datetime] = None
    ) -> Dict:
        """Per-day slot counts, for calendar views that only need to grey out empty days"""
        result = AvailabilityService.get_availability(
            db, service_id, tenant_id, start_date, end_date, timezone, provider_id, now
        )
        return {
            "service_id": result["service_id"],
            "timezone": result["timezone"],
            "days": [
                {
                    "date": day["date"],
                    "slot_count": len(day["slots"]),
                    "has_availability": day["has_availability"],
                }
                for day in result["days"]
            ],
            "total_slots": result["total_slots"],
        }

    @staticmethod
    def get_providers_for_slot(
            db: Session,
            service_id: UUID,
            tenant_id: UUID,
            start_time: datetime,
            end_time: Optional[datetime] = None,
            timezone: Optional[str] = None,
            now: Optional[datetime] = None
    ) -> List[Provider]:
        """
        Providers of the service who are free for [start_time, end_time).

        A provider qualifies when the interval lies inside their effective
        availability, its buffered occupied interval clears their bookings, and
        (for class services) the session still has seats. Booking-window
        rules are left to the booking flow.
        """
        tz = get_timezone(timezone or settings.DEFAULT_TIMEZONE)
        ctx = AvailabilityService.load_context(db, service_id, tenant_id)
        service = ctx.service

        start = ensure_utc(start_time, tz)
        end = ensure_utc(end_time, tz) if end_time else start + timedelta(minutes=service.duration_minutes)
        if end <= start:
            raise ValidationError("end_time must be after start_time")

        if not ctx.providers:
            return []

        free = []
        for provider in ctx.providers:
            reason = AvailabilityService.interval_block_reason(db, ctx, provider, start, end)
            if reason is None:
                free.append(provider)
        return free

    @staticmethod
    def interval_block_reason(
            db: Session,
            ctx: ServiceContext,
            provider: Provider,
            start: datetime,
            end: datetime
    ) -> Optional[Tuple[str, str]]:
        """
        Why [start, end) cannot be booked with ``provider``, ignoring the booking window.

        Reads schedule and bookings fresh from the database.

        Returns:
            (reason, conflict_type) or None when the interval is free
        """
        service = ctx.service
        tz = ctx.tenant_tz

        first_day = local_date(start, tz)
        last_day = local_date(end - timedelta(microseconds=1), tz)

        rules = ScheduleService.get_weekly_rules_for_providers(db, [provider.id])[provider.id]
        overrides = ScheduleService.get_overrides_for_providers(db, [provider.id], first_day, last_day)[provider.id]
        service_overrides = ScheduleService.get_service_overrides(db, service.id, first_day, last_day)

        rules_by_weekday = defaultdict(list)
        for rule in rules:
            rules_by_weekday[rule.day_of_week].append(rule)

        windows = []
        for day in iter_days(first_day, last_day):
            windows.extend(AvailabilityService.resolve_day_windows(
                ctx, day, rules_by_weekday.get(day_of_week(day), []), overrides.get(day), service_overrides.get(day)
            ))

        if not contains_range(windows, start, end):
            return "outside availability", "schedule"

        duration_minutes = int((end - start).total_seconds() // 60)
        bookings = BookingLedger.active_bookings_for_providers(
            db,
            [provider.id],
            start - timedelta(minutes=service.buffer_before_minutes),
            end + timedelta(minutes=service.buffer_after_minutes)
        ).get(provider.id, [])

        if service.is_class:
            busy = BookingLedger.busy_ranges(bookings, skip_session_of_service=service.id)
        else:
            busy = BookingLedger.busy_ranges(bookings)

        if conflicts_with_busy(
                start, duration_minutes, busy, service.buffer_before_minutes, service.buffer_after_minutes
        ):
            return "conflicts with existing booking", "booking"

        if service.is_class:
            remaining = AvailabilityService.session_remaining(service, start, bookings)
            if remaining is None:
                return "conflicts with existing booking", "booking"
            if remaining <= 0:
                return "session is full", "capacity"

        return None
