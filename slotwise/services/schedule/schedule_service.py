# ===== slotwise/services/schedule/schedule_service.py =====
from typing import List, Dict, Optional, Iterable, Union
from datetime import date, time
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from slotwise.core.exceptions import NotFoundError, ValidationError, ForbiddenError
from slotwise.models.availability import WeeklyRule, DateOverride, ServiceWindow, ServiceOverride
from slotwise.models.provider import Provider
from slotwise.models.service import Service
from slotwise.models.user import User, UserRole
from slotwise.utils.timezone import parse_wall_time

logger = logging.getLogger(__name__)

TimeInput = Union[str, time, None]


def _coerce_time(value: TimeInput) -> Optional[time]:
    if value is None or isinstance(value, time):
        return value
    return parse_wall_time(value)


def _validate_day_of_week(day_of_week: int) -> None:
    if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")


def _validate_range(start_time: time, end_time: time) -> None:
    if start_time >= end_time:
        raise ValidationError(
            f"Start time {start_time.strftime('%H:%M')} must be before end time {end_time.strftime('%H:%M')}"
        )


def _upsert_by_date(db: Session, model, owner_column: str, owner_id: UUID, override_date: date, values: Dict):
    """Insert or update the single override row of an owner on a date"""
    owner = getattr(model, owner_column)

    def _existing():
        return db.query(model).filter(owner == owner_id, model.override_date == override_date).first()

    override = _existing()
    if override:
        for key, value in values.items():
            setattr(override, key, value)
        db.commit()
    else:
        override = model(override_date=override_date, **{owner_column: owner_id}, **values)
        db.add(override)
        try:
            db.commit()
        except IntegrityError:
            # Concurrent upsert created the row first
            db.rollback()
            override = _existing()
            for key, value in values.items():
                setattr(override, key, value)
            db.commit()

    db.refresh(override)
    return override


class ScheduleService:
    """Storage and retrieval of provider weekly rules, date overrides and service windows"""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get_weekly_rules(db: Session, provider_id: UUID) -> List[WeeklyRule]:
        return db.query(WeeklyRule).filter(
            WeeklyRule.provider_id == provider_id
        ).order_by(WeeklyRule.day_of_week, WeeklyRule.start_time).all()

    @staticmethod
    def get_weekly_rules_for_providers(db: Session, provider_ids: Iterable[UUID]) -> Dict[UUID, List[WeeklyRule]]:
        provider_ids = list(provider_ids)
        rules_by_provider = {pid: [] for pid in provider_ids}
        if not provider_ids:
            return rules_by_provider

        rules = db.query(WeeklyRule).filter(
            WeeklyRule.provider_id.in_(provider_ids),
            WeeklyRule.is_available == True  # noqa: E712
        ).order_by(WeeklyRule.day_of_week, WeeklyRule.start_time).all()

        for rule in rules:
            rules_by_provider[rule.provider_id].append(rule)
        return rules_by_provider

    @staticmethod
    def get_overrides(
            db: Session,
            provider_id: UUID,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> List[DateOverride]:
        query = db.query(DateOverride).filter(DateOverride.provider_id == provider_id)
        if start_date:
            query = query.filter(DateOverride.override_date >= start_date)
        if end_date:
            query = query.filter(DateOverride.override_date <= end_date)
        return query.order_by(DateOverride.override_date).all()

    @staticmethod
    def get_overrides_for_providers(
            db: Session,
            provider_ids: Iterable[UUID],
            start_date: date,
            end_date: date
    ) -> Dict[UUID, Dict[date, DateOverride]]:
        """Overrides keyed by provider, then by date"""
        provider_ids = list(provider_ids)
        overrides_by_provider = {pid: {} for pid in provider_ids}
        if not provider_ids:
            return overrides_by_provider

        overrides = db.query(DateOverride).filter(
            DateOverride.provider_id.in_(provider_ids),
            DateOverride.override_date.between(start_date, end_date)
        ).all()

        for override in overrides:
            overrides_by_provider[override.provider_id][override.override_date] = override
        return overrides_by_provider

    @staticmethod
    def get_service_windows(db: Session, service_id: UUID) -> List[ServiceWindow]:
        return db.query(ServiceWindow).filter(
            ServiceWindow.service_id == service_id
        ).order_by(ServiceWindow.day_of_week, ServiceWindow.start_time).all()

    @staticmethod
    def get_service_overrides(
            db: Session,
            service_id: UUID,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None
    ) -> Dict[date, ServiceOverride]:
        query = db.query(ServiceOverride).filter(ServiceOverride.service_id == service_id)
        if start_date:
            query = query.filter(ServiceOverride.override_date >= start_date)
        if end_date:
            query = query.filter(ServiceOverride.override_date <= end_date)
        return {o.override_date: o for o in query.order_by(ServiceOverride.override_date).all()}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def replace_weekly_rules_for_day(
            db: Session,
            provider_id: UUID,
            day_of_week: int,
            slots: List[Dict]
    ) -> List[WeeklyRule]:
        """
        Replace every rule of one weekday with the given ranges.

        Callers submit the complete desired set for the day; entries marked
        is_available=False are not stored. Overlapping ranges are kept as given.
        """
        _validate_day_of_week(day_of_week)

        parsed = []
        for slot in slots:
            start_time = _coerce_time(slot.get("start_time"))
            end_time = _coerce_time(slot.get("end_time"))
            if start_time is None or end_time is None:
                raise ValidationError("Each slot needs start_time and end_time")
            _validate_range(start_time, end_time)
            parsed.append((start_time, end_time, slot.get("is_available", True)))

        db.query(WeeklyRule).filter(
            WeeklyRule.provider_id == provider_id,
            WeeklyRule.day_of_week == day_of_week
        ).delete(synchronize_session=False)

        rules = []
        for start_time, end_time, is_available in parsed:
            if not is_available:
                continue
            rule = WeeklyRule(
                provider_id=provider_id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                is_available=True
            )
            db.add(rule)
            rules.append(rule)

        db.commit()
        for rule in rules:
            db.refresh(rule)

        logger.info(f"Replaced weekly rules for provider {provider_id} day {day_of_week}: {len(rules)} range(s)")
        return rules

    @staticmethod
    def upsert_override(
            db: Session,
            provider_id: UUID,
            override_date: date,
            is_available: bool,
            start_time: TimeInput = None,
            end_time: TimeInput = None,
            reason: Optional[str] = None
    ) -> DateOverride:
        start_time = _coerce_time(start_time)
        end_time = _coerce_time(end_time)

        if (start_time is None) != (end_time is None):
            raise ValidationError("Provide both start_time and end_time, or neither")
        if start_time is not None:
            _validate_range(start_time, end_time)
        if not is_available:
            # A day off blocks the whole date; custom hours are meaningless
            start_time = end_time = None

        values = dict(is_available=is_available, start_time=start_time, end_time=end_time, reason=reason)
        override = _upsert_by_date(db, DateOverride, "provider_id", provider_id, override_date, values)
        logger.info(f"Upserted override for provider {provider_id} on {override_date} (available={is_available})")
        return override

    @staticmethod
    def delete_override(db: Session, provider_id: UUID, override_date: date) -> bool:
        deleted = db.query(DateOverride).filter(
            DateOverride.provider_id == provider_id,
            DateOverride.override_date == override_date
        ).delete(synchronize_session=False)
        db.commit()
        return deleted > 0

    @staticmethod
    def replace_service_windows_for_day(
            db: Session,
            service_id: UUID,
            day_of_week: int,
            windows: List[Dict]
    ) -> List[ServiceWindow]:
        _validate_day_of_week(day_of_week)

        parsed = []
        for window in windows:
            start_time = _coerce_time(window.get("start_time"))
            end_time = _coerce_time(window.get("end_time"))
            if start_time is None or end_time is None:
                raise ValidationError("Each window needs start_time and end_time")
            _validate_range(start_time, end_time)
            parsed.append((start_time, end_time))

        db.query(ServiceWindow).filter(
            ServiceWindow.service_id == service_id,
            ServiceWindow.day_of_week == day_of_week
        ).delete(synchronize_session=False)

        created = [
            ServiceWindow(service_id=service_id, day_of_week=day_of_week, start_time=s, end_time=e)
            for s, e in parsed
        ]
        db.add_all(created)
        db.commit()
        return created

    @staticmethod
    def upsert_service_override(
            db: Session,
            service_id: UUID,
            override_date: date,
            is_available: bool,
            start_time: TimeInput = None,
            end_time: TimeInput = None,
            reason: Optional[str] = None
    ) -> ServiceOverride:
        """
        Closures and special hours for a service on one date.

        Unlike provider overrides, an unavailable override with hours only
        blocks that range of the day.
        """
        start_time = _coerce_time(start_time)
        end_time = _coerce_time(end_time)

        if (start_time is None) != (end_time is None):
            raise ValidationError("Provide both start_time and end_time, or neither")
        if start_time is not None:
            _validate_range(start_time, end_time)

        values = dict(is_available=is_available, start_time=start_time, end_time=end_time, reason=reason)
        override = _upsert_by_date(db, ServiceOverride, "service_id", service_id, override_date, values)
        logger.info(f"Upserted override for service {service_id} on {override_date} (available={is_available})")
        return override

    @staticmethod
    def delete_service_override(db: Session, service_id: UUID, override_date: date) -> bool:
        deleted = db.query(ServiceOverride).filter(
            ServiceOverride.service_id == service_id,
            ServiceOverride.override_date == override_date
        ).delete(synchronize_session=False)
        db.commit()
        return deleted > 0

    # ------------------------------------------------------------------
    # Actor-facing operations (capability checks)
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_target_provider(db: Session, actor: User, provider_id: Optional[UUID] = None) -> Provider:
        """
        Work out whose schedule the actor is editing.

        Providers act on their own profile; admins may act on any provider of
        their tenant. Clients never manage schedules.
        """
        if actor.role == UserRole.CLIENT:
            raise ForbiddenError("Only providers and admins can manage schedules")

        if provider_id is None:
            provider = db.query(Provider).filter(Provider.user_id == actor.id).first()
            if not provider:
                raise NotFoundError("Provider profile not found")
            return provider

        provider = db.query(Provider).filter(Provider.id == provider_id).first()
        if not provider or provider.tenant_id != actor.tenant_id:
            raise NotFoundError(f"Provider {provider_id} not found")

        if actor.is_admin() or provider.user_id == actor.id:
            return provider

        raise ForbiddenError("You can only manage your own schedule")

    @staticmethod
    def get_schedule(
            db: Session,
            actor: User,
            provider_id: Optional[UUID] = None,
            from_date: Optional[date] = None
    ) -> Dict:
        """Weekly rules plus overrides from ``from_date`` onward"""
        provider = ScheduleService.resolve_target_provider(db, actor, provider_id)
        return {
            "provider": provider.to_dict(),
            "weekly_rules": [r.to_dict() for r in ScheduleService.get_weekly_rules(db, provider.id)],
            "overrides": [
                o.to_dict() for o in ScheduleService.get_overrides(db, provider.id, start_date=from_date)
            ],
        }

    @staticmethod
    def update_base_schedule(
            db: Session,
            actor: User,
            day_of_week: int,
            slots: List[Dict],
            provider_id: Optional[UUID] = None
    ) -> List[WeeklyRule]:
        provider = ScheduleService.resolve_target_provider(db, actor, provider_id)
        return ScheduleService.replace_weekly_rules_for_day(db, provider.id, day_of_week, slots)

    @staticmethod
    def upsert_override_for_actor(
            db: Session,
            actor: User,
            override_date: date,
            is_available: bool,
            start_time: TimeInput = None,
            end_time: TimeInput = None,
            reason: Optional[str] = None,
            provider_id: Optional[UUID] = None
    ) -> DateOverride:
        provider = ScheduleService.resolve_target_provider(db, actor, provider_id)
        return ScheduleService.upsert_override(
            db, provider.id, override_date, is_available, start_time, end_time, reason
        )

    @staticmethod
    def delete_override_for_actor(
            db: Session,
            actor: User,
            override_date: date,
            provider_id: Optional[UUID] = None
    ) -> None:
        provider = ScheduleService.resolve_target_provider(db, actor, provider_id)
        if not ScheduleService.delete_override(db, provider.id, override_date):
            raise NotFoundError(f"No override on {override_date.isoformat()}")

    @staticmethod
    def update_service_windows(
            db: Session,
            actor: User,
            service_id: UUID,
            day_of_week: int,
            windows: List[Dict]
    ) -> List[ServiceWindow]:
        service = ScheduleService._service_for_admin(db, actor, service_id)
        return ScheduleService.replace_service_windows_for_day(db, service.id, day_of_week, windows)

    @staticmethod
    def upsert_service_override_for_actor(
            db: Session,
            actor: User,
            service_id: UUID,
            override_date: date,
            is_available: bool,
            start_time: TimeInput = None,
            end_time: TimeInput = None,
            reason: Optional[str] = None
    ) -> ServiceOverride:
        service = ScheduleService._service_for_admin(db, actor, service_id)
        return ScheduleService.upsert_service_override(
            db, service.id, override_date, is_available, start_time, end_time, reason
        )

    @staticmethod
    def delete_service_override_for_actor(db: Session, actor: User, service_id: UUID, override_date: date) -> None:
        service = ScheduleService._service_for_admin(db, actor, service_id)
        if not ScheduleService.delete_service_override(db, service.id, override_date):
            raise NotFoundError(f"No override on {override_date.isoformat()}")

    @staticmethod
    def _service_for_admin(db: Session, actor: User, service_id: UUID) -> Service:
        if not actor.is_admin():
            raise ForbiddenError("Only admins can change service hours")

        service = db.query(Service).filter(Service.id == service_id).first()
        if not service or service.tenant_id != actor.tenant_id:
            raise NotFoundError(f"Service {service_id} not found")
        return service
