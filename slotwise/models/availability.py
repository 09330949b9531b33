# slotwise/models/availability.py
from sqlalchemy import (
    Column, String, Integer, Boolean, Time, Date, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from slotwise.models.base import Base, UTCDateTime


class WeeklyRule(Base):
    """Recurring weekly working hours of a provider (wall-clock, tenant zone)"""
    __tablename__ = "provider_schedules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_provider_schedules_day"),
        CheckConstraint("start_time < end_time", name="ck_provider_schedules_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id = Column(Uuid, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    is_available = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())

    provider = relationship("Provider", back_populates="weekly_rules")

    def to_dict(self):
        return {
            "id": str(self.id),
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "is_available": self.is_available,
        }


class DateOverride(Base):
    """Specific date overrides (holidays, time-off, special hours)"""
    __tablename__ = "schedule_overrides"
    __table_args__ = (
        UniqueConstraint("provider_id", "override_date", name="uq_schedule_overrides_provider_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider_id = Column(Uuid, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)

    override_date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)  # False = day off
    start_time = Column(Time, nullable=True)  # both set = replacement hours
    end_time = Column(Time, nullable=True)
    reason = Column(String(255), nullable=True)  # "Holiday", "Vacation", etc.

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider", back_populates="overrides")

    @property
    def has_custom_hours(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def to_dict(self):
        return {
            "id": str(self.id),
            "date": self.override_date.isoformat(),
            "is_available": self.is_available,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "reason": self.reason,
        }


class ServiceWindow(Base):
    """Weekly hours in which a service may be booked at all (optional restriction)"""
    __tablename__ = "service_schedules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_service_schedules_day"),
        CheckConstraint("start_time < end_time", name="ck_service_schedules_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id = Column(Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    service = relationship("Service", back_populates="windows")

    def to_dict(self):
        return {
            "id": str(self.id),
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
        }


class ServiceOverride(Base):
    """
    Date-specific change to when a service may be booked (closures, special hours).

    Unavailable without hours closes the service for the day; unavailable with
    hours blocks only that range; available with hours replaces the weekly
    service hours.
    """
    __tablename__ = "service_schedule_overrides"
    __table_args__ = (
        UniqueConstraint("service_id", "override_date", name="uq_service_schedule_overrides_service_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id = Column(Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)

    override_date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    reason = Column(String(255), nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service", back_populates="overrides")

    @property
    def has_custom_hours(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def to_dict(self):
        return {
            "id": str(self.id),
            "service_id": str(self.service_id),
            "date": self.override_date.isoformat(),
            "is_available": self.is_available,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "reason": self.reason,
        }
