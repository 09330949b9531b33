# slotwise/models/service.py
"""
Service Model - bookable offerings
Duration, buffers and the booking window of a service drive slot generation.
"""
from sqlalchemy import (
    Column, String, Numeric, Integer, ForeignKey, Boolean, Text, CheckConstraint, Uuid
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from slotwise.models.base import Base, UTCDateTime
from slotwise.models.provider import service_providers


class ServiceType:
    CONSULTATION = "consultation"  # one client per slot
    CLASS = "class"                # up to max_capacity clients share a session


class Service(Base):
    """
    A service a tenant offers. Buffers are idle time the provider needs before
    and after each appointment; they never show in the client-facing slot.
    """
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_services_duration_positive"),
        CheckConstraint("buffer_before_minutes >= 0", name="ck_services_buffer_before"),
        CheckConstraint("buffer_after_minutes >= 0", name="ck_services_buffer_after"),
        CheckConstraint("min_notice_hours >= 0", name="ck_services_min_notice"),
        CheckConstraint("max_future_days >= 0", name="ck_services_max_future"),
        CheckConstraint("max_capacity >= 1", name="ck_services_capacity"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Core service details
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    service_type = Column(String(20), nullable=False, default=ServiceType.CONSULTATION)

    # Pricing (snapshotted onto each booking)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")

    # Scheduling
    duration_minutes = Column(Integer, nullable=False)
    buffer_before_minutes = Column(Integer, nullable=False, default=0)
    buffer_after_minutes = Column(Integer, nullable=False, default=0)
    min_notice_hours = Column(Integer, nullable=False, default=1)
    max_future_days = Column(Integer, nullable=False, default=60)
    max_capacity = Column(Integer, nullable=False, default=1)

    # Status and ordering
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    display_order = Column(Integer, default=0)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="services")
    providers = relationship("Provider", secondary=service_providers, back_populates="services")
    windows = relationship("ServiceWindow", back_populates="service", cascade="all, delete-orphan")
    overrides = relationship("ServiceOverride", back_populates="service", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, tenant_id={self.tenant_id})>"

    @property
    def is_class(self) -> bool:
        return self.service_type == ServiceType.CLASS

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "description": self.description,
            "service_type": self.service_type,
            "price": float(self.price) if self.price is not None else None,
            "currency": self.currency,
            "duration_minutes": self.duration_minutes,
            "buffer_before_minutes": self.buffer_before_minutes,
            "buffer_after_minutes": self.buffer_after_minutes,
            "min_notice_hours": self.min_notice_hours,
            "max_future_days": self.max_future_days,
            "max_capacity": self.max_capacity,
            "is_active": self.is_active,
        }

    @property
    def formatted_duration(self) -> str:
        """Return human-readable duration string"""
        hours = self.duration_minutes // 60
        minutes = self.duration_minutes % 60

        if hours > 0 and minutes > 0:
            return f"{hours}h {minutes}m"
        elif hours > 0:
            return f"{hours}h"
        else:
            return f"{minutes}m"
