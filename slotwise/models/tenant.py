# slotwise/models/tenant.py
"""
Tenant Model
A tenant is one business running its own services, providers and bookings.
"""
from sqlalchemy import Column, String, Boolean, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from slotwise.models.base import Base, UTCDateTime


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    # Wall-clock times of every schedule belonging to this tenant are in this zone
    timezone = Column(String(50), nullable=False, default="UTC")

    # Booking policy: new bookings start confirmed instead of pending
    auto_confirm_bookings = Column(Boolean, nullable=False, default=False)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    services = relationship("Service", back_populates="tenant")
    providers = relationship("Provider", back_populates="tenant")

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug={self.slug})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "timezone": self.timezone,
            "auto_confirm_bookings": self.auto_confirm_bookings,
            "is_active": self.is_active,
        }
