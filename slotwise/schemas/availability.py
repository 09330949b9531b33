# slotwise/schemas/availability.py
from pydantic import BaseModel, Field
from typing import Optional, List


class SlotResponse(BaseModel):
    """A bookable slot rendered in the caller's timezone"""
    start_time: str = Field(..., description="ISO-8601 start in the requested timezone")
    end_time: str = Field(..., description="ISO-8601 end in the requested timezone")
    duration_minutes: int
    provider_id: Optional[str] = Field(None, description="Set when a provider was requested")
    provider_name: Optional[str] = None
    available_provider_ids: Optional[List[str]] = Field(
        None, description="Providers free at this time (any-provider mode)"
    )
    remaining_capacity: Optional[int] = Field(None, description="Seats left (class services)")


class DayAvailability(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD in the requested timezone")
    slots: List[SlotResponse] = Field(default_factory=list)
    has_availability: bool


class DateRange(BaseModel):
    start: str
    end: str


class ServiceConfig(BaseModel):
    duration_minutes: int
    buffer_before_minutes: int
    buffer_after_minutes: int
    min_notice_hours: int
    max_future_days: int
    max_capacity: int


class AvailabilityResponse(BaseModel):
    service_id: str
    tenant_id: str
    timezone: str
    date_range: DateRange
    service_config: ServiceConfig
    days: List[DayAvailability]
    total_slots: int
    any_provider_mode: bool


class DaySummary(BaseModel):
    date: str
    slot_count: int
    has_availability: bool


class AvailabilitySummaryResponse(BaseModel):
    service_id: str
    timezone: str
    days: List[DaySummary]
    total_slots: int


class SlotCheckResponse(BaseModel):
    available: bool
    reason: Optional[str] = Field(
        None,
        description="outside availability, conflicts with existing booking, outside booking window, "
                    "provider not assigned to service, session is full"
    )
    conflict_type: Optional[str] = None


class ProviderSummary(BaseModel):
    id: str
    name: str
    display_order: int = 0
