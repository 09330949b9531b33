# slotwise/schemas/schedule.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date
from uuid import UUID

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class TimeWindow(BaseModel):
    start_time: str = Field(..., pattern=HHMM_PATTERN, description="HH:MM")
    end_time: str = Field(..., pattern=HHMM_PATTERN, description="HH:MM")


class WeeklySlot(TimeWindow):
    is_available: bool = True


class BaseScheduleUpdate(BaseModel):
    """Complete set of ranges for one weekday; replaces what was there"""
    provider_id: Optional[UUID] = Field(None, description="Admins only; defaults to your own profile")
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday, 6=Saturday")
    slots: List[WeeklySlot] = Field(default_factory=list)


class OverrideUpsert(BaseModel):
    provider_id: Optional[UUID] = None
    override_date: date = Field(..., description="YYYY-MM-DD")
    is_available: bool
    start_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    end_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    reason: Optional[str] = Field(None, max_length=255)


class ServiceWindowsUpdate(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    windows: List[TimeWindow] = Field(default_factory=list)


class WeeklyRuleResponse(BaseModel):
    id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool


class OverrideResponse(BaseModel):
    id: str
    date: str
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class ScheduleResponse(BaseModel):
    provider: dict
    weekly_rules: List[WeeklyRuleResponse]
    overrides: List[OverrideResponse]


class ServiceOverrideUpsert(BaseModel):
    """Hours are optional: unavailable with hours blocks that range, available with hours replaces the day"""
    override_date: date = Field(..., description="YYYY-MM-DD")
    is_available: bool
    start_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    end_time: Optional[str] = Field(None, pattern=HHMM_PATTERN)
    reason: Optional[str] = Field(None, max_length=255)


class ServiceOverrideResponse(OverrideResponse):
    service_id: str
