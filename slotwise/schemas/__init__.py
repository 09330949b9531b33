# slotwise/schemas/__init__.py
from .availability import (
    SlotResponse,
    DayAvailability,
    AvailabilityResponse,
    AvailabilitySummaryResponse,
    SlotCheckResponse,
    ProviderSummary
)

from .booking import (
    ClientInfo,
    BookingCreateRequest,
    BookingCancelRequest,
    BookingStatusUpdate,
    BookingResponse,
    BookingListResponse
)

from .schedule import (
    TimeWindow,
    WeeklySlot,
    BaseScheduleUpdate,
    OverrideUpsert,
    ServiceWindowsUpdate,
    WeeklyRuleResponse,
    OverrideResponse,
    ScheduleResponse
)
