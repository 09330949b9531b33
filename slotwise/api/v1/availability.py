# ============================================================================
# FILE: slotwise/api/v1/availability.py
# Public availability endpoints - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from slotwise.config.database import get_db
from slotwise.schemas.availability import (
    AvailabilityResponse,
    AvailabilitySummaryResponse,
    SlotCheckResponse,
    ProviderSummary
)
from slotwise.services.availability.availability_service import AvailabilityService
from slotwise.services.availability.slot_validator import SlotValidator
from slotwise.utils.timezone import parse_instant

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/slots", response_model=AvailabilityResponse, response_model_exclude_none=True)
async def get_slots(
        service_id: UUID = Query(..., description="Service to book"),
        tenant_id: UUID = Query(..., description="Tenant offering the service"),
        start_date: str = Query(..., description="First day, YYYY-MM-DD"),
        end_date: str = Query(..., description="Last day (inclusive), YYYY-MM-DD"),
        timezone: Optional[str] = Query(None, description="IANA timezone of the caller"),
        provider_id: Optional[UUID] = Query(None, description="Omit for any-provider mode"),
        db: Session = Depends(get_db)
):
    """
    Bookable slots per day.
    Without provider_id, slots of all providers are merged and list the free providers.
    """
    return AvailabilityService.get_availability(
        db=db,
        service_id=service_id,
        tenant_id=tenant_id,
        start_date=start_date,
        end_date=end_date,
        timezone=timezone,
        provider_id=provider_id
    )


@router.get("/summary", response_model=AvailabilitySummaryResponse)
async def get_summary(
        service_id: UUID = Query(...),
        tenant_id: UUID = Query(...),
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        timezone: Optional[str] = Query(None),
        provider_id: Optional[UUID] = Query(None),
        db: Session = Depends(get_db)
):
    """Slot counts per day"""
    return AvailabilityService.get_summary(
        db=db,
        service_id=service_id,
        tenant_id=tenant_id,
        start_date=start_date,
        end_date=end_date,
        timezone=timezone,
        provider_id=provider_id
    )


@router.get("/check-slot", response_model=SlotCheckResponse, response_model_exclude_none=True)
async def check_slot(
        service_id: UUID = Query(...),
        tenant_id: UUID = Query(...),
        provider_id: UUID = Query(...),
        start_time: str = Query(..., description="ISO-8601 start time"),
        timezone: Optional[str] = Query(None),
        db: Session = Depends(get_db)
):
    """Re-check one slot right before booking"""
    result = SlotValidator.check_slot(
        db=db,
        service_id=service_id,
        tenant_id=tenant_id,
        provider_id=provider_id,
        start_time=start_time,
        timezone=timezone
    )
    return result.to_dict()


@router.get("/providers-for-slot", response_model=List[ProviderSummary])
async def get_providers_for_slot(
        service_id: UUID = Query(...),
        tenant_id: UUID = Query(...),
        start_time: str = Query(..., description="ISO-8601 start time"),
        end_time: Optional[str] = Query(None, description="ISO-8601 end time; defaults to start + duration"),
        timezone: Optional[str] = Query(None),
        db: Session = Depends(get_db)
):
    """Providers free for the whole interval"""
    providers = AvailabilityService.get_providers_for_slot(
        db=db,
        service_id=service_id,
        tenant_id=tenant_id,
        start_time=parse_instant(start_time),
        end_time=parse_instant(end_time) if end_time else None,
        timezone=timezone
    )
    return [
        {"id": str(p.id), "name": p.name, "display_order": p.display_order or 0}
        for p in providers
    ]
