# ============================================================================
# FILE: slotwise/api/v1/dashboard/schedule.py
# Provider schedule management (weekly hours and date overrides)
# ============================================================================
from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional
from uuid import UUID

from slotwise.api.dependencies import require_staff
from slotwise.config.database import get_db
from slotwise.models.user import User
from slotwise.schemas.schedule import (
    BaseScheduleUpdate,
    OverrideUpsert,
    OverrideResponse,
    ScheduleResponse,
    WeeklyRuleResponse
)
from slotwise.services.schedule.schedule_service import ScheduleService

router = APIRouter(prefix="/schedule", tags=["dashboard-schedule"])


@router.get("", response_model=ScheduleResponse)
async def get_schedule(
        provider_id: Optional[UUID] = Query(None, description="Admins only; defaults to your own profile"),
        from_date: Optional[date] = Query(None, description="Only overrides on or after this date"),
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    return ScheduleService.get_schedule(db, current_user, provider_id=provider_id, from_date=from_date)


@router.put("/base", response_model=List[WeeklyRuleResponse])
async def update_base_schedule(
        payload: BaseScheduleUpdate,
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    """Replace all working hours of one weekday"""
    rules = ScheduleService.update_base_schedule(
        db=db,
        actor=current_user,
        day_of_week=payload.day_of_week,
        slots=[slot.model_dump() for slot in payload.slots],
        provider_id=payload.provider_id
    )
    return [rule.to_dict() for rule in rules]


@router.put("/overrides", response_model=OverrideResponse)
async def upsert_override(
        payload: OverrideUpsert,
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    """Create or replace the override for one date"""
    override = ScheduleService.upsert_override_for_actor(
        db=db,
        actor=current_user,
        override_date=payload.override_date,
        is_available=payload.is_available,
        start_time=payload.start_time,
        end_time=payload.end_time,
        reason=payload.reason,
        provider_id=payload.provider_id
    )
    return override.to_dict()


@router.delete("/overrides/{override_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
        override_date: date = Path(..., description="YYYY-MM-DD"),
        provider_id: Optional[UUID] = Query(None),
        current_user: User = Depends(require_staff),
        db: Session = Depends(get_db)
):
    ScheduleService.delete_override_for_actor(db, current_user, override_date, provider_id=provider_id)
