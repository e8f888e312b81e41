from datetime import date
import uuid
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.db import get_session
from app.core.security import require_roles, Principal
from app.modules.availability.service import AvailabilityService
from app.modules.availability.schemas import ScheduleCreate, ScheduleUpdate, ScheduleOut, SlotsOut, DayAvailability
from app.modules.availability.slots import to_schedule_weekday

router = APIRouter()

def svc(s: AsyncSession = Depends(get_session)) -> AvailabilityService:
    return AvailabilityService(s)

# Provider schedules
@router.get("/doctors/{doctor_id}/schedules", response_model=list[ScheduleOut])
async def list_schedules(doctor_id: uuid.UUID, service: AvailabilityService = Depends(svc)):
    return await service.list_schedules(doctor_id)

@router.post("/doctors/{doctor_id}/schedules", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule(doctor_id: uuid.UUID, payload: ScheduleCreate, principal: Principal = Depends(require_roles("provider")), service: AvailabilityService = Depends(svc)):
    return await service.create_schedule(doctor_id, principal, payload)

@router.patch("/schedules/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(schedule_id: uuid.UUID, payload: ScheduleUpdate, principal: Principal = Depends(require_roles("provider")), service: AvailabilityService = Depends(svc)):
    return await service.update_schedule(schedule_id, principal, payload)

@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(schedule_id: uuid.UUID, principal: Principal = Depends(require_roles("provider")), service: AvailabilityService = Depends(svc)):
    await service.delete_schedule(schedule_id, principal)

# Slot search
@router.get("/doctors/{doctor_id}/slots", response_model=SlotsOut)
async def available_slots(doctor_id: uuid.UUID, day: date = Query(..., alias="date"), service: AvailabilityService = Depends(svc)):
    slots = await service.get_available_slots(doctor_id, day)
    return {"doctor_id": doctor_id, "date": day, "day_of_week": to_schedule_weekday(day), "slots": slots}

@router.get("/doctors/{doctor_id}/calendar", response_model=list[DayAvailability])
async def upcoming_availability(
    doctor_id: uuid.UUID,
    start: date | None = None,
    days: int = Query(settings.BOOKING_HORIZON_DAYS, ge=1, le=60),
    service: AvailabilityService = Depends(svc),
):
    return await service.get_upcoming_availability(doctor_id, start, days)
