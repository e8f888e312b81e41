import uuid
import logging
from datetime import date, datetime, timedelta, tzinfo
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.errors import InvalidSchedule, NotFound, NotAuthorized, ScheduleConflict, SlotUnavailable, storage_errors
from app.core.security import Principal
from app.modules.availability.models import DoctorSchedule
from app.modules.availability.repository import ScheduleRepository
from app.modules.availability.schemas import ScheduleCreate, ScheduleUpdate
from app.modules.availability.slots import (
    free_slots_for_window, local_hhmm, normalize_hhmm, parse_hhmm, to_schedule_weekday,
)
from app.modules.bookings.models import Booking, BookingStatus
from app.modules.bookings.repository import BookingRepository
from app.modules.directory.repository import DirectoryRepository
from app.modules.directory.service import DirectoryService
from app.modules.events.outbox import OutboxService

logger = logging.getLogger(__name__)

class AvailabilityService:
    """Answers "what can be booked" for a doctor and date, and reserves slots.

    Stateless apart from the request-scoped session it is given; every call
    re-reads the schedule and the current bookings.
    """

    def __init__(self, s: AsyncSession, tz: tzinfo | None = None):
        self.s = s
        self.tz = tz or settings.facility_tz
        self.schedules = ScheduleRepository(s)
        self.bookings = BookingRepository(s)
        self.directory = DirectoryRepository(s)
        self.directory_service = DirectoryService(s)

    # ---- Slots ----
    async def _require_doctor(self, doctor_id: uuid.UUID):
        return await self.directory_service.get_doctor(doctor_id)

    async def _free_slots(self, doctor_id: uuid.UUID, day: date) -> list[str]:
        window = await self.schedules.get_weekly_window(doctor_id, to_schedule_weekday(day))
        if window is None:
            return []
        booked = await self.bookings.list_bookings(doctor_id, day, self.tz)
        occupied = {local_hhmm(b.booking_timestamp, self.tz) for b in booked}
        return free_slots_for_window(window, occupied)

    async def get_available_slots(self, doctor_id: uuid.UUID, day: date) -> list[str]:
        with storage_errors("get_available_slots"):
            await self._require_doctor(doctor_id)
            return await self._free_slots(doctor_id, day)

    async def get_upcoming_availability(self, doctor_id: uuid.UUID, start: date | None = None, days: int | None = None) -> list[dict]:
        start = start or datetime.now(self.tz).date()
        days = days if days is not None else settings.BOOKING_HORIZON_DAYS
        with storage_errors("get_upcoming_availability"):
            await self._require_doctor(doctor_id)
            out = []
            for i in range(days):
                day = start + timedelta(days=i)
                out.append({"date": day, "slots": await self._free_slots(doctor_id, day)})
            return out

    def booking_timestamp(self, day: date, slot_time: str) -> datetime:
        minutes = parse_hhmm(slot_time)
        return datetime(day.year, day.month, day.day, minutes // 60, minutes % 60, tzinfo=self.tz)

    async def reserve_slot(self, clinic_id: uuid.UUID, doctor_id: uuid.UUID, patient_id: uuid.UUID, day: date, slot_time: str) -> Booking:
        try:
            slot = normalize_hhmm(slot_time)
        except ValueError:
            raise SlotUnavailable(f"{slot_time!r} is not a valid slot time")

        with storage_errors("reserve_slot"):
            if not await self.directory.get_clinic(clinic_id):
                raise NotFound("clinic not found")
            await self._require_doctor(doctor_id)
            if not await self.directory.is_linked(clinic_id, doctor_id):
                raise NotFound("doctor does not practise at this clinic")

            # fresh read; the caller's slot list may be stale
            if slot not in await self._free_slots(doctor_id, day):
                raise SlotUnavailable(f"{slot} on {day.isoformat()} is not available")

            booking = Booking(
                clinic_id=clinic_id,
                doctor_id=doctor_id,
                patient_id=patient_id,
                booking_timestamp=self.booking_timestamp(day, slot),
                status=BookingStatus.PENDING.value,
            )
            await self.bookings.create_booking_if_free(booking)
            await OutboxService(self.s).enqueue("BOOKING_REQUESTED", "booking", booking.id, {
                "clinic_id": str(clinic_id),
                "doctor_id": str(doctor_id),
                "patient_id": str(patient_id),
                "booking_timestamp": booking.booking_timestamp.isoformat(),
            })
            await self.s.commit()
        logger.info("Booking %s reserved: doctor=%s %s %s", booking.id, doctor_id, day.isoformat(), slot)
        return booking

    # ---- Weekly windows ----
    async def _require_owner(self, actor: Principal, doctor_id: uuid.UUID):
        await self._require_doctor(doctor_id)
        if not await self.directory_service.owns_doctor(actor, doctor_id):
            raise NotAuthorized("only the doctor's facility operator can manage schedules")

    async def _get_schedule(self, schedule_id: uuid.UUID) -> DoctorSchedule:
        obj = await self.schedules.get(schedule_id)
        if not obj:
            raise NotFound("schedule not found")
        return obj

    async def list_schedules(self, doctor_id: uuid.UUID):
        with storage_errors("list_schedules"):
            await self._require_doctor(doctor_id)
            return await self.schedules.list_weekly_windows(doctor_id)

    async def create_schedule(self, doctor_id: uuid.UUID, actor: Principal, p: ScheduleCreate) -> DoctorSchedule:
        with storage_errors("create_schedule"):
            await self._require_owner(actor, doctor_id)
            if await self.schedules.get_weekly_window(doctor_id, p.day_of_week):
                raise ScheduleConflict("a window already exists for that weekday")
            try:
                obj = await self.schedules.create(doctor_id=doctor_id, **p.model_dump())
            except IntegrityError as exc:
                await self.s.rollback()
                raise ScheduleConflict("a window already exists for that weekday") from exc
            await OutboxService(self.s).enqueue("SCHEDULE_CREATED", "schedule", obj.id, {"doctor_id": str(doctor_id), "day_of_week": obj.day_of_week})
            await self.s.commit()
        return obj

    async def update_schedule(self, schedule_id: uuid.UUID, actor: Principal, p: ScheduleUpdate) -> DoctorSchedule:
        with storage_errors("update_schedule"):
            obj = await self._get_schedule(schedule_id)
            await self._require_owner(actor, obj.doctor_id)
            data = p.model_dump(exclude_unset=True, exclude_none=True)
            start = data.get("start_time", obj.start_time)
            end = data.get("end_time", obj.end_time)
            if start >= end:
                raise InvalidSchedule("start_time must be before end_time")
            obj = await self.schedules.update(obj, **data)
            await OutboxService(self.s).enqueue("SCHEDULE_UPDATED", "schedule", obj.id, {"doctor_id": str(obj.doctor_id), "day_of_week": obj.day_of_week})
            await self.s.commit()
        return obj

    async def delete_schedule(self, schedule_id: uuid.UUID, actor: Principal) -> None:
        with storage_errors("delete_schedule"):
            obj = await self._get_schedule(schedule_id)
            await self._require_owner(actor, obj.doctor_id)
            doctor_id, day_of_week = obj.doctor_id, obj.day_of_week
            await self.schedules.delete(obj)
            await OutboxService(self.s).enqueue("SCHEDULE_DELETED", "schedule", schedule_id, {"doctor_id": str(doctor_id), "day_of_week": day_of_week})
            await self.s.commit()
