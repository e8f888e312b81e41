import asyncio
import uuid
from datetime import date, time

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.errors import InvalidSchedule, NotAuthorized, NotFound, ScheduleConflict, SlotUnavailable, StorageError
from app.core.security import Principal
from app.modules.availability.schemas import ScheduleCreate, ScheduleUpdate
from app.modules.availability.service import AvailabilityService
from app.modules.bookings.models import Booking, BookingStatus
from app.modules.bookings.repository import BookingRepository
from app.modules.bookings.service import BookingLifecycleManager
from app.modules.events.outbox import EventOutbox

MONDAY = date(2030, 1, 7)
MONDAY_INDEX = 2  # Saturday-first schedule weekdays


@pytest.mark.asyncio
async def test_day_without_window_has_no_slots(session, facility):
    svc = AvailabilityService(session)

    assert await svc.get_available_slots(facility.doctor.id, MONDAY) == []


@pytest.mark.asyncio
async def test_unknown_doctor_is_not_found(session):
    with pytest.raises(NotFound):
        await AvailabilityService(session).get_available_slots(uuid.uuid4(), MONDAY)


@pytest.mark.asyncio
async def test_window_is_looked_up_by_saturday_first_weekday(session, facility, add_window):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)

    assert await svc.get_available_slots(facility.doctor.id, MONDAY) == ["09:00", "09:30"]
    # the following Tuesday has no window
    assert await svc.get_available_slots(facility.doctor.id, date(2030, 1, 8)) == []


@pytest.mark.asyncio
async def test_booked_slot_is_hidden_and_cannot_be_reserved_twice(session, facility, add_window, patient, other_patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)
    await svc.reserve_slot(facility.clinic.id, facility.doctor.id, other_patient.user_id, MONDAY, "09:30")

    assert await svc.get_available_slots(facility.doctor.id, MONDAY) == ["09:00"]

    booking = await svc.reserve_slot(facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "09:00")
    assert booking.status == BookingStatus.PENDING.value
    assert booking.patient_id == patient.user_id
    assert await svc.get_available_slots(facility.doctor.id, MONDAY) == []

    with pytest.raises(SlotUnavailable):
        await svc.reserve_slot(facility.clinic.id, facility.doctor.id, other_patient.user_id, MONDAY, "09:00")


@pytest.mark.asyncio
async def test_reserve_rejects_times_off_the_grid(session, facility, add_window, patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)

    with pytest.raises(SlotUnavailable):
        await svc.reserve_slot(facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "09:15")
    with pytest.raises(SlotUnavailable):
        await svc.reserve_slot(facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "nine")


@pytest.mark.asyncio
async def test_reserve_requires_doctor_at_clinic(session, facility, add_window, patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)

    with pytest.raises(NotFound):
        await svc.reserve_slot(uuid.uuid4(), facility.doctor.id, patient.user_id, MONDAY, "09:00")


@pytest.mark.asyncio
async def test_stale_availability_read_loses_to_storage_guard(session_factory, facility, add_window, patient, other_patient, monkeypatch):
    """Two requests both see 09:00 free; only the first insert survives."""
    await add_window(facility.doctor.id, MONDAY_INDEX)

    async with session_factory() as s1, session_factory() as s2:
        first, second = AvailabilityService(s1), AvailabilityService(s2)
        stale = await second.get_available_slots(facility.doctor.id, MONDAY)
        assert "09:00" in stale

        await first.reserve_slot(facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "09:00")

        async def stale_read(doctor_id, day):
            return stale

        monkeypatch.setattr(second, "_free_slots", stale_read)
        with pytest.raises(SlotUnavailable):
            await second.reserve_slot(facility.clinic.id, facility.doctor.id, other_patient.user_id, MONDAY, "09:00")

    async with session_factory() as s:
        live = await s.scalar(
            select(func.count()).select_from(Booking).where(
                Booking.doctor_id == facility.doctor.id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        )
        assert live == 1


@pytest.mark.asyncio
async def test_duplicate_insert_is_translated_to_slot_unavailable(session_factory, facility, patient, other_patient):
    ts = AvailabilityService(None).booking_timestamp(MONDAY, "10:00")

    async with session_factory() as s:
        await BookingRepository(s).create_booking_if_free(Booking(
            clinic_id=facility.clinic.id, doctor_id=facility.doctor.id,
            patient_id=patient.user_id, booking_timestamp=ts,
        ))
        await s.commit()

    async with session_factory() as s:
        with pytest.raises(SlotUnavailable):
            await BookingRepository(s).create_booking_if_free(Booking(
                clinic_id=facility.clinic.id, doctor_id=facility.doctor.id,
                patient_id=other_patient.user_id, booking_timestamp=ts,
            ))


@pytest.mark.asyncio
async def test_cancelled_booking_frees_the_slot(session, facility, add_window, patient, other_patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)
    booking = await svc.reserve_slot(facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "09:00")
    assert "09:00" not in await svc.get_available_slots(facility.doctor.id, MONDAY)

    await BookingLifecycleManager(session).cancel(booking.id, patient)

    assert await svc.get_available_slots(facility.doctor.id, MONDAY) == ["09:00", "09:30"]
    again = await svc.reserve_slot(facility.clinic.id, facility.doctor.id, other_patient.user_id, MONDAY, "09:00")
    assert again.id != booking.id


@pytest.mark.asyncio
async def test_reservation_writes_outbox_event(session, facility, add_window, patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    booking = await AvailabilityService(session).reserve_slot(
        facility.clinic.id, facility.doctor.id, patient.user_id, MONDAY, "09:30",
    )

    events = (await session.execute(select(EventOutbox).where(EventOutbox.subject_id == str(booking.id)))).scalars().all()
    assert [e.event_type for e in events] == ["BOOKING_REQUESTED"]
    assert events[0].payload["patient_id"] == str(patient.user_id)


@pytest.mark.asyncio
async def test_upcoming_availability_covers_each_day(session, facility, add_window):
    await add_window(facility.doctor.id, MONDAY_INDEX)
    svc = AvailabilityService(session)

    days = await svc.get_upcoming_availability(facility.doctor.id, start=date(2030, 1, 5), days=7)

    assert [d["date"] for d in days] == [date(2030, 1, n) for n in range(5, 12)]
    assert {d["date"]: d["slots"] for d in days if d["slots"]} == {MONDAY: ["09:00", "09:30"]}


@pytest.mark.asyncio
async def test_schedule_management(session, facility):
    svc = AvailabilityService(session)
    create = ScheduleCreate(day_of_week=0, start_time=time(16, 0), end_time=time(18, 0), slot_duration_minutes=20)

    window = await svc.create_schedule(facility.doctor.id, facility.owner, create)
    assert window.day_of_week == 0
    assert await svc.get_available_slots(facility.doctor.id, date(2030, 1, 5)) == [
        "16:00", "16:20", "16:40", "17:00", "17:20", "17:40",
    ]

    with pytest.raises(ScheduleConflict):
        await svc.create_schedule(facility.doctor.id, facility.owner, create)

    updated = await svc.update_schedule(window.id, facility.owner, ScheduleUpdate(end_time=time(17, 0)))
    assert updated.end_time == time(17, 0)

    with pytest.raises(InvalidSchedule):
        await svc.update_schedule(window.id, facility.owner, ScheduleUpdate(start_time=time(19, 0)))

    await svc.delete_schedule(window.id, facility.owner)
    assert await svc.list_schedules(facility.doctor.id) == []
    assert await svc.get_available_slots(facility.doctor.id, date(2030, 1, 5)) == []


@pytest.mark.asyncio
async def test_only_the_operator_manages_schedules(session, facility):
    stranger = Principal(user_id=uuid.uuid4(), roles=["provider"])
    create = ScheduleCreate(day_of_week=3, start_time=time(9, 0), end_time=time(12, 0))

    with pytest.raises(NotAuthorized):
        await AvailabilityService(session).create_schedule(facility.doctor.id, stranger, create)


@pytest.mark.asyncio
async def test_concurrent_reservations_leave_one_booking(session_factory, facility, add_window, patient, other_patient):
    await add_window(facility.doctor.id, MONDAY_INDEX)

    async def attempt(who):
        async with session_factory() as s:
            return await AvailabilityService(s).reserve_slot(
                facility.clinic.id, facility.doctor.id, who.user_id, MONDAY, "09:00",
            )

    results = await asyncio.gather(attempt(patient), attempt(other_patient), return_exceptions=True)

    assert sorted(type(r).__name__ for r in results) == ["Booking", "SlotUnavailable"]
    async with session_factory() as s:
        live = await s.scalar(
            select(func.count()).select_from(Booking).where(
                Booking.doctor_id == facility.doctor.id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        )
        assert live == 1


@pytest.mark.asyncio
async def test_read_failures_surface_as_storage_error(session, facility, monkeypatch):
    svc = AvailabilityService(session)

    async def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(svc.schedules, "list_weekly_windows", broken)
    monkeypatch.setattr(svc.directory_service.repo, "owner_has_doctor", broken)
    create = ScheduleCreate(day_of_week=4, start_time=time(9, 0), end_time=time(11, 0))

    with pytest.raises(StorageError):
        await svc.list_schedules(facility.doctor.id)
    with pytest.raises(StorageError):
        await svc.create_schedule(facility.doctor.id, facility.owner, create)
