"""Shared test fixtures."""
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import time

# settings are read at import time, so the environment goes first
_db_dir = tempfile.mkdtemp(prefix="booking-tests-")
os.environ["POSTGRES_DSN"] = f"sqlite+aiosqlite:///{_db_dir}/app.db"
os.environ["ENV"] = "dev"
os.environ["DB_MANAGE"] = "create_all"
os.environ["OUTBOX_RELAY_ENABLED"] = "false"
os.environ["FACILITY_TIMEZONE"] = "Asia/Riyadh"
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession  # noqa: E402

from app.core.base import Base  # noqa: E402
from app.core.db import _import_models  # noqa: E402
from app.core.security import Principal  # noqa: E402
from app.modules.availability.models import DoctorSchedule  # noqa: E402
from app.modules.directory.models import Clinic, Doctor, ClinicDoctor  # noqa: E402


@dataclass
class Facility:
    owner: Principal
    clinic: Clinic
    doctor: Doctor


@pytest_asyncio.fixture
async def engine(tmp_path):
    _import_models()
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/booking.db")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def patient() -> Principal:
    return Principal(user_id=uuid.uuid4(), roles=["patient"])


@pytest.fixture
def other_patient() -> Principal:
    return Principal(user_id=uuid.uuid4(), roles=["patient"])


@pytest_asyncio.fixture
async def facility(session) -> Facility:
    """A clinic owned by a provider, with one linked doctor and no schedule."""
    owner = Principal(user_id=uuid.uuid4(), roles=["provider"])
    clinic = Clinic(owner_id=owner.user_id, name_en="Al Noor Clinic", name_ar="عيادة النور")
    doctor = Doctor(name_en="Dr. Sara Haddad", specialty_ids=[3, 7])
    session.add_all([clinic, doctor])
    await session.flush()
    session.add(ClinicDoctor(clinic_id=clinic.id, doctor_id=doctor.id))
    await session.commit()
    return Facility(owner=owner, clinic=clinic, doctor=doctor)


@pytest.fixture
def add_window(session):
    async def _add(doctor_id, day_of_week, start=time(9, 0), end=time(10, 0), duration=30):
        obj = DoctorSchedule(
            doctor_id=doctor_id, day_of_week=day_of_week,
            start_time=start, end_time=end, slot_duration_minutes=duration,
        )
        session.add(obj)
        await session.commit()
        return obj
    return _add
