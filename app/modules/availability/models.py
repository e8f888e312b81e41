import uuid
from datetime import time
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, Time, ForeignKey, CheckConstraint, UniqueConstraint
from app.core.base import Base, TimestampedMixin

# Recurring weekly window: day_of_week 0=Sat..6=Fri, local wall-clock times
class DoctorSchedule(Base, TimestampedMixin):
    __tablename__ = "doctor_schedule"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="uq_doctor_schedule_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_doctor_schedule_day"),
        CheckConstraint("start_time < end_time", name="ck_doctor_schedule_window"),
        CheckConstraint("slot_duration_minutes > 0", name="ck_doctor_schedule_duration"),
    )

    doctor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("doctor.id"), index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0..6
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, default=30)
