import enum
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, text
from app.core.base import Base, TimestampedMixin

SLOT_INDEX_NAME = "uq_booking_doctor_slot_active"

class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})

class Booking(Base, TimestampedMixin):
    __table_args__ = (
        # at most one live booking per doctor and instant
        Index(
            SLOT_INDEX_NAME, "doctor_id", "booking_timestamp",
            unique=True,
            postgresql_where=text("status <> 'CANCELLED'"),
            sqlite_where=text("status <> 'CANCELLED'"),
        ),
        Index("ix_booking_patient_ts", "patient_id", "booking_timestamp"),
        Index("ix_booking_clinic_ts", "clinic_id", "booking_timestamp"),
    )

    clinic_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("clinic.id"))
    doctor_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("doctor.id"), nullable=True)
    patient_id: Mapped[uuid.UUID] = mapped_column()
    booking_timestamp: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    status: Mapped[str] = mapped_column(String(16), default=BookingStatus.PENDING.value)
