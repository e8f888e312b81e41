import uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, ForeignKey, JSON, UniqueConstraint
from app.core.base import Base, TimestampedMixin

class Clinic(Base, TimestampedMixin):
    owner_id: Mapped[uuid.UUID] = mapped_column(index=True)  # facility operator
    name_en: Mapped[str] = mapped_column(String(160), index=True)
    name_ar: Mapped[str | None] = mapped_column(String(160), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_verified: Mapped[bool] = mapped_column(default=False)

class Doctor(Base, TimestampedMixin):
    name_en: Mapped[str] = mapped_column(String(160), index=True)
    name_ar: Mapped[str | None] = mapped_column(String(160), nullable=True)
    specialty_ids: Mapped[list] = mapped_column(JSON, default=list)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String, nullable=True)

    @property
    def specialty_id(self) -> int | None:
        # read-only fallback for consumers of the old single-specialty field
        return self.specialty_ids[0] if self.specialty_ids else None

class ClinicDoctor(Base, TimestampedMixin):
    __tablename__ = "clinic_doctor"
    __table_args__ = (UniqueConstraint("clinic_id", "doctor_id", name="uq_clinic_doctor"),)

    clinic_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("clinic.id"), index=True)
    doctor_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("doctor.id"), index=True)
