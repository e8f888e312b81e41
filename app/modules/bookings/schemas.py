import uuid
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field
from app.modules.bookings.models import BookingStatus

class ReserveRequest(BaseModel):
    clinic_id: uuid.UUID
    doctor_id: uuid.UUID
    date: date
    slot_time: str = Field(..., pattern=r"^\d{2}:\d{2}(:\d{2})?$")

class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinic_id: uuid.UUID
    doctor_id: uuid.UUID | None = None
    patient_id: uuid.UUID
    booking_timestamp: datetime
    status: BookingStatus
