import uuid
from datetime import date, time
from pydantic import BaseModel, ConfigDict, Field, model_validator

class ScheduleCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Sat .. 6=Fri
    start_time: time
    end_time: time
    slot_duration_minutes: int = Field(default=30, gt=0, le=240)

    @model_validator(mode="after")
    def _window_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

class ScheduleUpdate(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    slot_duration_minutes: int | None = Field(default=None, gt=0, le=240)

class ScheduleOut(ScheduleCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    doctor_id: uuid.UUID

class SlotsOut(BaseModel):
    doctor_id: uuid.UUID
    date: date
    day_of_week: int
    slots: list[str]

class DayAvailability(BaseModel):
    date: date
    slots: list[str]
