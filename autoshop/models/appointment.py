from __future__ import annotations
import datetime as dt
from pydantic import BaseModel, Field
from typing import Literal, Optional
from .common import gen_id

AppointmentStatus = Literal["scheduled", "in-progress", "completed", "cancelled"]

class Appointment(BaseModel):
    id: str = Field(default_factory=gen_id)
    customer_id: str = Field(min_length=1)
    vehicle_id: str = Field(min_length=1)
    date: dt.date
    time: dt.time = dt.time(9, 0)
    service: str = Field(min_length=1)
    status: AppointmentStatus = "scheduled"
    notes: str = ""
    duration_minutes: int = Field(default=60, gt=0)
    calendar_event_id: Optional[str] = None

    def starts_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time)

    def ends_at(self) -> dt.datetime:
        return self.starts_at() + dt.timedelta(minutes=self.duration_minutes)
