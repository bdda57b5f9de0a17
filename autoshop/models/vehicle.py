from __future__ import annotations
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from .common import gen_id

class MotTest(BaseModel):
    completed_date: Optional[date] = None
    test_result: str = ""
    expiry_date: Optional[date] = None
    odometer_value: Optional[str] = None
    odometer_unit: Optional[str] = None
    defects: List[str] = Field(default_factory=list)

class Vehicle(BaseModel):
    id: str = Field(default_factory=gen_id)
    customer_id: str
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(gt=1885)
    vin: str = ""
    license_plate: str = ""
    color: str = ""
    mot_expiry: Optional[date] = None
    mot_history: List[MotTest] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"
