from __future__ import annotations
from pydantic import BaseModel, Field
from typing import List, Literal
from datetime import datetime
from .common import gen_id, now

CheckStatus = Literal["good", "needs-attention", "replace"]

class ServiceCheckItem(BaseModel):
    id: str = Field(default_factory=gen_id)
    name: str = Field(min_length=1)
    status: CheckStatus = "good"
    notes: str = ""
    photos: List[str] = Field(default_factory=list)

class ServiceCheck(BaseModel):
    id: str = Field(default_factory=gen_id)
    customer_id: str = Field(min_length=1)
    vehicle_id: str = Field(min_length=1)
    technician: str = ""
    items: List[ServiceCheckItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now)

    def items_needing_work(self) -> List[ServiceCheckItem]:
        return [it for it in self.items if it.status != "good"]
