from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from .common import gen_id, now

class Customer(BaseModel):
    id: str = Field(default_factory=gen_id)
    name: str = Field(min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    created_at: datetime = Field(default_factory=now)
