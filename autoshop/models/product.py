from __future__ import annotations
from decimal import Decimal
from pydantic import BaseModel, Field
from .common import gen_id

SERVICE_CATEGORY = "Service"
LOW_STOCK_THRESHOLD = 10


class Product(BaseModel):
  id: str = Field(default_factory=gen_id)
  name: str = Field(min_length=1)
  description: str = ""
  price: Decimal = Field(default=Decimal("0"), ge=0)
  category: str = "Parts"
  stock: int = Field(default=0, ge=0)

  @property
  def is_service(self) -> bool:
    return self.category.lower() == SERVICE_CATEGORY.lower()

  @property
  def is_low_stock(self) -> bool:
    return not self.is_service and 0 < self.stock <= LOW_STOCK_THRESHOLD

  @property
  def is_out_of_stock(self) -> bool:
    return not self.is_service and self.stock == 0
