from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import List, Literal, Optional
from datetime import datetime, timedelta
from decimal import Decimal

from autoshop.services.totals import Totals, compute_totals, line_total
from .common import ZERO, gen_id, now

# "overdue" est une lecture dérivée (lifecycle.is_overdue), jamais stockée
InvoiceStatus = Literal["draft", "sent", "paid"]

DEFAULT_TAX_RATE = Decimal("8.5")
DEFAULT_TERMS_DAYS = 30


class LineItem(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=gen_id)
    product_id: Optional[str] = None  # référence catalogue, pas de propriété
    name: str = Field(min_length=1)
    description: str = ""
    quantity: int = Field(default=1, gt=0)
    unit_price: Decimal = Field(default=ZERO, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)


class BillingDocument(BaseModel):
    """Champs communs facture / devis. Les totaux sont dérivés des lignes et du taux."""
    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    id: str = Field(default_factory=gen_id)
    number: Optional[str] = None
    customer_id: str = Field(min_length=1)
    vehicle_id: str = Field(min_length=1)
    items: List[LineItem] = Field(default_factory=list)
    tax_rate: Decimal = Field(default=DEFAULT_TAX_RATE, ge=0)
    created_at: datetime = Field(default_factory=now)
    notes: str = ""

    def totals(self) -> Totals:
        return compute_totals(self.items, self.tax_rate)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> Decimal:
        return self.totals().subtotal

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tax_amount(self) -> Decimal:
        return self.totals().tax_amount

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> Decimal:
        return self.totals().total

    def item_for_product(self, product_id: str) -> Optional[LineItem]:
        for it in self.items:
            if it.product_id and it.product_id == product_id:
                return it
        return None


class Invoice(BillingDocument):
    status: InvoiceStatus = "draft"
    due_date: datetime = Field(default_factory=lambda: now() + timedelta(days=DEFAULT_TERMS_DAYS))
    source_estimate_id: Optional[str] = None
    service_check_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
