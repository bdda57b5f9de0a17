from __future__ import annotations
from pydantic import Field
from typing import Literal, Optional
from datetime import datetime, timedelta

from .common import now
from .invoice import BillingDocument, DEFAULT_TERMS_DAYS

# "expired" est une lecture dérivée (lifecycle.is_expired), jamais stockée
EstimateStatus = Literal["draft", "sent", "approved", "declined"]


class Estimate(BillingDocument):
    status: EstimateStatus = "draft"
    valid_until: datetime = Field(default_factory=lambda: now() + timedelta(days=DEFAULT_TERMS_DAYS))
    sent_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    converted_to_invoice: bool = False
    invoice_id: Optional[str] = None

    @property
    def is_frozen(self) -> bool:
        return self.converted_to_invoice
