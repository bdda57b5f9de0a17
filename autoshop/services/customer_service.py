from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from autoshop.errors import ValidationFailed
from autoshop.models.customer import Customer
from autoshop.services import integrity
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, store: ShopStore):
        self.store = store

    def list_customers(self, search: str = "") -> List[Customer]:
        term = (search or "").strip().casefold()
        items = self.store.customers.list_all()
        if not term:
            return items
        return [
            c for c in items
            if term in c.name.casefold() or term in (c.email or "").casefold() or term in (c.phone or "")
        ]

    def get_by_id(self, customer_id: str) -> Customer:
        return self.store.customers.require(customer_id)

    def add_customer(self, data: Dict[str, Any] | Customer) -> Customer:
        try:
            customer = data if isinstance(data, Customer) else Customer(**data)
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (name, valid email).") from e
        self.store.customers.add(customer)
        logger.info("Customer %s added", customer.name)
        return customer

    def update_customer(self, customer_id: str, changes: Dict[str, Any]) -> Customer:
        current = self.get_by_id(customer_id)
        try:
            updated = Customer.model_validate({**current.model_dump(), **changes, "id": customer_id})
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (name, valid email).") from e
        self.store.customers.update(updated)
        return updated

    def delete_customer(self, customer_id: str) -> None:
        self.get_by_id(customer_id)
        integrity.ensure_customer_deletable(self.store, customer_id)
        self.store.customers.delete(customer_id)
        logger.info("Customer %s deleted", customer_id)

    def customer_stats(self, customer_id: str) -> Dict[str, Any]:
        self.get_by_id(customer_id)
        vehicles = self.store.vehicles.find(lambda v: v.customer_id == customer_id)
        appointments = self.store.appointments.find(lambda a: a.customer_id == customer_id)
        invoices = self.store.invoices.find(lambda i: i.customer_id == customer_id)
        last_visit: Optional[date] = max((a.date for a in appointments), default=None)
        return {
            "vehicle_count": len(vehicles),
            "appointment_count": len(appointments),
            "invoice_count": len(invoices),
            "total_spent": sum((i.total for i in invoices if i.status == "paid"), Decimal("0")),
            "last_visit": last_visit,
        }
