from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from autoshop.errors import ValidationFailed
from autoshop.models.invoice import Invoice
from autoshop.models.service_check import ServiceCheck
from autoshop.services import documents
from autoshop.services.invoice_service import InvoiceService
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)


class ServiceCheckService:
    def __init__(self, store: ShopStore, invoices: InvoiceService) -> None:
        self.store = store
        self.invoices = invoices

    def get(self, check_id: str) -> ServiceCheck:
        return self.store.service_checks.require(check_id)

    def list_checks(self, vehicle_id: Optional[str] = None) -> List[ServiceCheck]:
        if vehicle_id:
            return self.store.service_checks.find(lambda c: c.vehicle_id == vehicle_id)
        return self.store.service_checks.list_all()

    def record_check(self, data: Dict[str, Any]) -> ServiceCheck:
        try:
            check = ServiceCheck.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed("Invalid service check: customer, vehicle and item names are required") from e
        documents.validate_parties(self.store, check.customer_id, check.vehicle_id)
        self.store.service_checks.add(check)
        logger.info("Service check %s recorded (%d item(s) need work)", check.id, len(check.items_needing_work()))
        return check

    def invoice_from_check(
        self,
        check_id: str,
        items: Iterable[Any],
        notes: str = "",
    ) -> Invoice:
        """Facture rattachée au contrôle (service_check_id) ; les lignes sont fournies par l'atelier."""
        check = self.get(check_id)
        summary = ", ".join(f"{it.name} ({it.status})" for it in check.items_needing_work())
        return self.invoices.create_invoice(
            check.customer_id,
            check.vehicle_id,
            items,
            notes=notes or (f"Service check findings: {summary}" if summary else ""),
            service_check_id=check.id,
        )
