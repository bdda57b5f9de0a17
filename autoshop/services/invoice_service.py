# autoshop/services/invoice_service.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Literal, Optional

from autoshop.errors import InvalidTransition, ValidationFailed
from autoshop.models.invoice import Invoice, InvoiceStatus, LineItem
from autoshop.services import documents, integrity, lifecycle
from autoshop.services.notification_service import NotificationService, Recipient
from autoshop.services.numbering import next_invoice_number
from autoshop.services.pdf_service import PdfService
from autoshop.services.totals import format_money
from autoshop.settings import ShopSettings
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)

InvoiceFilter = Literal["all", "paid", "sent", "draft", "overdue"]


class InvoiceService:
    def __init__(
        self,
        store: ShopStore,
        settings: ShopSettings,
        notifier: Optional[NotificationService] = None,
        pdf: Optional[PdfService] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.notifier = notifier
        self.pdf = pdf

    # ----------- CRUD/list -----------
    def get(self, invoice_id: str) -> Invoice:
        return self.store.invoices.require(invoice_id)

    def list_invoices(
        self,
        status: InvoiceFilter = "all",
        search: str = "",
        now: Optional[datetime] = None,
    ) -> List[Invoice]:
        now = now or datetime.now()
        term = (search or "").strip().casefold()
        out: List[Invoice] = []
        for inv in self.store.invoices.list_all():
            # filtre sur le statut affiché : une facture échue se range sous "overdue"
            if status != "all" and lifecycle.effective_status(inv, now) != status:
                continue
            if term and not self._matches(inv, term):
                continue
            out.append(inv)
        return out

    def _matches(self, inv: Invoice, term: str) -> bool:
        customer = self.store.customers.get_by_id(inv.customer_id)
        vehicle = self.store.vehicles.get_by_id(inv.vehicle_id)
        haystack = [inv.number or "", inv.notes]
        if customer:
            haystack.append(customer.name)
        if vehicle:
            haystack += [vehicle.make, vehicle.model, vehicle.license_plate]
        return any(term in (h or "").casefold() for h in haystack)

    def list_by_customer(self, customer_id: str) -> List[Invoice]:
        return self.store.invoices.find(lambda i: i.customer_id == customer_id)

    def create_invoice(
        self,
        customer_id: str,
        vehicle_id: str,
        items: Iterable[LineItem | Dict[str, Any]],
        *,
        notes: str = "",
        due_date: Optional[datetime] = None,
        tax_rate: Optional[Decimal] = None,
        service_check_id: Optional[str] = None,
        source_estimate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        now = now or datetime.now()
        documents.validate_parties(self.store, customer_id, vehicle_id)
        lines = documents.to_line_items(items)
        if not lines:
            raise ValidationFailed("Add at least one item")
        inv = documents.apply_changes(
            Invoice(customer_id=customer_id, vehicle_id=vehicle_id, created_at=now),
            {
                "items": lines,
                "notes": notes or "",
                "due_date": due_date or now + timedelta(days=self.settings.payment_terms_days),
                "tax_rate": self.settings.default_tax_rate if tax_rate is None else tax_rate,
                "service_check_id": service_check_id,
                "source_estimate_id": source_estimate_id,
            },
        )
        documents.validate_document(self.store, inv)
        # numéro auto
        inv.number = documents.allocate_number(
            self.store.invoices, next_invoice_number, now, self.settings.numbering.invoice_prefix
        )
        self.store.invoices.add(inv)
        logger.info("Invoice %s created (total %s)", inv.number, format_money(inv.total))
        return inv

    def update_invoice(
        self,
        invoice_id: str,
        *,
        customer_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        items: Optional[Iterable[LineItem | Dict[str, Any]]] = None,
        tax_rate: Optional[Decimal] = None,
        notes: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Invoice:
        with self.store.lock_for(invoice_id):
            current = self.get(invoice_id)
            updated = documents.apply_changes(current, {
                "customer_id": customer_id,
                "vehicle_id": vehicle_id,
                "items": list(items) if items is not None else None,
                "tax_rate": tax_rate,
                "notes": notes,
                "due_date": due_date,
            })
            documents.validate_document(self.store, updated)
            self.store.invoices.update(updated)
        return updated

    # ----------- lignes -----------
    def _edit_lines(self, invoice_id: str, edit) -> Invoice:
        with self.store.lock_for(invoice_id):
            draft = self.get(invoice_id).model_copy(deep=True)
            edit(draft)
            documents.validate_document(self.store, draft)
            self.store.invoices.update(draft)
        return draft

    def add_item(self, invoice_id: str, product_id: str, quantity: Any = 1) -> Invoice:
        product = self.store.products.require(product_id)
        return self._edit_lines(invoice_id, lambda d: documents.add_product_line(d, product, quantity))

    def update_item_quantity(self, invoice_id: str, item_id: str, quantity: Any) -> Invoice:
        return self._edit_lines(invoice_id, lambda d: documents.set_line_quantity(d, item_id, quantity))

    def remove_item(self, invoice_id: str, item_id: str) -> Invoice:
        return self._edit_lines(invoice_id, lambda d: documents.drop_line(d, item_id))

    # ----------- statut -----------
    def update_status(self, invoice_id: str, status: InvoiceStatus, now: Optional[datetime] = None) -> Invoice:
        with self.store.lock_for(invoice_id):
            draft = self.get(invoice_id).model_copy(deep=True)
            previous = draft.status
            lifecycle.apply_transition(draft, status, at=now)
            self.store.invoices.update(draft)
        if previous != status:
            logger.info("Invoice %s: %s -> %s", draft.number, previous, status)
        return draft

    def mark_paid(self, invoice_id: str, now: Optional[datetime] = None) -> Invoice:
        return self.update_status(invoice_id, "paid", now=now)

    def overdue_invoices(self, now: Optional[datetime] = None) -> List[Invoice]:
        return self.list_invoices("overdue", now=now)

    def send(self, invoice_id: str, channel: Literal["email", "sms"] = "email", now: Optional[datetime] = None) -> Invoice:
        """Envoie la facture au client puis passe en 'sent'. Échec d'envoi -> statut inchangé."""
        inv = self.get(invoice_id)
        if not lifecycle.can_transition(inv, "sent", now):
            raise InvalidTransition("invoice", inv.status, "sent")
        if self.notifier is None:
            raise ValidationFailed("No notification service configured")
        customer = self.store.customers.require(inv.customer_id)
        company = self.settings.company.name
        message = (
            f"Hello {customer.name},\n\n"
            f"Please find invoice {inv.number} from {company}.\n"
            f"Total due: {format_money(inv.total, self.settings.currency_symbol)}, "
            f"due by {inv.due_date:%Y-%m-%d}.\n\nThank you for your business!"
        )
        self.notifier.send(
            channel,
            [Recipient(name=customer.name, email=customer.email, phone=customer.phone)],
            message,
            subject=f"Invoice {inv.number} from {company}",
        )
        logger.info("Invoice %s sent to %s", inv.number, customer.name)
        return self.update_status(invoice_id, "sent", now=now)

    # ----------- suppression -----------
    def delete_invoice(self, invoice_id: str) -> None:
        with self.store.lock_for(invoice_id):
            self.get(invoice_id)
            integrity.ensure_invoice_deletable(self.store, invoice_id)
            self.store.invoices.delete(invoice_id)
        logger.info("Invoice %s deleted", invoice_id)

    # ----------- stats -----------
    def invoice_stats(self, invoice_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        inv = self.get(invoice_id)
        related = self.store.appointments.find(
            lambda a: a.customer_id == inv.customer_id and a.vehicle_id == inv.vehicle_id
        )
        return {
            "customer": self.store.customers.get_by_id(inv.customer_id),
            "vehicle": self.store.vehicles.get_by_id(inv.vehicle_id),
            "related_appointments": len(related),
            "is_overdue": lifecycle.is_overdue(inv, now),
            "days_since_created": (now - inv.created_at).days,
        }

    # ----------- export PDF ----------
    def export_pdf(self, invoice_id: str, out_dir: Optional[str] = None) -> str:
        if self.pdf is None:
            raise ValidationFailed("No PDF service configured")
        inv = self.get(invoice_id)
        return self.pdf.render(
            inv,
            self.store.customers.get_by_id(inv.customer_id),
            self.store.vehicles.get_by_id(inv.vehicle_id),
            out_dir=out_dir,
        )
