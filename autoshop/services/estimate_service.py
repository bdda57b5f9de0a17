from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Literal, Optional

from autoshop.errors import AlreadyConverted, InvalidTransition, ValidationFailed
from autoshop.models.estimate import Estimate, EstimateStatus
from autoshop.models.invoice import Invoice, LineItem
from autoshop.services import documents, lifecycle
from autoshop.services.invoice_service import InvoiceService
from autoshop.services.notification_service import NotificationService, Recipient
from autoshop.services.numbering import next_estimate_number
from autoshop.services.pdf_service import PdfService
from autoshop.services.totals import format_money
from autoshop.settings import ShopSettings
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)

EstimateFilter = Literal["all", "draft", "sent", "approved", "declined", "expired"]


class EstimateService:
    """
    Devis : création, édition (refusée une fois converti), statut, envoi,
    conversion en facture.
    """

    def __init__(
        self,
        store: ShopStore,
        settings: ShopSettings,
        invoices: InvoiceService,
        notifier: Optional[NotificationService] = None,
        pdf: Optional[PdfService] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.invoices = invoices
        self.notifier = notifier
        self.pdf = pdf

    # ----- Lecture ----- #

    def get(self, estimate_id: str) -> Estimate:
        return self.store.estimates.require(estimate_id)

    def list_estimates(self, status: EstimateFilter = "all", now: Optional[datetime] = None) -> List[Estimate]:
        now = now or datetime.now()
        if status == "all":
            return self.store.estimates.list_all()
        return [e for e in self.store.estimates.list_all() if lifecycle.effective_status(e, now) == status]

    # ----- Création / édition ----- #

    def create_estimate(
        self,
        customer_id: str,
        vehicle_id: str,
        items: Iterable[LineItem | Dict[str, Any]],
        *,
        notes: str = "",
        valid_until: Optional[datetime] = None,
        tax_rate: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> Estimate:
        now = now or datetime.now()
        documents.validate_parties(self.store, customer_id, vehicle_id)
        lines = documents.to_line_items(items)
        if not lines:
            raise ValidationFailed("Add at least one item")
        est = documents.apply_changes(
            Estimate(customer_id=customer_id, vehicle_id=vehicle_id, created_at=now),
            {
                "items": lines,
                "notes": notes or "",
                "valid_until": valid_until or now + timedelta(days=self.settings.estimate_validity_days),
                "tax_rate": self.settings.default_tax_rate if tax_rate is None else tax_rate,
            },
        )
        documents.validate_document(self.store, est)
        est.number = documents.allocate_number(
            self.store.estimates, next_estimate_number, now, self.settings.numbering.estimate_prefix
        )
        self.store.estimates.add(est)
        logger.info("Estimate %s created (total %s)", est.number, format_money(est.total))
        return est

    def _require_editable(self, est: Estimate) -> None:
        # converti = figé, lignes et totaux purement informatifs
        if est.converted_to_invoice:
            raise AlreadyConverted(est.number or est.id, est.invoice_id)

    def update_estimate(
        self,
        estimate_id: str,
        *,
        customer_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        items: Optional[Iterable[LineItem | Dict[str, Any]]] = None,
        tax_rate: Optional[Decimal] = None,
        notes: Optional[str] = None,
        valid_until: Optional[datetime] = None,
    ) -> Estimate:
        with self.store.lock_for(estimate_id):
            current = self.get(estimate_id)
            self._require_editable(current)
            updated = documents.apply_changes(current, {
                "customer_id": customer_id,
                "vehicle_id": vehicle_id,
                "items": list(items) if items is not None else None,
                "tax_rate": tax_rate,
                "notes": notes,
                "valid_until": valid_until,
            })
            documents.validate_document(self.store, updated)
            self.store.estimates.update(updated)
        return updated

    def _edit_lines(self, estimate_id: str, edit) -> Estimate:
        with self.store.lock_for(estimate_id):
            draft = self.get(estimate_id).model_copy(deep=True)
            self._require_editable(draft)
            edit(draft)
            documents.validate_document(self.store, draft)
            self.store.estimates.update(draft)
        return draft

    def add_item(self, estimate_id: str, product_id: str, quantity: Any = 1) -> Estimate:
        product = self.store.products.require(product_id)
        return self._edit_lines(estimate_id, lambda d: documents.add_product_line(d, product, quantity))

    def update_item_quantity(self, estimate_id: str, item_id: str, quantity: Any) -> Estimate:
        return self._edit_lines(estimate_id, lambda d: documents.set_line_quantity(d, item_id, quantity))

    def remove_item(self, estimate_id: str, item_id: str) -> Estimate:
        return self._edit_lines(estimate_id, lambda d: documents.drop_line(d, item_id))

    def delete_estimate(self, estimate_id: str) -> None:
        with self.store.lock_for(estimate_id):
            self.get(estimate_id)
            self.store.estimates.delete(estimate_id)
        logger.info("Estimate %s deleted", estimate_id)

    # ----- Statut / envoi ----- #

    def update_status(self, estimate_id: str, status: EstimateStatus, now: Optional[datetime] = None) -> Estimate:
        now = now or datetime.now()
        with self.store.lock_for(estimate_id):
            draft = self.get(estimate_id).model_copy(deep=True)
            previous = lifecycle.current_status(draft, now)
            lifecycle.apply_transition(draft, status, at=now)
            if previous == "expired" and status == "sent":
                # renvoi d'un devis échu : nouvelle période de validité
                draft.valid_until = now + timedelta(days=self.settings.estimate_validity_days)
            self.store.estimates.update(draft)
        if previous != status:
            logger.info("Estimate %s: %s -> %s", draft.number, previous, status)
        return draft

    def _valid_until_after_send(self, est: Estimate, now: datetime) -> datetime:
        if lifecycle.current_status(est, now) == "expired":
            return now + timedelta(days=self.settings.estimate_validity_days)
        return est.valid_until

    def approve(self, estimate_id: str, now: Optional[datetime] = None) -> Estimate:
        return self.update_status(estimate_id, "approved", now=now)

    def decline(self, estimate_id: str, now: Optional[datetime] = None) -> Estimate:
        return self.update_status(estimate_id, "declined", now=now)

    def send(self, estimate_id: str, channel: Literal["email", "sms"] = "email", now: Optional[datetime] = None) -> Estimate:
        now = now or datetime.now()
        est = self.get(estimate_id)
        if not lifecycle.can_transition(est, "sent", now):
            raise InvalidTransition("estimate", lifecycle.current_status(est, now), "sent")
        if self.notifier is None:
            raise ValidationFailed("No notification service configured")
        customer = self.store.customers.require(est.customer_id)
        company = self.settings.company.name
        message = (
            f"Hello {customer.name},\n\n"
            f"Here is estimate {est.number} from {company}.\n"
            f"Estimated total: {format_money(est.total, self.settings.currency_symbol)}, "
            f"valid until {self._valid_until_after_send(est, now):%Y-%m-%d}."
        )
        self.notifier.send(
            channel,
            [Recipient(name=customer.name, email=customer.email, phone=customer.phone)],
            message,
            subject=f"Estimate {est.number} from {company}",
        )
        logger.info("Estimate %s sent to %s", est.number, customer.name)
        return self.update_status(estimate_id, "sent", now=now)

    # ----- Conversion ----- #

    def convert_to_invoice(self, estimate_id: str, now: Optional[datetime] = None) -> Invoice:
        """
        Crée une facture à partir du devis (copie indépendante des lignes,
        échéance = maintenant + délai de paiement) puis marque le devis converti.
        """
        now = now or datetime.now()
        with self.store.lock_for(estimate_id):
            est = self.get(estimate_id)
            if est.converted_to_invoice:
                raise AlreadyConverted(est.number or est.id, est.invoice_id)
            if not lifecycle.can_transition(est, "approved", now):
                raise InvalidTransition("estimate", lifecycle.current_status(est, now), "approved")

            inv = self.invoices.create_invoice(
                est.customer_id,
                est.vehicle_id,
                [it.model_copy(deep=True) for it in est.items],
                notes=" ".join(p for p in (f"Converted from estimate {est.number}.", est.notes.strip()) if p),
                due_date=now + timedelta(days=self.settings.payment_terms_days),
                tax_rate=est.tax_rate,
                source_estimate_id=est.id,
                now=now,
            )

            converted = est.model_copy(deep=True)
            converted.status = "approved"
            converted.decided_at = converted.decided_at or now
            converted.converted_to_invoice = True
            converted.invoice_id = inv.id
            self.store.estimates.update(converted)
        logger.info("Estimate %s converted to invoice %s", est.number, inv.number)
        return inv

    # ----- Stats / PDF ----- #

    def estimate_stats(self, estimate_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        est = self.get(estimate_id)
        related = self.store.appointments.find(
            lambda a: a.customer_id == est.customer_id and a.vehicle_id == est.vehicle_id
        )
        return {
            "customer": self.store.customers.get_by_id(est.customer_id),
            "vehicle": self.store.vehicles.get_by_id(est.vehicle_id),
            "related_appointments": len(related),
            "is_expired": lifecycle.is_expired(est, now),
            "days_since_created": (now - est.created_at).days,
        }

    def export_pdf(self, estimate_id: str, out_dir: Optional[str] = None) -> str:
        if self.pdf is None:
            raise ValidationFailed("No PDF service configured")
        est = self.get(estimate_id)
        return self.pdf.render(
            est,
            self.store.customers.get_by_id(est.customer_id),
            self.store.vehicles.get_by_id(est.vehicle_id),
            out_dir=out_dir,
        )
