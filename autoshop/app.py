from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from autoshop.models.invoice import Invoice
from autoshop.services import lifecycle
from autoshop.services.appointment_service import AppointmentService
from autoshop.services.calendar_service import CalendarService
from autoshop.services.catalog_service import CatalogService
from autoshop.services.customer_service import CustomerService
from autoshop.services.estimate_service import EstimateService
from autoshop.services.invoice_service import InvoiceService
from autoshop.services.notification_service import NotificationService
from autoshop.services.pdf_service import PdfService
from autoshop.services.reminder_service import ReminderService
from autoshop.services.service_check_service import ServiceCheckService
from autoshop.services.totals import format_money
from autoshop.services.vehicle_lookup import VehicleLookupService
from autoshop.services.vehicle_service import VehicleService
from autoshop.settings import ShopSettings, load_settings
from autoshop.storage.demo_data import seed_demo
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)


class ShopApp:
    """Point d'entrée unique des écrans : un store, tous les services câblés dessus."""

    def __init__(
        self,
        settings: Optional[ShopSettings] = None,
        store: Optional[ShopStore] = None,
        notifier: Optional[NotificationService] = None,
        calendar: Optional[CalendarService] = None,
        lookup: Optional[VehicleLookupService] = None,
        pdf: Optional[PdfService] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = store or ShopStore()
        self.notifier = notifier or NotificationService(self.settings)
        self.calendar = calendar or CalendarService(self.settings.calendar)
        self.lookup = lookup or VehicleLookupService(self.settings.mot)
        self.pdf = pdf or PdfService(self.settings)

        self.customers = CustomerService(self.store)
        self.vehicles = VehicleService(self.store, self.lookup)
        self.catalog = CatalogService(self.store)
        self.appointments = AppointmentService(self.store, self.calendar)
        self.invoices = InvoiceService(self.store, self.settings, self.notifier, self.pdf)
        self.estimates = EstimateService(self.store, self.settings, self.invoices, self.notifier, self.pdf)
        self.service_checks = ServiceCheckService(self.store, self.invoices)
        self.reminders = ReminderService(self.store, self.settings, self.notifier)

    # Etape : création (+ envoi immédiat optionnel)
    def create_invoice(
        self,
        customer_id: str,
        vehicle_id: str,
        items: Iterable[Any],
        *,
        send_immediately: bool = False,
        **kwargs: Any,
    ) -> Invoice:
        inv = self.invoices.create_invoice(customer_id, vehicle_id, items, **kwargs)
        if send_immediately:
            inv = self.invoices.send(inv.id)
        return inv

    def dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        invoices = self.store.invoices.list_all()
        paid = [i for i in invoices if i.status == "paid"]
        open_ = [i for i in invoices if i.status != "paid"]
        week_end = now.date() + timedelta(days=7)
        upcoming = [a for a in self.appointments.list_appointments("upcoming", today=now.date()) if a.date <= week_end]
        return {
            "customers": self.store.customers.count(),
            "vehicles": self.store.vehicles.count(),
            "revenue": sum((i.total for i in paid), Decimal("0")),
            "outstanding": sum((i.total for i in open_), Decimal("0")),
            "overdue_invoices": sum(1 for i in invoices if lifecycle.is_overdue(i, now)),
            "open_estimates": sum(
                1 for e in self.store.estimates.list_all()
                if lifecycle.effective_status(e, now) in ("draft", "sent")
            ),
            "upcoming_appointments": len(upcoming),
            "low_stock_products": len(self.catalog.list_products("low-stock")),
        }


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="autoshop", description="Auto shop back office")
    parser.add_argument("--demo", action="store_true", help="load the demo data set")
    parser.add_argument("--reminders", action="store_true", help="list reminders due today")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = ShopApp()
    if args.demo:
        seed_demo(app.store)

    sym = app.settings.currency_symbol
    for k, v in app.dashboard().items():
        print(f"{k:>22}: {format_money(v, sym) if isinstance(v, Decimal) else v}")
    if args.reminders:
        for r in app.reminders.due_reminders():
            print(f"[{r.kind}] {r.due.isoformat()} {r.subject}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
