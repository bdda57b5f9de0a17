from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Literal, Optional

from pydantic import BaseModel

from autoshop.errors import ShopError, ValidationFailed
from autoshop.services import lifecycle
from autoshop.services.notification_service import NotificationService, Recipient
from autoshop.services.totals import format_money
from autoshop.settings import ShopSettings
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)

ReminderKind = Literal["appointment", "mot", "overdue_invoice"]


class Reminder(BaseModel):
    kind: ReminderKind
    target_id: str
    customer_id: str
    due: date
    subject: str
    message: str


class ReminderOutcome(BaseModel):
    reminder: Reminder
    sent: bool
    error: Optional[str] = None


class ReminderService:
    """
    Rappels calculés à la date du jour :
    - RDV à J-N (reminders.appointment_days_before)
    - fin de validité MOT dans les N jours (reminders.mot_days_before)
    - factures en retard (lecture dérivée, pas de statut stocké requis)
    """

    def __init__(self, store: ShopStore, settings: ShopSettings, notifier: Optional[NotificationService] = None):
        self.store = store
        self.settings = settings
        self.notifier = notifier

    def due_reminders(self, now: Optional[datetime] = None) -> List[Reminder]:
        now = now or datetime.now()
        today = now.date()
        conf = self.settings.reminders
        shop = self.settings.company.name
        out: List[Reminder] = []

        appt_day = today + timedelta(days=conf.appointment_days_before)
        for a in self.store.appointments.find(lambda a: a.status == "scheduled" and a.date == appt_day):
            vehicle = self.store.vehicles.get_by_id(a.vehicle_id)
            what = vehicle.display_name if vehicle else "your vehicle"
            out.append(Reminder(
                kind="appointment", target_id=a.id, customer_id=a.customer_id, due=a.date,
                subject=f"Appointment reminder - {shop}",
                message=f"Reminder: {a.service} for {what} on {a.date:%Y-%m-%d} at {a.time:%H:%M}.",
            ))

        mot_limit = today + timedelta(days=conf.mot_days_before)
        for v in self.store.vehicles.find(lambda v: v.mot_expiry is not None and today <= v.mot_expiry <= mot_limit):
            out.append(Reminder(
                kind="mot", target_id=v.id, customer_id=v.customer_id, due=v.mot_expiry,
                subject=f"MOT due soon - {shop}",
                message=f"The MOT for {v.display_name} ({v.license_plate}) expires on {v.mot_expiry:%Y-%m-%d}. Book your test with us.",
            ))

        if conf.overdue_invoices:
            for inv in self.store.invoices.find(lambda i: lifecycle.is_overdue(i, now)):
                out.append(Reminder(
                    kind="overdue_invoice", target_id=inv.id, customer_id=inv.customer_id, due=inv.due_date.date(),
                    subject=f"Invoice {inv.number} is overdue",
                    message=(
                        f"Invoice {inv.number} for {format_money(inv.total, self.settings.currency_symbol)} "
                        f"was due on {inv.due_date:%Y-%m-%d}. Please arrange payment."
                    ),
                ))
        return out

    def send_reminders(self, now: Optional[datetime] = None, channel: Literal["email", "sms"] = "email") -> List[ReminderOutcome]:
        if self.notifier is None:
            raise ValidationFailed("No notification service configured")
        outcomes: List[ReminderOutcome] = []
        for r in self.due_reminders(now):
            customer = self.store.customers.get_by_id(r.customer_id)
            if customer is None:
                outcomes.append(ReminderOutcome(reminder=r, sent=False, error="customer not found"))
                continue
            try:
                self.notifier.send(
                    channel,
                    [Recipient(name=customer.name, email=customer.email, phone=customer.phone)],
                    f"Hello {customer.name},\n\n{r.message}",
                    subject=r.subject,
                )
            except ShopError as e:
                logger.warning("Reminder %s/%s not sent: %s", r.kind, r.target_id, e.message)
                outcomes.append(ReminderOutcome(reminder=r, sent=False, error=e.message))
                continue
            outcomes.append(ReminderOutcome(reminder=r, sent=True))
        logger.info("Reminders: %d sent, %d failed", sum(o.sent for o in outcomes), sum(not o.sent for o in outcomes))
        return outcomes
