from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import ValidationError

from autoshop.errors import ShopError, ValidationFailed
from autoshop.models.appointment import Appointment, AppointmentStatus
from autoshop.services.calendar_service import CalendarService
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)

AppointmentFilter = Literal["all", "upcoming", "today", "past"]


class AppointmentService:
    """
    Rendez-vous. Si l'agenda est branché, un évènement d'1h est créé ;
    un échec de synchro est journalisé mais ne bloque jamais la création locale.
    """

    def __init__(self, store: ShopStore, calendar: Optional[CalendarService] = None) -> None:
        self.store = store
        self.calendar = calendar
        self.last_sync_error: Optional[str] = None

    def get(self, appointment_id: str) -> Appointment:
        return self.store.appointments.require(appointment_id)

    def list_appointments(self, when: AppointmentFilter = "all", today: Optional[date] = None) -> List[Appointment]:
        today = today or date.today()
        items = sorted(self.store.appointments.list_all(), key=lambda a: a.starts_at())
        if when == "upcoming":
            return [a for a in items if a.date >= today]
        if when == "today":
            return [a for a in items if a.date == today]
        if when == "past":
            return [a for a in items if a.date < today]
        return items

    def _validate(self, data: Dict[str, Any]) -> Appointment:
        try:
            appt = Appointment.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (customer, vehicle, service, date).") from e
        if self.store.customers.get_by_id(appt.customer_id) is None:
            raise ValidationFailed(f"Unknown customer {appt.customer_id}")
        vehicle = self.store.vehicles.get_by_id(appt.vehicle_id)
        if vehicle is None or vehicle.customer_id != appt.customer_id:
            raise ValidationFailed(f"Vehicle {appt.vehicle_id} does not belong to customer {appt.customer_id}")
        return appt

    def create_appointment(self, data: Dict[str, Any]) -> Appointment:
        appt = self._validate({**data, "status": "scheduled"})
        self.store.appointments.add(appt)
        logger.info("Appointment %s created for %s", appt.id, appt.starts_at())
        self._sync_calendar(appt)
        return appt

    def _sync_calendar(self, appt: Appointment) -> None:
        self.last_sync_error = None
        if self.calendar is None:
            return
        customer = self.store.customers.require(appt.customer_id)
        vehicle = self.store.vehicles.require(appt.vehicle_id)
        try:
            event_id = self.calendar.create_event(
                summary=f"{appt.service} - {customer.name}",
                description=(
                    f"Vehicle: {vehicle.display_name}\n"
                    f"Customer: {customer.name}\n"
                    f"Phone: {customer.phone or ''}\n"
                    f"Notes: {appt.notes or 'None'}"
                ),
                start=appt.starts_at(),
                end=appt.ends_at(),
                customer_email=customer.email,
            )
        except ShopError as e:
            self.last_sync_error = e.message
            logger.warning("Calendar sync failed for appointment %s: %s", appt.id, e.message)
            return
        appt.calendar_event_id = event_id

    def update_appointment(self, appointment_id: str, changes: Dict[str, Any]) -> Appointment:
        current = self.get(appointment_id)
        updated = self._validate({**current.model_dump(), **changes, "id": appointment_id})
        self.store.appointments.update(updated)
        return updated

    def set_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        return self.update_appointment(appointment_id, {"status": status})

    def delete_appointment(self, appointment_id: str) -> None:
        appt = self.get(appointment_id)
        self.store.appointments.delete(appointment_id)
        if self.calendar and appt.calendar_event_id:
            try:
                self.calendar.delete_event(appt.calendar_event_id)
            except ShopError as e:
                logger.warning("Calendar event %s not removed: %s", appt.calendar_event_id, e.message)
        logger.info("Appointment %s deleted", appointment_id)

    def appointment_stats(self, appointment_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        appt = self.get(appointment_id)
        related = self.store.invoices.find(
            lambda i: i.customer_id == appt.customer_id and i.vehicle_id == appt.vehicle_id
        )
        return {
            "customer": self.store.customers.get_by_id(appt.customer_id),
            "vehicle": self.store.vehicles.get_by_id(appt.vehicle_id),
            "related_invoices": len(related),
            "is_upcoming": appt.date >= now.date(),
            "days_since": (now.date() - appt.date).days,
        }
