from __future__ import annotations
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from autoshop.errors import ValidationFailed
from autoshop.models.vehicle import Vehicle
from autoshop.services import integrity
from autoshop.services.vehicle_lookup import VehicleLookupResult, VehicleLookupService
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)


class VehicleService:
    def __init__(self, store: ShopStore, lookup: Optional[VehicleLookupService] = None):
        self.store = store
        self.lookup = lookup

    def list_vehicles(self, customer_id: Optional[str] = None) -> List[Vehicle]:
        if customer_id:
            return self.store.vehicles.find(lambda v: v.customer_id == customer_id)
        return self.store.vehicles.list_all()

    def get_by_id(self, vehicle_id: str) -> Vehicle:
        return self.store.vehicles.require(vehicle_id)

    def find_by_plate(self, plate: str) -> Optional[Vehicle]:
        norm = "".join((plate or "").split()).upper()
        return self.store.vehicles.find_one(lambda v: "".join(v.license_plate.split()).upper() == norm)

    def add_vehicle(self, data: Dict[str, Any] | Vehicle) -> Vehicle:
        try:
            vehicle = data if isinstance(data, Vehicle) else Vehicle(**data)
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (make, model, year).") from e
        if self.store.customers.get_by_id(vehicle.customer_id) is None:
            raise ValidationFailed(f"Unknown customer {vehicle.customer_id}")
        self.store.vehicles.add(vehicle)
        logger.info("Vehicle %s added for customer %s", vehicle.display_name, vehicle.customer_id)
        return vehicle

    def update_vehicle(self, vehicle_id: str, changes: Dict[str, Any]) -> Vehicle:
        current = self.get_by_id(vehicle_id)
        try:
            updated = Vehicle.model_validate({**current.model_dump(), **changes, "id": vehicle_id})
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (make, model, year).") from e
        if self.store.customers.get_by_id(updated.customer_id) is None:
            raise ValidationFailed(f"Unknown customer {updated.customer_id}")
        self.store.vehicles.update(updated)
        return updated

    def delete_vehicle(self, vehicle_id: str) -> None:
        self.get_by_id(vehicle_id)
        integrity.ensure_vehicle_deletable(self.store, vehicle_id)
        self.store.vehicles.delete(vehicle_id)
        logger.info("Vehicle %s deleted", vehicle_id)

    def vehicle_stats(self, vehicle_id: str) -> Dict[str, Any]:
        self.get_by_id(vehicle_id)
        appointments = self.store.appointments.find(lambda a: a.vehicle_id == vehicle_id)
        invoices = self.store.invoices.find(lambda i: i.vehicle_id == vehicle_id)
        last_service: Optional[date] = max((a.date for a in appointments), default=None)
        return {
            "appointment_count": len(appointments),
            "invoice_count": len(invoices),
            "total_spent": sum((i.total for i in invoices if i.status == "paid"), Decimal("0")),
            "last_service": last_service,
        }

    # ----- Pré-remplissage MOT ----- #

    def prefill_from_registration(self, registration: str) -> VehicleLookupResult:
        """Interroge l'API MOT ; les erreurs remontent telles quelles (pas de relance)."""
        if self.lookup is None:
            raise ValidationFailed("Vehicle lookup is not configured")
        return self.lookup.lookup(registration)

    def vehicle_from_lookup(self, customer_id: str, result: VehicleLookupResult) -> Vehicle:
        return self.add_vehicle({
            "customer_id": customer_id,
            "make": result.make,
            "model": result.model,
            "year": result.year or 0,
            "vin": result.vin,
            "license_plate": result.registration,
            "color": result.color,
            "mot_expiry": result.mot_expiry,
            "mot_history": [t.model_dump() for t in result.mot_history],
        })

    def refresh_mot(self, vehicle_id: str) -> Vehicle:
        vehicle = self.get_by_id(vehicle_id)
        result = self.prefill_from_registration(vehicle.license_plate)
        return self.update_vehicle(vehicle_id, {
            "mot_expiry": result.mot_expiry,
            "mot_history": [t.model_dump() for t in result.mot_history],
        })
