from __future__ import annotations
from typing import Dict

from autoshop.errors import ReferentialIntegrityError
from autoshop.storage.store import ShopStore


def _nonzero(counts: Dict[str, int]) -> Dict[str, int]:
    return {k: n for k, n in counts.items() if n}


def customer_references(store: ShopStore, customer_id: str) -> Dict[str, int]:
    return _nonzero({
        "vehicles": len(store.vehicles.find(lambda v: v.customer_id == customer_id)),
        "appointments": len(store.appointments.find(lambda a: a.customer_id == customer_id)),
        "invoices": len(store.invoices.find(lambda i: i.customer_id == customer_id)),
        "estimates": len(store.estimates.find(lambda e: e.customer_id == customer_id)),
        "service_checks": len(store.service_checks.find(lambda c: c.customer_id == customer_id)),
    })


def vehicle_references(store: ShopStore, vehicle_id: str) -> Dict[str, int]:
    return _nonzero({
        "appointments": len(store.appointments.find(lambda a: a.vehicle_id == vehicle_id)),
        "invoices": len(store.invoices.find(lambda i: i.vehicle_id == vehicle_id)),
        "estimates": len(store.estimates.find(lambda e: e.vehicle_id == vehicle_id)),
        "service_checks": len(store.service_checks.find(lambda c: c.vehicle_id == vehicle_id)),
    })


def product_references(store: ShopStore, product_id: str) -> Dict[str, int]:
    def uses(doc) -> bool:
        return any(it.product_id == product_id for it in doc.items)
    return _nonzero({
        "invoices": len(store.invoices.find(uses)),
        "estimates": len(store.estimates.find(uses)),
    })


def invoice_references(store: ShopStore, invoice_id: str) -> Dict[str, int]:
    return _nonzero({
        "estimates": len(store.estimates.find(lambda e: e.invoice_id == invoice_id)),
    })


# ---------- Gardes avant suppression ---------- #

def ensure_customer_deletable(store: ShopStore, customer_id: str) -> None:
    refs = customer_references(store, customer_id)
    if refs:
        raise ReferentialIntegrityError("customer", customer_id, refs)


def ensure_vehicle_deletable(store: ShopStore, vehicle_id: str) -> None:
    refs = vehicle_references(store, vehicle_id)
    if refs:
        raise ReferentialIntegrityError("vehicle", vehicle_id, refs)


def ensure_product_deletable(store: ShopStore, product_id: str) -> None:
    refs = product_references(store, product_id)
    if refs:
        raise ReferentialIntegrityError("product", product_id, refs)


def ensure_invoice_deletable(store: ShopStore, invoice_id: str) -> None:
    refs = invoice_references(store, invoice_id)
    if refs:
        raise ReferentialIntegrityError("invoice", invoice_id, refs)
