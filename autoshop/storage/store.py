from __future__ import annotations

import threading
from collections import defaultdict
from typing import DefaultDict

from autoshop.models.appointment import Appointment
from autoshop.models.customer import Customer
from autoshop.models.estimate import Estimate
from autoshop.models.invoice import Invoice
from autoshop.models.product import Product
from autoshop.models.service_check import ServiceCheck
from autoshop.models.vehicle import Vehicle
from autoshop.storage.repo import MemoryRepository


class ShopStore:
    """Propriétaire unique des collections en mémoire, injecté dans les services."""

    def __init__(self) -> None:
        self.customers: MemoryRepository[Customer] = MemoryRepository("customer")
        self.vehicles: MemoryRepository[Vehicle] = MemoryRepository("vehicle")
        self.products: MemoryRepository[Product] = MemoryRepository("product")
        self.appointments: MemoryRepository[Appointment] = MemoryRepository("appointment")
        self.invoices: MemoryRepository[Invoice] = MemoryRepository("invoice")
        self.estimates: MemoryRepository[Estimate] = MemoryRepository("estimate")
        self.service_checks: MemoryRepository[ServiceCheck] = MemoryRepository("service check")

        self._locks_guard = threading.Lock()
        self._doc_locks: DefaultDict[str, threading.RLock] = defaultdict(threading.RLock)

    def lock_for(self, doc_id: str) -> threading.RLock:
        # un verrou par document : les mutations d'une même facture/devis sont sérialisées
        with self._locks_guard:
            return self._doc_locks[str(doc_id)]
