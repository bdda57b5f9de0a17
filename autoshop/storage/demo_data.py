from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from autoshop.models.appointment import Appointment
from autoshop.models.customer import Customer
from autoshop.models.invoice import Invoice, LineItem
from autoshop.models.product import Product
from autoshop.models.vehicle import Vehicle
from autoshop.storage.store import ShopStore

D = Decimal


def _oil(item_id: str, qty: int = 1) -> LineItem:
    return LineItem(id=item_id, product_id="1", name="Oil Change Service",
                    description="Full synthetic oil change with filter", quantity=qty, unit_price=D("49.99"))

def _pads(item_id: str, qty: int = 1) -> LineItem:
    return LineItem(id=item_id, product_id="2", name="Brake Pads",
                    description="Premium ceramic brake pads", quantity=qty, unit_price=D("89.99"))

def _filter(item_id: str, qty: int = 1) -> LineItem:
    return LineItem(id=item_id, product_id="3", name="Air Filter",
                    description="Engine air filter replacement", quantity=qty, unit_price=D("24.99"))


def seed_demo(store: ShopStore) -> ShopStore:
    """Jeu de démonstration (2 clients, 2 véhicules, 3 produits, 2 RDV, 3 factures)."""
    store.customers.add(Customer(id="1", name="John Smith", email="john@example.com",
                                 phone="+1 (555) 123-4567", address="123 Main St, City, State 12345",
                                 created_at=datetime(2024, 1, 15)))
    store.customers.add(Customer(id="2", name="Sarah Johnson", email="sarah@example.com",
                                 phone="+1 (555) 987-6543", address="456 Oak Ave, City, State 12345",
                                 created_at=datetime(2024, 2, 20)))

    store.vehicles.add(Vehicle(id="1", customer_id="1", make="Toyota", model="Camry", year=2020,
                               vin="1HGBH41JXMN109186", license_plate="ABC123", color="Silver"))
    store.vehicles.add(Vehicle(id="2", customer_id="2", make="Honda", model="Civic", year=2019,
                               vin="2HGFC2F59KH542891", license_plate="XYZ789", color="Blue"))

    store.products.add(Product(id="1", name="Oil Change Service", description="Full synthetic oil change with filter",
                               price=D("49.99"), category="Service", stock=100))
    store.products.add(Product(id="2", name="Brake Pads", description="Premium ceramic brake pads",
                               price=D("89.99"), category="Parts", stock=25))
    store.products.add(Product(id="3", name="Air Filter", description="Engine air filter replacement",
                               price=D("24.99"), category="Parts", stock=50))

    store.appointments.add(Appointment(id="1", customer_id="1", vehicle_id="1", date=date(2024, 6, 26),
                                       time=time(10, 0), service="Oil Change",
                                       notes="Customer requested synthetic oil"))
    store.appointments.add(Appointment(id="2", customer_id="2", vehicle_id="2", date=date(2024, 6, 27),
                                       time=time(14, 0), service="Brake Inspection",
                                       notes="Customer reports squeaking noise"))

    store.invoices.add(Invoice(id="1", number="INV-202407-0001", customer_id="1", vehicle_id="1",
                               items=[_oil("item-1"), _filter("item-2")], tax_rate=D("8.5"), status="paid",
                               created_at=datetime(2024, 6, 20), due_date=datetime(2024, 7, 20),
                               notes="Thank you for your business!"))
    store.invoices.add(Invoice(id="2", number="INV-202407-0002", customer_id="2", vehicle_id="2",
                               items=[_pads("item-3")], tax_rate=D("8.5"), status="sent",
                               created_at=datetime(2024, 6, 22), due_date=datetime(2024, 7, 22),
                               notes="Brake pads replacement completed. Please schedule follow-up inspection in 6 months."))
    store.invoices.add(Invoice(id="3", number="INV-202407-0003", customer_id="1", vehicle_id="1",
                               items=[_oil("item-4"), _pads("item-5", qty=2)], tax_rate=D("8.5"), status="sent",
                               created_at=datetime(2024, 6, 15), due_date=datetime(2024, 7, 15),
                               notes="Complete brake service package with oil change."))
    return store
