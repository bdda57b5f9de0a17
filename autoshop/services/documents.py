from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from autoshop.errors import NotFound, ValidationFailed
from autoshop.models.estimate import Estimate
from autoshop.models.invoice import Invoice, LineItem
from autoshop.models.product import Product
from autoshop.services.totals import coerce_price, coerce_quantity
from autoshop.storage.store import ShopStore

Document = Union[Invoice, Estimate]


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0] if e.errors() else {}
    loc = ".".join(str(p) for p in err.get("loc", ()))
    return f"{loc}: {err.get('msg', str(e))}" if loc else err.get("msg", str(e))


def whole_quantity(val: Any) -> int:
    """Quantité saisie -> entier > 0. Une fraction ("2.7") est refusée, pas tronquée."""
    qty = coerce_quantity(val)
    if qty <= 0 or coerce_price(val) != qty:
        raise ValidationFailed(f"Quantity must be a positive whole number (got {val!r})")
    return qty


def to_line_item(raw: Union[LineItem, Dict[str, Any]]) -> LineItem:
    """dict saisi -> LineItem ; quantité et prix nettoyés avant validation."""
    if isinstance(raw, LineItem):
        return raw.model_copy(deep=True)
    d = dict(raw)
    d.pop("line_total", None)
    if "price" in d and "unit_price" not in d:
        d["unit_price"] = d.pop("price")
    d["quantity"] = whole_quantity(d.get("quantity", 1))
    d["unit_price"] = coerce_price(d.get("unit_price", 0))
    try:
        return LineItem.model_validate(d)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid line item: {_first_error(e)}") from e


def to_line_items(items: Optional[Iterable[Union[LineItem, Dict[str, Any]]]]) -> List[LineItem]:
    return [to_line_item(it) for it in (items or [])]


def line_from_product(product: Product, quantity: Any = 1) -> LineItem:
    qty = whole_quantity(quantity)
    return LineItem(
        product_id=product.id,
        name=product.name,
        description=product.description,
        quantity=qty,
        unit_price=product.price,
    )


def validate_parties(store: ShopStore, customer_id: str, vehicle_id: str) -> None:
    if not customer_id or not vehicle_id:
        raise ValidationFailed("Customer and vehicle are required")
    if store.customers.get_by_id(customer_id) is None:
        raise ValidationFailed(f"Unknown customer {customer_id}")
    vehicle = store.vehicles.get_by_id(vehicle_id)
    if vehicle is None:
        raise ValidationFailed(f"Unknown vehicle {vehicle_id}")
    if vehicle.customer_id != customer_id:
        raise ValidationFailed(f"Vehicle {vehicle_id} does not belong to customer {customer_id}")


def validate_document(store: ShopStore, doc: Document) -> None:
    validate_parties(store, doc.customer_id, doc.vehicle_id)
    if not doc.items:
        raise ValidationFailed("Add at least one item")
    ids = [it.id for it in doc.items]
    if len(set(ids)) != len(ids):
        raise ValidationFailed("Duplicate line item id")


# ---------- Édition des lignes (sur une copie) ---------- #

def add_product_line(doc: Document, product: Product, quantity: Any = 1) -> LineItem:
    """Ajoute le produit ; si une ligne du même produit existe, cumule la quantité."""
    new_line = line_from_product(product, quantity)
    existing = doc.item_for_product(product.id)
    if existing is not None:
        existing.quantity = existing.quantity + new_line.quantity
        return existing
    doc.items = [*doc.items, new_line]
    return new_line


def set_line_quantity(doc: Document, item_id: str, quantity: Any) -> LineItem:
    qty = whole_quantity(quantity)
    for it in doc.items:
        if it.id == item_id:
            it.quantity = qty
            return it
    raise NotFound("line item", item_id)


def drop_line(doc: Document, item_id: str) -> None:
    kept = [it for it in doc.items if it.id != item_id]
    if len(kept) == len(doc.items):
        raise NotFound("line item", item_id)
    doc.items = kept


def apply_changes(doc: Document, changes: Dict[str, Any]) -> Document:
    """Copie modifiée du document ; la validation pydantic échoue avant toute mutation du stock."""
    data = doc.model_dump(exclude={"subtotal", "tax_amount", "total"})
    if "items" in changes and changes["items"] is not None:
        changes = {**changes, "items": [it.model_dump(exclude={"line_total"}) for it in to_line_items(changes["items"])]}
    data.update({k: v for k, v in changes.items() if v is not None})
    try:
        return type(doc).model_validate(data)
    except ValidationError as e:
        raise ValidationFailed(f"Invalid {type(doc).__name__.lower()}: {_first_error(e)}") from e


def allocate_number(repo, make_number, now, prefix: str) -> str:
    """
    Numéro = nb de documents + 1 ; si une suppression a libéré un rang déjà
    attribué, on avance jusqu'au premier numéro libre.
    """
    taken = {d.number for d in repo.list_all()}
    count = repo.count()
    number = make_number(count, now, prefix=prefix)
    while number in taken:
        count += 1
        number = make_number(count, now, prefix=prefix)
    return number
