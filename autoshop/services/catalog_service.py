from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import ValidationError

from autoshop.errors import ValidationFailed
from autoshop.models.product import Product
from autoshop.services import integrity
from autoshop.services.totals import coerce_price
from autoshop.storage.store import ShopStore

logger = logging.getLogger(__name__)

ProductFilter = Literal["all", "service", "parts", "low-stock", "out-of-stock"]


class CatalogService:
    """
    Catalogue produits & prestations.
    - Normalise le prix saisi ("$18.50", "18,50" -> Decimal)
    - Suppression refusée si le produit figure sur une facture ou un devis
    """

    def __init__(self, store: ShopStore) -> None:
        self.store = store

    @staticmethod
    def _ensure_defaults(payload: Dict[str, Any]) -> Dict[str, Any]:
        if "price" in payload:
            payload["price"] = coerce_price(payload["price"])
        if payload.get("description") is None:
            payload["description"] = ""
        return payload

    def list_products(self, kind: ProductFilter = "all", search: str = "") -> List[Product]:
        term = (search or "").strip().casefold()
        out: List[Product] = []
        for p in self.store.products.list_all():
            if term and not any(term in s.casefold() for s in (p.name, p.description, p.category)):
                continue
            if kind == "service" and not p.is_service:
                continue
            if kind == "parts" and p.category.casefold() != "parts":
                continue
            if kind == "low-stock" and not p.is_low_stock:
                continue
            if kind == "out-of-stock" and not p.is_out_of_stock:
                continue
            out.append(p)
        return out

    def get_product(self, product_id: str) -> Product:
        return self.store.products.require(product_id)

    def add_product(self, data: Dict[str, Any] | Product) -> Product:
        try:
            p = data if isinstance(data, Product) else Product(**self._ensure_defaults(dict(data)))
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (name, price).") from e
        self.store.products.add(p)
        logger.info("Product %s added", p.name)
        return p

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> Product:
        current = self.get_product(product_id)
        payload = self._ensure_defaults({**current.model_dump(), **changes, "id": product_id})
        try:
            updated = Product.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed("Please fill in all required fields (name, price).") from e
        self.store.products.update(updated)
        return updated

    def adjust_stock(self, product_id: str, delta: int) -> Product:
        p = self.get_product(product_id)
        if p.is_service:
            return p
        if p.stock + delta < 0:
            raise ValidationFailed(f"Not enough stock for {p.name} ({p.stock} left)")
        return self.update_product(product_id, {"stock": p.stock + delta})

    def delete_product(self, product_id: str) -> None:
        self.get_product(product_id)
        integrity.ensure_product_deletable(self.store, product_id)
        self.store.products.delete(product_id)
        logger.info("Product %s deleted", product_id)

    def product_stats(self, product_id: str) -> Dict[str, Any]:
        self.get_product(product_id)
        invoice_usage = sum(
            sum(1 for it in inv.items if it.product_id == product_id)
            for inv in self.store.invoices.list_all()
        )
        estimate_usage = sum(
            sum(1 for it in est.items if it.product_id == product_id)
            for est in self.store.estimates.list_all()
        )
        revenue = Decimal("0")
        for inv in self.store.invoices.find(lambda i: i.status == "paid"):
            revenue += sum((it.line_total for it in inv.items if it.product_id == product_id), Decimal("0"))
        return {
            "invoice_usage": invoice_usage,
            "estimate_usage": estimate_usage,
            "total_usage": invoice_usage + estimate_usage,
            "total_revenue": revenue,
        }

    def find_by_name(self, name: str) -> Optional[Product]:
        lbl = (name or "").strip().casefold()
        return self.store.products.find_one(lambda p: p.name.strip().casefold() == lbl)
