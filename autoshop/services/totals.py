from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, NamedTuple
import re

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


class Totals(NamedTuple):
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


# ---------- Saisie "souple" ---------- #

def _clean_decimal(val: Any) -> Decimal | None:
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, Decimal):
        return val if val.is_finite() else None
    if isinstance(val, (int, float)):
        try:
            d = Decimal(str(val))
        except InvalidOperation:
            return None
        return d if d.is_finite() else None
    s = re.sub(r"[^0-9,.\-]", "", str(val)).replace(",", ".")
    try:
        d = Decimal(s)
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def coerce_price(val: Any) -> Decimal:
    """Prix saisi -> Decimal >= 0 ("$49.99", "49,99", 49.99 ...). Négatif ou illisible -> 0."""
    d = _clean_decimal(val)
    if d is None or d < 0:
        return _ZERO
    return d


def coerce_quantity(val: Any) -> int:
    """Quantité saisie -> entier >= 0. Négatif ou illisible -> 0."""
    d = _clean_decimal(val)
    if d is None or d < 0:
        return 0
    return int(d)


# ---------- Calculs ---------- #

def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return Decimal(quantity) * Decimal(unit_price)


def compute_totals(items: Iterable[Any], tax_rate_percent: Any) -> Totals:
    """
    subtotal = somme des quantity * unit_price, dans l'ordre des lignes
    tax_amount = subtotal * taux / 100
    total = subtotal + tax_amount
    Aucun arrondi ici : l'arrondi à 2 décimales se fait à l'affichage.
    """
    subtotal = _ZERO
    for it in items:
        qty = it["quantity"] if isinstance(it, dict) else it.quantity
        price = it["unit_price"] if isinstance(it, dict) else it.unit_price
        subtotal += line_total(coerce_quantity(qty), coerce_price(price))
    rate = coerce_price(tax_rate_percent)
    tax_amount = subtotal * rate / _HUNDRED
    return Totals(subtotal, tax_amount, subtotal + tax_amount)


def round_money(value: Any) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_money(value: Any, symbol: str = "$") -> str:
    try:
        return f"{symbol}{round_money(value):,.2f}"
    except (InvalidOperation, TypeError, ValueError):
        return f"{symbol}0.00"
