from __future__ import annotations
from datetime import datetime
from typing import Optional

INVOICE_PREFIX = "INV"
ESTIMATE_PREFIX = "EST"


def _next_number(prefix: str, existing_count: int, now: Optional[datetime] = None) -> str:
    # séquence = nb de documents existants + 1, pas de remise à zéro mensuelle
    # unique dans la session uniquement (pas de compteur persistant)
    now = now or datetime.now()
    seq = max(0, int(existing_count)) + 1
    return f"{prefix}-{now.year:04d}{now.month:02d}-{seq:04d}"


def next_invoice_number(existing_count: int, now: Optional[datetime] = None, prefix: str = INVOICE_PREFIX) -> str:
    return _next_number(prefix, existing_count, now)


def next_estimate_number(existing_count: int, now: Optional[datetime] = None, prefix: str = ESTIMATE_PREFIX) -> str:
    return _next_number(prefix, existing_count, now)
