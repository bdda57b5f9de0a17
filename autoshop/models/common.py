from __future__ import annotations
from datetime import datetime
from decimal import Decimal
import uuid

def gen_id() -> str:
    return str(uuid.uuid4())

def now() -> datetime:
    return datetime.now()

ZERO = Decimal("0")
