from __future__ import annotations
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Union

from autoshop.errors import InvalidTransition
from autoshop.models.estimate import Estimate
from autoshop.models.invoice import Invoice

# Transitions explicites autorisées, indexées par statut *effectif*.
# "overdue"/"expired" ne sont jamais stockés : ils se lisent par calcul
# (is_overdue / is_expired). La ligne "expired" s'applique donc à un devis
# dont la validité est dépassée, quel que soit son statut stocké.
INVOICE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"sent", "paid"}),
    "sent": frozenset({"paid", "draft"}),
    "paid": frozenset(),
}

ESTIMATE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"sent", "approved", "declined"}),
    "sent": frozenset({"approved", "declined", "draft"}),
    "approved": frozenset({"declined"}),
    "declined": frozenset({"sent"}),
    "expired": frozenset({"sent"}),
}

Document = Union[Invoice, Estimate]


def _table_for(doc: Document) -> Dict[str, FrozenSet[str]]:
    return ESTIMATE_TRANSITIONS if isinstance(doc, Estimate) else INVOICE_TRANSITIONS


def _doc_type(doc: Document) -> str:
    return "estimate" if isinstance(doc, Estimate) else "invoice"


def _storable(doc: Document) -> FrozenSet[str]:
    return frozenset().union(*_table_for(doc).values())


def current_status(doc: Document, now: Optional[datetime] = None) -> str:
    """Statut servant de point de départ : effectif pour un devis non converti."""
    if isinstance(doc, Estimate) and not doc.converted_to_invoice:
        return effective_status(doc, now)
    return doc.status


def can_transition(doc: Document, target: str, now: Optional[datetime] = None) -> bool:
    if isinstance(doc, Estimate) and doc.converted_to_invoice:
        return doc.status == target
    current = current_status(doc, now)
    if current == target:
        return True
    return target in _table_for(doc).get(current, frozenset())


def check_transition(doc: Document, target: str, now: Optional[datetime] = None) -> None:
    if target not in _storable(doc) or not can_transition(doc, target, now):
        raise InvalidTransition(_doc_type(doc), current_status(doc, now), target)


def apply_transition(doc: Document, target: str, at: Optional[datetime] = None) -> Document:
    """Applique la transition sur doc (en place) et horodate."""
    at = at or datetime.now()
    check_transition(doc, target, at)
    if current_status(doc, at) == target:
        return doc
    doc.status = target  # type: ignore[assignment]
    if target == "sent":
        doc.sent_at = at
    if isinstance(doc, Invoice) and target == "paid":
        doc.paid_at = at
    if isinstance(doc, Estimate) and target in ("approved", "declined"):
        doc.decided_at = at
    return doc


# ---------- Lectures dérivées ---------- #

def is_overdue(inv: Invoice, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return inv.status != "paid" and inv.due_date < now


def is_expired(est: Estimate, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    if est.converted_to_invoice:
        return False
    return est.status != "approved" and est.valid_until < now


def effective_status(doc: Document, now: Optional[datetime] = None) -> str:
    if isinstance(doc, Invoice):
        return "overdue" if is_overdue(doc, now) else doc.status
    if doc.status == "declined":
        return doc.status
    return "expired" if is_expired(doc, now) else doc.status
