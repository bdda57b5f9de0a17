from __future__ import annotations
from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    EXTERNAL_SERVICE = "external_service"
    ALREADY_CONVERTED = "already_converted"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"


class ShopError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ShopError):
    kind = ErrorKind.VALIDATION


class NotFound(ShopError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, obj_id: str):
        super().__init__(f"{entity} {obj_id} not found")
        self.entity = entity
        self.obj_id = obj_id


class ReferentialIntegrityError(ShopError):
    kind = ErrorKind.REFERENTIAL_INTEGRITY

    def __init__(self, entity: str, obj_id: str, blockers: Dict[str, int]):
        names = ", ".join(f"{k} ({n})" for k, n in blockers.items())
        super().__init__(f"Cannot delete {entity} {obj_id}: referenced by {names}")
        self.entity = entity
        self.obj_id = obj_id
        self.blockers = dict(blockers)


class ExternalServiceError(ShopError):
    kind = ErrorKind.EXTERNAL_SERVICE

    def __init__(self, service: str, message: str, code: Optional[str] = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.code = code


class AlreadyConverted(ShopError):
    kind = ErrorKind.ALREADY_CONVERTED

    def __init__(self, estimate_number: str, invoice_id: Optional[str]):
        super().__init__(f"Estimate {estimate_number} was already converted to invoice {invoice_id}")
        self.invoice_id = invoice_id


class InvalidTransition(ShopError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, doc_type: str, current: str, target: str):
        super().__init__(f"Cannot move {doc_type} from '{current}' to '{target}'")
        self.current = current
        self.target = target
