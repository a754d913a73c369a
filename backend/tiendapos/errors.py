# Overview: Error taxonomy shared by every service and mapped to HTTP status by the routes.

"""
Error kinds, not exception types.

Every service raises a subclass of PosError carrying an ErrorKind. Routes
serialize `str(e)`, `e.kind` and `e.details`; callers decide on retry from
the kind alone.

RECOVERABILITY:
- Validation kinds are raised before any write. Caller corrects input and retries.
- CONCURRENCY_CONFLICT is expected under contention. Retry the whole operation.
- PERSISTENCE_FAILURE is fatal for the request. Nothing partial was committed.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # Sale Engine
    EMPTY_CART = "empty_cart"
    PRODUCT_NOT_FOUND = "product_not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INSUFFICIENT_PAYMENT = "insufficient_payment"
    INVALID_PAYMENT_METHOD = "invalid_payment_method"
    CLIENT_NOT_FOUND = "client_not_found"

    # Sale Reversal
    ALREADY_VOIDED = "already_voided"
    SALE_NOT_FOUND = "sale_not_found"

    # Shared
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    PERSISTENCE_FAILURE = "persistence_failure"


NOT_FOUND_KINDS = frozenset({
    ErrorKind.PRODUCT_NOT_FOUND,
    ErrorKind.CLIENT_NOT_FOUND,
    ErrorKind.SALE_NOT_FOUND,
    ErrorKind.NOT_FOUND,
})

CONFLICT_KINDS = frozenset({
    ErrorKind.ALREADY_VOIDED,
    ErrorKind.CONCURRENCY_CONFLICT,
})


class PosError(Exception):
    """Base class for business errors raised by the core services."""

    default_kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, kind: ErrorKind | None = None, details: dict | None = None):
        super().__init__(message)
        self.kind = kind or self.default_kind
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "kind": self.kind.value,
            "details": self.details,
        }


class InvalidInputError(PosError):
    """400-level input problem (non-numeric, negative, missing)."""


class ConcurrencyError(PosError):
    """A row changed between check and commit."""

    default_kind = ErrorKind.CONCURRENCY_CONFLICT


class PersistenceError(PosError):
    """Storage layer unreachable or failing after retries."""

    default_kind = ErrorKind.PERSISTENCE_FAILURE


def http_status_for(kind: ErrorKind) -> int:
    if kind in NOT_FOUND_KINDS:
        return 404
    if kind in CONFLICT_KINDS:
        return 409
    if kind == ErrorKind.PERSISTENCE_FAILURE:
        return 503
    return 400
