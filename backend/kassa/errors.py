# Overview: Domain error taxonomy shared by services, routes and the CLI.

"""
Kassa error taxonomy.

Every failure the core reports to a caller is a KassaError subclass carrying a
stable machine-readable ``code``, the HTTP status the transport should use, and
an optional ``details`` dict with structured context (ids, quantities, paths).

Engine failures (sale, return, debt, stock) are raised from inside the write
transaction; ``run_with_retry`` rolls the session back before they propagate.
Print failures are raised only after the failed PrintJob row is committed.
"""

from __future__ import annotations


class KassaError(Exception):
    """Base class for all structured core failures."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class NotFoundError(KassaError):
    """Product, sale, customer, debt or return missing."""

    code = "not_found"
    status_code = 404


class ReturnNotFoundError(NotFoundError):
    code = "return_not_found"


class ValidationError(KassaError, ValueError):
    """400-level input problem."""

    code = "validation"


class EmptyCartError(ValidationError):
    code = "empty_cart"


class MissingCustomerError(ValidationError):
    code = "missing_customer"


class ConflictError(ValidationError):
    """409-level uniqueness conflict (duplicate SKU, barcode or phone)."""

    code = "conflict"
    status_code = 409


class InsufficientStockError(KassaError):
    code = "insufficient_stock"
    status_code = 409


class OverReturnError(KassaError):
    code = "over_return"
    status_code = 409


class GenerationFailedError(KassaError):
    code = "generation_failed"
    status_code = 500


class BinaryNotFoundError(KassaError):
    code = "binary_not_found"
    status_code = 500


class ExternalProcessFailedError(KassaError):
    code = "external_process_failed"
    status_code = 502


class StoreUnavailableError(KassaError):
    code = "store_unavailable"
    status_code = 503


class MigrationError(KassaError):
    code = "migration_failed"
    status_code = 500
