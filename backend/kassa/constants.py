# Overview: Closed domain enumerations and their store-level CHECK expressions.

from __future__ import annotations

from enum import Enum

from .errors import ValidationError


class Unit(str, Enum):
    PIECE = "piece"
    PACK = "pack"
    LITER = "liter"
    METER = "meter"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MIXED = "mixed"
    DEBT = "debt"


class RefundMethod(str, Enum):
    CASH = "cash"
    CARD = "card"


class MovementKind(str, Enum):
    INITIAL = "initial"
    RECEIVE = "receive"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


class DebtTransactionKind(str, Enum):
    DEBT_ADDED = "debt_added"
    PAYMENT = "payment"


class PrintKind(str, Enum):
    BARCODE = "barcode"
    RECEIPT = "receipt"


class PrintStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self in (PrintStatus.FAILED, PrintStatus.DONE)


def enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def parse_enum(enum_cls, value, field: str):
    """Coerce a tag (member or raw string) into ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_cls:
            if member.value == normalized:
                return member
    allowed = ", ".join(enum_values(enum_cls))
    raise ValidationError(f"{field} must be one of: {allowed}", details={"field": field, "value": value})
