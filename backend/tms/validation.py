from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from tms.time_utils import parse_iso_datetime


class TmsError(Exception):
    """Base class for domain errors surfaced to callers."""

    status_code = 500
    default_code = "UNKNOWN"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(TmsError, ValueError):
    """400-level input problem."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class ConflictError(TmsError, ValueError):
    """409-level optimistic concurrency mismatch (record changed since it was loaded)."""

    status_code = 409
    default_code = "CONFLICT"

    def __init__(self, message: str = "This record changed since you loaded it", *, code: str | None = None):
        super().__init__(message, code=code)


class NotFoundError(TmsError, LookupError):
    """404-level: referenced trip/order/route is absent or unpublished."""

    status_code = 404
    default_code = "NOT_FOUND"


class DuplicateCodeError(TmsError):
    """Trip code allocation ran out of attempts."""

    status_code = 500
    default_code = "DUPLICATE_CODE"


class UnknownError(TmsError):
    """Persistence-layer failure not otherwise classified."""

    status_code = 500
    default_code = "UNKNOWN"


def coerce_decimal(field: str, value: Any, *, allow_none: bool = True) -> Decimal | None:
    """
    Strict decimal coercion for money/weight inputs.

    Rejects booleans, NaN/Infinity and unparsable strings. Floats go through
    str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def coerce_datetime(field: str, value: Any, *, allow_none: bool = True) -> datetime | None:
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{field} must be a datetime")


def round_money(value: Decimal | int | float | None, precision: int = 2) -> Decimal | None:
    """Half-up rounding to the configured currency precision."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantum = Decimal(1).scaleb(-precision)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def enforce_rules_trip(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    weight = patch.get("weight")
    if weight is None or weight <= 0:
        raise ValidationError("weight must be > 0")

    pickup_date = patch.get("pickup_date")
    delivery_date = patch.get("delivery_date")
    if pickup_date and delivery_date and pickup_date > delivery_date:
        raise ValidationError("delivery_date must not be earlier than pickup_date")

    for key in ("driver_cost", "subcontractor_cost", "bridge_toll", "other_cost"):
        amount = patch.get(key)
        if amount is not None and amount < 0:
            raise ValidationError(f"{key} must be >= 0")


def format_decimal(value: Decimal | None) -> str | None:
    """Serialize a stored amount without float artefacts (e.g. '800.00')."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return format(value, "f")
