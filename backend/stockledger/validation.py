from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum unit price: 9,999,999,999.99 (fits Numeric(12, 2))
MAX_UNIT_PRICE = Decimal("9999999999.99")


class StockLedgerError(ValueError):
    """
    Base class for typed domain failures.

    Every subclass carries a stable machine-readable `code` and the HTTP
    status the blueprint layer answers with.
    """
    code = "STOCK_LEDGER_ERROR"
    http_status = 400

    def to_dict(self) -> dict:
        return {"code": self.code, "message": str(self)}


class ValidationError(StockLedgerError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(StockLedgerError):
    """Unknown SKU / id, or a soft-deleted record addressed as if active."""
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, field: str | None = None, value: Any = None):
        if field is None:
            message = resource
        else:
            message = f"{resource} not found with {field}: {value}"
        super().__init__(message)


class ConflictError(StockLedgerError):
    """409-level business rule conflict (e.g., duplicate product name)."""
    code = "CONFLICT"
    http_status = 409


class InsufficientStockError(StockLedgerError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_name}. "
            f"Available: {available}, Requested: {requested}"
        )


class AlreadyDeletedError(StockLedgerError):
    code = "ALREADY_DELETED"
    http_status = 409


class NotDeletedError(StockLedgerError):
    code = "NOT_DELETED"
    http_status = 409


class ExpiredError(StockLedgerError):
    """Restore attempted after the grace window closed."""
    code = "RESTORE_WINDOW_EXPIRED"
    http_status = 410


class ForbiddenError(StockLedgerError):
    """Operation targets an exempt role or the acting account itself."""
    code = "FORBIDDEN"
    http_status = 403


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Money
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a decimal number")
        try:
            # str() first so 19.99 (float) becomes Decimal("19.99"), not its binary expansion
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{col.key} must be a decimal number")
        if not amount.is_finite():
            raise ValidationError(f"{col.key} must be a finite number")
        return amount

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_positive_quantity(value: Any, *, label: str = "quantity") -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if value <= 0:
        raise ValidationError(f"{label} must be positive")
    return value


def require_non_negative_int(value: Any, *, label: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return value


def require_unit_price(value: Any) -> Decimal:
    """Unit price must be a decimal strictly greater than zero."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("unit_price is required")
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("unit_price must be a decimal number")
    if not price.is_finite():
        raise ValidationError("unit_price must be a finite number")
    if price > MAX_UNIT_PRICE:
        raise ValidationError(f"unit_price cannot exceed {MAX_UNIT_PRICE}")
    price = price.quantize(Decimal("0.01"))
    if price <= 0:
        raise ValidationError("Unit price must be greater than 0")
    return price
