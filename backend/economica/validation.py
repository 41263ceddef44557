from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Units the storefront knows how to display; anything else sells as pieces
KNOWN_UNITS = {"pieza", "kg", "gramo", "litro", "paquete", "caja"}


class ValidationError(ValueError):
    """
    400-level input problem.

    errors is a list of {"field", "message"} dicts returned to the client
    as {"errors": [...]}.
    """

    def __init__(self, message: str, field: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        if errors is None:
            errors = [{"field": field, "message": message}]
        self.errors = errors


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: a referenced product, order or cart line does not exist."""


class FieldErrors:
    """Collects field problems so a request reports all of them at once."""

    def __init__(self):
        self.errors: list[dict] = []

    def add(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def __bool__(self) -> bool:
        return bool(self.errors)

    def raise_if_any(self) -> None:
        if self.errors:
            raise ValidationError("Datos inválidos", errors=list(self.errors))


def parse_quantity(value: Any, field: str, errors: FieldErrors) -> float | None:
    """Numeric quantity from JSON (number or numeric string). Booleans rejected."""
    if value is None or isinstance(value, bool):
        errors.add(field, "Cantidad requerida")
        return None
    try:
        qty = float(value)
    except (TypeError, ValueError):
        errors.add(field, "La cantidad debe ser numérica")
        return None
    if not math.isfinite(qty):
        errors.add(field, "La cantidad debe ser numérica")
        return None
    return qty


def parse_money_cents(value: Any, field: str, errors: FieldErrors, *, minimum: int | None = 0) -> int | None:
    """
    Convert a currency amount ("25.50", 25.5, 25) to integer cents.

    Rounds half-up to the cent. None passes through as None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        errors.add(field, "Monto inválido")
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        errors.add(field, "Monto inválido")
        return None
    if not amount.is_finite():
        errors.add(field, "Monto inválido")
        return None
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minimum is not None and cents < minimum:
        errors.add(field, "Monto inválido")
        return None
    return cents


def parse_int(value: Any, field: str, errors: FieldErrors, *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            errors.add(field, f"{field} requerido")
        return None
    if isinstance(value, bool):
        errors.add(field, f"{field} debe ser un entero")
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    errors.add(field, f"{field} debe ser un entero")
    return None


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set
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

    # Integers - strict: no floats, no scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", field=col.key)
        raise ValidationError(f"{col.key} must be an integer", field=col.key)

    # Quantities
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number", field=col.key)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number", field=col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

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
    Validate and normalize incoming JSON against SQLAlchemy column metadata
    and the policy allowlist. Returns a patch dict of writable fields only.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors = FieldErrors()

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.add(f, f"{f} is required")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            errors.add(k, f"Field not allowed: {k}")
        elif k not in cols:
            errors.add(k, f"Unknown field: {k}")
    errors.raise_if_any()

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                errors.add(k, f"{k} cannot be null")
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as exc:
            errors.errors.extend(exc.errors)
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                errors.add(k, f"{k} cannot be blank")
                continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.add(k, f"{k} exceeds max length {col.type.length}")
                continue

        patch[k] = val

    errors.raise_if_any()
    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules not captured by column metadata."""
    errors = FieldErrors()

    price = patch.get("price_cents")
    if price is not None:
        if price < 0:
            errors.add("price_cents", "price_cents must be >= 0")
        elif price > MAX_PRICE_CENTS:
            errors.add("price_cents", f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    stock = patch.get("stock_quantity")
    if stock is not None and stock < 0:
        errors.add("stock_quantity", "stock_quantity must be >= 0")

    max_qty = patch.get("max_quantity")
    if max_qty is not None and max_qty <= 0:
        errors.add("max_quantity", "max_quantity must be > 0")

    unit = patch.get("unit")
    if unit is not None and unit not in KNOWN_UNITS:
        errors.add("unit", f"unit must be one of: {', '.join(sorted(KNOWN_UNITS))}")

    errors.raise_if_any()
