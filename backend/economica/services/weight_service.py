# Overview: Quantity rules for products sold by piece or by weight/volume.

"""
Weight/quantity calculator.

Pure functions: nothing here touches the database. A "product" is anything
with `unit`, `sell_by_weight` and (optionally) `max_quantity` attributes,
which covers the Product model as well as lightweight test doubles.

STEPS:
- kg     -> 0.1   (100 g)
- gramo  -> 100   (displayed as g, as kg from 1000 g)
- litro  -> 0.1   (displayed as ml below 1 L)
- other  -> 1     (discrete pieces, whole numbers only)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

WEIGHT_UNITS = {"kg", "gramo", "litro"}

WEIGHT_STEPS = {
    "kg": 0.1,
    "gramo": 100.0,
    "litro": 0.1,
}

# Binary floating point cannot represent 0.1 exactly; anything within this
# distance of a step multiple counts as aligned.
QUANTITY_EPSILON = 0.001

# Decimal places kept on adjusted quantities
QUANTITY_PRECISION = 3


@dataclass(frozen=True)
class WeightCalculation:
    is_weight_based: bool
    step: float
    display_unit: str
    base_unit: str
    max_quantity: float | None = None

    def to_dict(self) -> dict:
        return {
            "is_weight_based": self.is_weight_based,
            "step": self.step,
            "display_unit": self.display_unit,
            "base_unit": self.base_unit,
            "max_quantity": self.max_quantity,
        }


@dataclass(frozen=True)
class QuantityValidation:
    is_valid: bool
    adjusted_quantity: float | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "adjusted_quantity": self.adjusted_quantity,
            "message": self.message,
        }


def is_weight_based(product) -> bool:
    return bool(getattr(product, "sell_by_weight", False)) or product.unit in WEIGHT_UNITS


def get_weight_calculation(product) -> WeightCalculation:
    unit = product.unit or "pieza"
    max_quantity = getattr(product, "max_quantity", None)

    if not is_weight_based(product):
        return WeightCalculation(
            is_weight_based=False,
            step=1.0,
            display_unit=unit,
            base_unit=unit,
            max_quantity=max_quantity,
        )

    # sell_by_weight products with a non-weight unit are priced per kg
    base_unit = unit if unit in WEIGHT_UNITS else "kg"
    display_unit = "g" if base_unit == "gramo" else base_unit

    return WeightCalculation(
        is_weight_based=True,
        step=WEIGHT_STEPS[base_unit],
        display_unit=display_unit,
        base_unit=base_unit,
        max_quantity=max_quantity,
    )


def _clean(quantity: float) -> float:
    return round(quantity, QUANTITY_PRECISION)


def _fmt_number(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_quantity(quantity: float, unit: str) -> str:
    """Human-readable quantity: 0.5 kg -> '500g', 1500 gramo -> '1.5kg', 0.25 litro -> '250ml'."""
    if unit == "kg":
        if quantity < 1:
            return f"{round(quantity * 1000)}g"
        return f"{_fmt_number(quantity)}kg"

    if unit in ("gramo", "g"):
        if quantity >= 1000:
            return f"{quantity / 1000:.1f}kg"
        return f"{_fmt_number(quantity)}g"

    if unit == "litro":
        if quantity < 1:
            return f"{round(quantity * 1000)}ml"
        return f"{_fmt_number(quantity)}L"

    return f"{_fmt_number(quantity)} {unit}"


def validate_quantity(quantity: float, product, max_quantity: float | None = None) -> QuantityValidation:
    """
    Check a requested quantity against the product's unit rules.

    Invalid results always carry the nearest acceptable quantity in
    adjusted_quantity plus a Spanish message for the shopper.
    """
    calc = get_weight_calculation(product)
    ceiling = max_quantity if max_quantity is not None else calc.max_quantity
    unit = calc.base_unit

    if quantity <= 0:
        return QuantityValidation(
            is_valid=False,
            adjusted_quantity=calc.step,
            message=f"Cantidad mínima: {format_quantity(calc.step, unit)}",
        )

    if not calc.is_weight_based:
        if quantity != math.floor(quantity):
            adjusted = max(float(math.floor(quantity)), calc.step)
            return QuantityValidation(
                is_valid=False,
                adjusted_quantity=adjusted,
                message="La cantidad debe ser un número entero",
            )
        if ceiling is not None and quantity > ceiling:
            return QuantityValidation(
                is_valid=False,
                adjusted_quantity=float(math.floor(ceiling)),
                message=f"Cantidad máxima: {format_quantity(ceiling, unit)}",
            )
        return QuantityValidation(is_valid=True)

    step = calc.step
    if quantity < step - QUANTITY_EPSILON:
        return QuantityValidation(
            is_valid=False,
            adjusted_quantity=step,
            message=f"Cantidad mínima: {format_quantity(step, unit)}",
        )

    # Nearest multiple, halves rounding up
    adjusted = _clean(math.floor(quantity / step + 0.5) * step)
    if abs(quantity - adjusted) > QUANTITY_EPSILON:
        return QuantityValidation(
            is_valid=False,
            adjusted_quantity=adjusted,
            message=f"Cantidad ajustada a: {format_quantity(adjusted, unit)}",
        )

    if ceiling is not None and quantity > ceiling + QUANTITY_EPSILON:
        return QuantityValidation(
            is_valid=False,
            adjusted_quantity=_clean(math.floor(ceiling / step + QUANTITY_EPSILON) * step),
            message=f"Cantidad máxima: {format_quantity(ceiling, unit)}",
        )

    return QuantityValidation(is_valid=True)


def normalize_quantity(quantity: float, product) -> float:
    """Aligned quantity for storage; assumes validate_quantity already passed."""
    if not is_weight_based(product):
        return float(int(round(quantity)))
    step = get_weight_calculation(product).step
    return _clean(math.floor(quantity / step + 0.5) * step)


def calculate_price_cents(unit_price_cents: int, quantity: float) -> int:
    """unit price x quantity, rounded half-up to whole cents. No tiers."""
    amount = Decimal(int(unit_price_cents)) * Decimal(str(quantity))
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def convert_weight(quantity: float, from_unit: str, to_unit: str) -> float:
    """Convert between kg, gramo/g and litro through grams (1 L taken as 1000 g)."""
    to_grams = {"kg": 1000.0, "gramo": 1.0, "g": 1.0, "litro": 1000.0}
    if from_unit not in to_grams or to_unit not in to_grams:
        return quantity
    grams = quantity * to_grams[from_unit]
    return grams / to_grams[to_unit]


def quantity_options(product, count: int = 20) -> list[dict]:
    """Selectable quantities for a product picker."""
    calc = get_weight_calculation(product)

    if not calc.is_weight_based:
        return [
            {"value": i, "label": f"{i} {calc.display_unit}{'' if i == 1 else 's'}"}
            for i in range(1, 11)
        ]

    options = []
    for i in range(1, count + 1):
        value = _clean(calc.step * i)
        options.append({"value": value, "label": format_quantity(value, calc.base_unit)})
    return options
