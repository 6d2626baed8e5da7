"""Unit normalisation and mixed-unit formatting.

Quantities are aggregated in a canonical base unit (kilograms; litres are
treated as kilogram-equivalent). Piece-like and unknown units are
dimensionless and pass through unchanged, so conversion never fails.
"""

from __future__ import annotations

CANONICAL_UNIT = "kg"
SUB_UNITS_PER_UNIT = 1000

WHOLE_LABEL = "KG"
SUB_LABEL = "g"

# Canonical tag -> factor to the canonical unit
UNIT_FACTORS: dict[str, float] = {
    "kg": 1.0,
    "g": 1 / SUB_UNITS_PER_UNIT,
    "l": 1.0,
    "ml": 1 / SUB_UNITS_PER_UNIT,
}

UNIT_ALIASES: dict[str, str] = {
    # Kilogram
    "kg": "kg",
    "kgs": "kg",
    "kilo": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    # Gram
    "g": "g",
    "gm": "g",
    "gms": "g",
    "gram": "g",
    "grams": "g",
    # Litre
    "l": "l",
    "ltr": "l",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    # Millilitre
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "millilitres": "ml",
}


def normalize_unit(unit: str | None) -> str:
    """Map a unit alias to its canonical tag; unknown units are lowercased as-is."""
    key = (unit or "").strip().lower()
    return UNIT_ALIASES.get(key, key)


def _factor(unit: str | None) -> float:
    return UNIT_FACTORS.get(normalize_unit(unit), 1.0)


def to_canonical(qty: float, unit: str | None) -> float:
    """Convert a quantity into the canonical unit."""
    return qty * _factor(unit)


def from_canonical(qty: float, unit: str | None) -> float:
    """Convert a canonical quantity into `unit`."""
    return qty / _factor(unit)


def convert(qty: float, from_unit: str | None, to_unit: str | None) -> float:
    """Convert between two units through the canonical unit."""
    if normalize_unit(from_unit) == normalize_unit(to_unit):
        return qty
    return from_canonical(to_canonical(qty, from_unit), to_unit)


def split_quantity(canonical_qty: float) -> tuple[int, int]:
    """
    Split a non-negative canonical quantity into (whole units, sub-units).

    The remainder is rounded to the nearest sub-unit and carried into the
    whole part when rounding reaches a full unit (999.6 g -> 1 KG 0 g).
    """
    whole = int(canonical_qty)
    sub = round((canonical_qty - whole) * SUB_UNITS_PER_UNIT)
    if sub >= SUB_UNITS_PER_UNIT:
        whole += sub // SUB_UNITS_PER_UNIT
        sub %= SUB_UNITS_PER_UNIT
    return whole, sub


def format_quantity(canonical_qty: float) -> str:
    """Render a canonical quantity as "N KG M g"."""
    sign = "-" if canonical_qty < 0 else ""
    whole, sub = split_quantity(abs(canonical_qty))

    if whole == 0 and sub == 0:
        return f"0 {WHOLE_LABEL}"
    if sub == 0:
        return f"{sign}{whole} {WHOLE_LABEL}"
    if whole == 0:
        return f"{sign}{sub} {SUB_LABEL}"
    return f"{sign}{whole} {WHOLE_LABEL} {sub} {SUB_LABEL}"
