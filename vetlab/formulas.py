"""Formula library for VetLab calculations.

Every function here is pure: numbers in, numbers out. Inputs are assumed to be
parsed already; domain violations (zero divisors, non-positive ratios,
fractional step counts, unknown units) raise ValueError instead of producing
inf or nan.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Union

Number = Union[int, float]


@dataclass(frozen=True)
class DilutionPoint:
    """One step of a serial dilution series."""

    step: int
    concentration: float

    def to_dict(self) -> dict:
        return {"x": self.step, "y": self.concentration}


@dataclass(frozen=True)
class InfusionRate:
    """Infusion rate as volume flow and drip rate."""

    ml_per_hr: float
    drops_per_min: float


# --- Solution preparation ---


def mass_from_molarity(molarity: Number, volume_ml: Number, molar_weight: Number) -> float:
    """Grams of solute for a solution of the given molarity.

    mass = M * (V_mL / 1000) * MW
    """
    return molarity * (volume_ml / 1000.0) * molar_weight


def mass_from_percent(percent: Number, volume_ml: Number) -> float:
    """Grams of solute for a % w/v solution (g per 100 mL)."""
    return percent * volume_ml / 100.0


# --- C1V1 = C2V2 ---


def dilution_solve_c2(c1: Number, v1: Number, v2: Number) -> float:
    """Final concentration after diluting C1/V1 to volume V2.

    Raises:
        ValueError: If v2 is zero.
    """
    if v2 == 0:
        raise ValueError("V2 cannot be zero")
    return (c1 * v1) / v2


def dilution_solve_v2(c1: Number, v1: Number, c2: Number) -> float:
    """Final volume needed to bring C1/V1 down to concentration C2.

    Raises:
        ValueError: If c2 is zero.
    """
    if c2 == 0:
        raise ValueError("C2 cannot be zero")
    return (c1 * v1) / c2


# --- Serial dilution ---


def is_step_count(steps: Number) -> bool:
    """Check that a step count is a non-negative whole number."""
    if isinstance(steps, bool):
        return False
    if isinstance(steps, float) and not steps.is_integer():
        return False
    return steps >= 0


def serial_dilution(initial: Number, factor: Number, steps: Number) -> List[DilutionPoint]:
    """Geometric concentration series for repeated dilution.

    c_0 = initial, c_(k+1) = c_k / factor, for k = 0..steps.

    Args:
        initial: Starting concentration.
        factor: Dilution factor applied at each step.
        steps: Number of dilution steps (non-negative integer).

    Returns:
        steps + 1 points, starting with the undiluted stock.

    Raises:
        ValueError: If factor is zero or steps is negative or fractional.
    """
    if factor == 0:
        raise ValueError("Dilution factor cannot be zero")
    if not is_step_count(steps):
        raise ValueError(f"Step count must be a non-negative integer, got {steps}")

    points = []
    concentration = float(initial)
    for k in range(int(steps) + 1):
        points.append(DilutionPoint(step=k, concentration=concentration))
        concentration = concentration / factor
    return points


# --- Dose and infusion ---


def dose_total(dose_mg_per_kg: Number, weight_kg: Number) -> float:
    """Total dose in mg for a body weight."""
    return dose_mg_per_kg * weight_kg


def infusion_volume(total_mg: Number, concentration_mg_per_ml: Number) -> float:
    """Volume of stock (mL) that delivers total_mg.

    Raises:
        ValueError: If the concentration is not positive.
    """
    if concentration_mg_per_ml <= 0:
        raise ValueError("Concentration must be positive")
    return total_mg / concentration_mg_per_ml


def infusion_rate(volume_ml: Number, duration_min: Number, drop_factor: Number) -> InfusionRate:
    """Rate needed to infuse volume_ml over duration_min.

    Raises:
        ValueError: If the duration is not positive.
    """
    if duration_min <= 0:
        raise ValueError("Duration must be positive")
    return InfusionRate(
        ml_per_hr=(volume_ml / duration_min) * 60.0,
        drops_per_min=(volume_ml * drop_factor) / duration_min,
    )


# --- Unit conversion ---

CELSIUS = "°C"
FAHRENHEIT = "°F"
KELVIN = "K"

SCALE_TABLES: Dict[str, Dict[str, float]] = {
    "mass": {"kg": 1000.0, "g": 1.0, "mg": 1e-3, "ug": 1e-6},
    "volume": {"L": 1.0, "mL": 1e-3, "uL": 1e-6},
    "molar": {"M": 1.0, "mM": 1e-3, "µM": 1e-6},
}

TEMPERATURE_UNITS = [CELSIUS, FAHRENHEIT, KELVIN]

# Lower-cased spellings accepted from keyboards without a degree sign or micro sign
UNIT_ALIASES: Dict[str, Dict[str, str]] = {
    "mass": {"kg": "kg", "g": "g", "mg": "mg", "ug": "ug", "µg": "ug", "mcg": "ug"},
    "volume": {"l": "L", "ml": "mL", "ul": "uL", "µl": "uL"},
    "temperature": {
        "°c": CELSIUS, "c": CELSIUS, "degc": CELSIUS,
        "°f": FAHRENHEIT, "f": FAHRENHEIT, "degf": FAHRENHEIT,
        "k": KELVIN,
    },
    "molar": {"m": "M", "mm": "mM", "µm": "µM", "um": "µM"},
}

CATEGORIES = ["mass", "volume", "temperature", "molar"]


def units_for(category: str) -> List[str]:
    """Canonical units of a conversion category.

    Raises:
        ValueError: If the category is unknown.
    """
    if category == "temperature":
        return list(TEMPERATURE_UNITS)
    if category in SCALE_TABLES:
        return list(SCALE_TABLES[category])
    raise ValueError(f"Unknown conversion category: {category}")


def normalize_unit(category: str, unit: str) -> str:
    """Map a unit spelling to its canonical form.

    Case matters only where it carries meaning (M vs mM), so exact canonical
    spellings are accepted first, then lower-cased aliases.

    Raises:
        ValueError: If the unit does not belong to the category.
    """
    canonical = units_for(category)
    unit = unit.strip()
    if unit in canonical:
        return unit
    aliases = UNIT_ALIASES.get(category, {})
    key = unit.lower()
    if key in aliases:
        return aliases[key]
    raise ValueError(f"Unknown {category} unit: {unit} (expected one of {', '.join(canonical)})")


def celsius_to_fahrenheit(value: Number) -> float:
    return value * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(value: Number) -> float:
    return (value - 32.0) * 5.0 / 9.0


def celsius_to_kelvin(value: Number) -> float:
    return value + 273.15


def kelvin_to_celsius(value: Number) -> float:
    return value - 273.15


def fahrenheit_to_kelvin(value: Number) -> float:
    return (value - 32.0) * 5.0 / 9.0 + 273.15


def kelvin_to_fahrenheit(value: Number) -> float:
    return (value - 273.15) * 9.0 / 5.0 + 32.0


_TEMPERATURE_FORMULAS = {
    (CELSIUS, FAHRENHEIT): celsius_to_fahrenheit,
    (FAHRENHEIT, CELSIUS): fahrenheit_to_celsius,
    (CELSIUS, KELVIN): celsius_to_kelvin,
    (KELVIN, CELSIUS): kelvin_to_celsius,
    (FAHRENHEIT, KELVIN): fahrenheit_to_kelvin,
    (KELVIN, FAHRENHEIT): kelvin_to_fahrenheit,
}


def convert_temperature(value: Number, from_unit: str, to_unit: str) -> float:
    """Convert between °C, °F and K.

    Raises:
        ValueError: If either unit is not a temperature unit.
    """
    from_unit = normalize_unit("temperature", from_unit)
    to_unit = normalize_unit("temperature", to_unit)
    if from_unit == to_unit:
        return float(value)
    return _TEMPERATURE_FORMULAS[(from_unit, to_unit)](value)


def convert_scaled(category: str, value: Number, from_unit: str, to_unit: str) -> float:
    """Convert within a linear unit category (mass, volume, molar).

    out = value * scale[from] / scale[to]
    """
    if category not in SCALE_TABLES:
        raise ValueError(f"Not a scaled conversion category: {category}")
    scale = SCALE_TABLES[category]
    from_unit = normalize_unit(category, from_unit)
    to_unit = normalize_unit(category, to_unit)
    return value * scale[from_unit] / scale[to_unit]


def convert_units(category: str, value: Number, from_unit: str, to_unit: str) -> float:
    """Convert a value in any supported category."""
    if category == "temperature":
        return convert_temperature(value, from_unit, to_unit)
    return convert_scaled(category, value, from_unit, to_unit)


# --- Buffers (Henderson-Hasselbalch) ---


def buffer_ph(pka: Number, ratio: Number) -> float:
    """pH of a buffer from pKa and the [A-]/[HA] ratio.

    Raises:
        ValueError: If the ratio is not positive.
    """
    if ratio <= 0:
        raise ValueError("Ratio [A-]/[HA] must be positive")
    return pka + math.log10(ratio)


def buffer_ratio(pka: Number, target_ph: Number) -> float:
    """[A-]/[HA] ratio needed to reach target_ph."""
    return math.pow(10.0, target_ph - pka)
