"""Calculation orchestration for VetLab.

The Calculator is the only writer of history. For each calculation kind it:
- Sanitizes and parses the raw text inputs
- Rejects missing fields and domain errors before any formula runs
- Runs the formula and formats a display string
- Records a HistoryRecord built from the freshly computed values

A failed history write propagates as HistoryStorageError and no outcome is
returned, so a caller never sees a result that was not recorded.
"""

import logging
import math
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import formulas
from .formulas import InfusionRate
from .history import CalculationKind, HistoryRecord, HistoryStore
from .sanitizer import parse_field

logger = logging.getLogger(__name__)

DEFAULT_PLACES = 4
VOLUME_PLACES = 3
PH_PLACES = 3

# Upper bound on serial dilution steps
MAX_SERIAL_STEPS = 1000

CATEGORY_ALIASES = {"temp": "temperature", "molarity": "molar", "concentration": "molar"}


class ValidationError(ValueError):
    """Raised when inputs are missing, non-numeric or outside the formula's domain."""

    def __init__(self, message: str, fields: Sequence[str] = ()):
        super().__init__(message)
        self.fields = list(fields)


@dataclass(frozen=True)
class DoseResult:
    """Dose calculation with its optional infusion stages."""

    total_mg: float
    volume_ml: Optional[float] = None
    rate: Optional[InfusionRate] = None


@dataclass(frozen=True)
class CalculationOutcome:
    """What a successful calculation returns to its caller."""

    kind: CalculationKind
    result: Any
    display: str
    record: HistoryRecord


def format_number(value: Any, places: int = DEFAULT_PLACES) -> str:
    """Round to a fixed number of places and drop trailing zeros.

    50.0 -> "50", 0.10004 -> "0.1", None or NaN -> "-".
    """
    if value is None:
        return "-"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "-"
    if math.isnan(number):
        return "-"
    if math.isinf(number):
        return "inf" if number > 0 else "-inf"

    try:
        with localcontext() as ctx:
            ctx.prec = 400
            quantized = Decimal(repr(number)).quantize(
                Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP
            )
            text = format(quantized.normalize(), "f")
    except InvalidOperation:
        return f"{number:g}"

    if text == "-0":
        return "0"
    return text


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def _plain(value: float) -> str:
    """Render an input value back without float noise."""
    return format_number(value, 10)


class Calculator:
    """Validate, compute and record veterinary lab calculations."""

    def __init__(
        self,
        store: HistoryStore,
        clock: Optional[Callable[[], float]] = None,
        default_drop_factor: float = 20.0,
    ):
        """Initialize with a history store.

        Args:
            store: Where successful calculations are recorded.
            clock: Returns the current time in epoch seconds (defaults to time.time).
            default_drop_factor: Drop factor (gtt/mL) used when none is entered.
        """
        self.store = store
        self.clock = clock or time.time
        self.default_drop_factor = default_drop_factor

    # --- Helpers ---

    def _parse_required(self, fields: Sequence[Tuple[str, str, Optional[str]]]) -> List[float]:
        """Parse required fields or raise naming every bad one.

        Args:
            fields: (name, label, raw text) triples.

        Raises:
            ValidationError: If any field is missing or non-numeric.
        """
        values = []
        missing = []
        labels = []
        for name, label, raw in fields:
            value = parse_field(raw)
            if value is None:
                missing.append(name)
                labels.append(label)
            values.append(value)

        if missing:
            raise ValidationError(
                f"Enter numeric values for: {', '.join(labels)}", fields=missing
            )
        return values

    def _parse_optional(self, raw: Optional[str]) -> Optional[float]:
        """Parse an optional field; blank or non-numeric means absent."""
        if raw is None or not str(raw).strip():
            return None
        return parse_field(raw)

    def _check_finite(self, fields: Sequence[str], *values: Optional[float]) -> None:
        """Reject results that overflowed or became undefined.

        Raises:
            ValidationError: If any value is infinite or NaN.
        """
        if all(v is None or math.isfinite(v) for v in values):
            return
        raise ValidationError(
            f"Result is out of range; check: {', '.join(fields)}", fields=fields
        )

    def _record(self, kind: CalculationKind, sentence: str, data: Dict[str, Any]) -> HistoryRecord:
        """Append a new record to history.

        Raises:
            HistoryStorageError: If the record cannot be saved.
        """
        record = HistoryRecord(
            type=kind,
            time=int(self.clock() * 1000),
            sentence=sentence,
            data=data,
        )
        self.store.append(record)
        logger.debug("Recorded %s: %s", kind.value, sentence)
        return record

    # --- Solution preparation ---

    def molarity_to_mass(self, molarity: str, volume: str, molar_weight: str) -> CalculationOutcome:
        """Grams needed for a solution of given molarity and volume."""
        m, v, mw = self._parse_required([
            ("molarity", "molarity (M)", molarity),
            ("volume", "volume (mL)", volume),
            ("molar_weight", "molar weight (g/mol)", molar_weight),
        ])

        grams = formulas.mass_from_molarity(m, v, mw)
        self._check_finite(["molarity", "volume", "molar_weight"], grams)
        display = f"{format_number(grams)} g"
        sentence = (
            f"To prepare {_plain(v)} mL of a {_plain(m)} M solution "
            f"(molar weight {_plain(mw)} g/mol) you need {format_number(grams)} g."
        )
        record = self._record(
            CalculationKind.MOLARITY_TO_MASS,
            sentence,
            {"M": m, "vol": v, "mw": mw, "result": grams},
        )
        return CalculationOutcome(CalculationKind.MOLARITY_TO_MASS, grams, display, record)

    def percent_to_mass(self, percent: str, volume: str) -> CalculationOutcome:
        """Grams needed for a % w/v solution."""
        p, v = self._parse_required([
            ("percent", "percent (% w/v)", percent),
            ("volume", "final volume (mL)", volume),
        ])

        grams = formulas.mass_from_percent(p, v)
        self._check_finite(["percent", "volume"], grams)
        display = f"{format_number(grams)} g"
        sentence = (
            f"A {_plain(p)}% w/v solution of {_plain(v)} mL needs {format_number(grams)} g."
        )
        record = self._record(
            CalculationKind.PERCENT_TO_MASS,
            sentence,
            {"perc": p, "vol2": v, "result": grams},
        )
        return CalculationOutcome(CalculationKind.PERCENT_TO_MASS, grams, display, record)

    # --- Dilution ---

    def dilution(self, c1: str, v1: str, c2: str = "", v2: str = "") -> CalculationOutcome:
        """Solve C1V1 = C2V2 for whichever of C2 or V2 is blank.

        When C2 is given, V2 is solved for; otherwise C2 is solved from V2.
        """
        c1_val, v1_val = self._parse_required([
            ("c1", "C1", c1),
            ("v1", "V1 (mL)", v1),
        ])
        c2_val = self._parse_optional(c2)
        v2_val = self._parse_optional(v2)

        if c2_val is None and v2_val is None:
            raise ValidationError("Enter either C2 or V2", fields=["c2", "v2"])

        if c2_val is not None:
            if c2_val == 0:
                raise ValidationError("C2 cannot be zero", fields=["c2"])
            result = formulas.dilution_solve_v2(c1_val, v1_val, c2_val)
            self._check_finite(["c1", "v1", "c2"], result)
            display = f"V2 ≈ {format_number(result)} (same unit as V1)"
            sentence = (
                f"With C1={_plain(c1_val)}, V1={_plain(v1_val)} and C2={_plain(c2_val)} "
                f"the final volume V2 ≈ {format_number(result)}."
            )
            data = {"C1": c1_val, "V1": v1_val, "C2": c2_val, "result": result}
        else:
            if v2_val == 0:
                raise ValidationError("V2 cannot be zero", fields=["v2"])
            result = formulas.dilution_solve_c2(c1_val, v1_val, v2_val)
            self._check_finite(["c1", "v1", "v2"], result)
            display = f"C2 ≈ {format_number(result)}"
            sentence = (
                f"With C1={_plain(c1_val)} and V1={_plain(v1_val)}, diluting to "
                f"V2={_plain(v2_val)} gives C2 ≈ {format_number(result)} (same unit as C1)."
            )
            data = {"C1": c1_val, "V1": v1_val, "V2": v2_val, "result": result}

        record = self._record(CalculationKind.DILUTION, sentence, data)
        return CalculationOutcome(CalculationKind.DILUTION, result, display, record)

    def serial_dilution(self, initial: str, factor: str, steps: str) -> CalculationOutcome:
        """Concentration at each step of a serial dilution."""
        i, f, n = self._parse_required([
            ("initial", "initial concentration", initial),
            ("factor", "dilution factor", factor),
            ("steps", "number of steps", steps),
        ])

        if f == 0:
            raise ValidationError("Dilution factor cannot be zero", fields=["factor"])
        if not formulas.is_step_count(n):
            raise ValidationError(
                "Number of steps must be a non-negative whole number", fields=["steps"]
            )
        if n > MAX_SERIAL_STEPS:
            raise ValidationError(
                f"Number of steps cannot exceed {MAX_SERIAL_STEPS}", fields=["steps"]
            )

        points = formulas.serial_dilution(i, f, int(n))
        self._check_finite(["initial", "factor", "steps"], *(p.concentration for p in points))
        series = ", ".join(f"{p.step}:{format_number(p.concentration)}" for p in points)
        sentence = (
            f"Serial dilution from {_plain(i)}, factor {_plain(f)}, "
            f"{int(n)} steps: {series}"
        )
        record = self._record(
            CalculationKind.SERIAL_DILUTION,
            sentence,
            {
                "init": i,
                "factor": f,
                "steps": int(n),
                "result": [p.to_dict() for p in points],
            },
        )
        return CalculationOutcome(CalculationKind.SERIAL_DILUTION, points, series, record)

    # --- Dose and infusion ---

    def dose(
        self,
        dose: str,
        weight: str,
        concentration: str = "",
        duration: str = "",
        drop_factor: str = "",
    ) -> CalculationOutcome:
        """Total dose, with stock volume and infusion rate when given.

        Concentration unlocks the volume stage; duration additionally unlocks
        the rate stage. A blank drop factor uses the configured default.
        """
        d, w = self._parse_required([
            ("dose", "dose (mg/kg)", dose),
            ("weight", "weight (kg)", weight),
        ])
        conc = self._parse_optional(concentration)
        minutes = self._parse_optional(duration)
        gtt = self._parse_optional(drop_factor)
        if gtt is None:
            gtt = self.default_drop_factor

        if conc is not None and conc <= 0:
            raise ValidationError("Concentration must be greater than zero", fields=["concentration"])
        if minutes is not None:
            if conc is None:
                raise ValidationError(
                    "An infusion duration needs the drug concentration", fields=["concentration"]
                )
            if minutes <= 0:
                raise ValidationError("Duration must be greater than zero", fields=["duration"])
            if gtt <= 0 or not math.isfinite(gtt):
                raise ValidationError("Drop factor must be greater than zero", fields=["drop_factor"])

        total_mg = formulas.dose_total(d, w)
        volume_ml = formulas.infusion_volume(total_mg, conc) if conc is not None else None
        rate = (
            formulas.infusion_rate(volume_ml, minutes, gtt)
            if volume_ml is not None and minutes is not None
            else None
        )
        self._check_finite(
            ["dose", "weight", "concentration", "duration", "drop_factor"],
            total_mg,
            volume_ml,
            rate.ml_per_hr if rate else None,
            rate.drops_per_min if rate else None,
        )
        result = DoseResult(total_mg=total_mg, volume_ml=volume_ml, rate=rate)

        lines = [f"Total dose: {format_number(total_mg)} mg"]
        sentence = f"Dose {_plain(d)} mg/kg for {_plain(w)} kg → {format_number(total_mg)} mg"
        if volume_ml is not None:
            lines.append(
                f"Stock volume: {format_number(volume_ml, VOLUME_PLACES)} mL "
                f"(concentration {_plain(conc)} mg/mL)"
            )
            sentence += (
                f"; at {_plain(conc)} mg/mL → {format_number(volume_ml, VOLUME_PLACES)} mL"
            )
        if rate is not None:
            drops = round_half_up(rate.drops_per_min)
            lines.append(
                f"Infusion rate: {format_number(rate.ml_per_hr, VOLUME_PLACES)} mL/hr, "
                f"{drops} drops/min (drop factor {_plain(gtt)} gtt/mL)"
            )
            sentence += (
                f"; over {_plain(minutes)} min → "
                f"{format_number(rate.ml_per_hr, VOLUME_PLACES)} mL/hr, {drops} drops/min"
            )
        display = "\n".join(lines)

        record = self._record(
            CalculationKind.DOSE,
            sentence,
            {
                "dose": d,
                "wt": w,
                "conc": conc,
                "infusionMin": minutes,
                "dropFactor": gtt if rate is not None else None,
                "totalMg": total_mg,
                "volumeMl": volume_ml,
                "mlPerHr": rate.ml_per_hr if rate else None,
                "dropsPerMin": rate.drops_per_min if rate else None,
                "result": display,
            },
        )
        return CalculationOutcome(CalculationKind.DOSE, result, display, record)

    # --- Unit conversion ---

    def convert(self, category: str, value: str, from_unit: str, to_unit: str) -> CalculationOutcome:
        """Convert a value between units of one category."""
        category = (category or "").strip().lower()
        category = CATEGORY_ALIASES.get(category, category)
        if category not in formulas.CATEGORIES:
            raise ValidationError(
                f"Unknown category '{category}' (expected one of {', '.join(formulas.CATEGORIES)})",
                fields=["category"],
            )

        (v,) = self._parse_required([("value", "value", value)])

        try:
            src = formulas.normalize_unit(category, from_unit or "")
            dst = formulas.normalize_unit(category, to_unit or "")
        except ValueError as e:
            raise ValidationError(str(e), fields=["unit"]) from e

        out = formulas.convert_units(category, v, src, dst)
        self._check_finite(["value"], out)
        display = f"{format_number(out)} {dst}"
        sentence = f"Conversion: {_plain(v)} {src} → {format_number(out)} {dst} (category: {category})"
        record = self._record(
            CalculationKind.UNIT_CONVERSION,
            sentence,
            {"category": category, "value": v, "from": src, "to": dst, "result": out},
        )
        return CalculationOutcome(CalculationKind.UNIT_CONVERSION, out, display, record)

    # --- Buffers ---

    def buffer_ph(self, pka: str, ratio: str) -> CalculationOutcome:
        """Buffer pH from pKa and [A-]/[HA] (Henderson-Hasselbalch)."""
        p, r = self._parse_required([
            ("pka", "pKa", pka),
            ("ratio", "ratio [A-]/[HA]", ratio),
        ])
        if r <= 0:
            raise ValidationError("Ratio [A-]/[HA] must be greater than zero", fields=["ratio"])

        ph = formulas.buffer_ph(p, r)
        self._check_finite(["pka", "ratio"], ph)
        display = f"pH ≈ {format_number(ph, PH_PLACES)}"
        sentence = (
            f"With pKa={_plain(p)} and [A-]/[HA]={_plain(r)} → "
            f"pH ≈ {format_number(ph, PH_PLACES)} (Henderson–Hasselbalch)."
        )
        record = self._record(
            CalculationKind.BUFFER_PH,
            sentence,
            {"pKa": p, "ratio": r, "ph": ph},
        )
        return CalculationOutcome(CalculationKind.BUFFER_PH, ph, display, record)

    def buffer_ratio(self, pka: str, target_ph: str) -> CalculationOutcome:
        """[A-]/[HA] ratio needed to reach a target pH."""
        p, ph = self._parse_required([
            ("pka", "pKa", pka),
            ("target_ph", "target pH", target_ph),
        ])

        try:
            ratio = formulas.buffer_ratio(p, ph)
        except OverflowError as e:
            raise ValidationError(
                "Target pH is too far from pKa", fields=["target_ph"]
            ) from e
        self._check_finite(["pka", "target_ph"], ratio)

        display = f"[A-]/[HA] ≈ {format_number(ratio)}"
        sentence = (
            f"To reach pH={_plain(ph)} with pKa={_plain(p)} you need "
            f"[A-]/[HA] ≈ {format_number(ratio)}."
        )
        record = self._record(
            CalculationKind.BUFFER_RATIO,
            sentence,
            {"pKa": p, "targetPh": ph, "ratio": ratio},
        )
        return CalculationOutcome(CalculationKind.BUFFER_RATIO, ratio, display, record)


def get_calculator(store: HistoryStore, default_drop_factor: float = 20.0) -> Calculator:
    """Get a calculator instance.

    Args:
        store: History store that receives records.
        default_drop_factor: Drop factor used when none is entered.

    Returns:
        Calculator instance.
    """
    return Calculator(store, default_drop_factor=default_drop_factor)
