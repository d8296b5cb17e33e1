"""VetLab - Veterinary laboratory calculators.

Closed-form lab calculations with a local calculation history:
- Solution preparation (molarity or % w/v to grams)
- C1V1 = C2V2 and serial dilution
- Dose, stock volume and infusion rate
- Mass, volume, temperature and molar unit conversion
- Buffer pH and ratio (Henderson-Hasselbalch)
"""

__version__ = "1.0.0"

from .sanitizer import (
    filter_numeric,
    safe_parse,
    parse_field,
)
from .history import (
    CalculationKind,
    HistoryRecord,
    HistoryStore,
    HistoryStorageError,
    export_text,
)
from .calculator import (
    Calculator,
    CalculationOutcome,
    ValidationError,
    format_number,
)

__all__ = [
    # Input sanitizing
    "filter_numeric",
    "safe_parse",
    "parse_field",
    # History
    "CalculationKind",
    "HistoryRecord",
    "HistoryStore",
    "HistoryStorageError",
    "export_text",
    # Calculations
    "Calculator",
    "CalculationOutcome",
    "ValidationError",
    "format_number",
]
