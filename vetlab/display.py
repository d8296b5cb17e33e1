"""Terminal rendering for VetLab.

Uses rich for result panels, the serial dilution table and the history
listing. Every renderer takes an optional Console so callers (and tests) can
redirect output.
"""

import math
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .calculator import CalculationOutcome, format_number
from .formulas import DilutionPoint
from .history import HistoryRecord, format_time

console = Console()

BAR_WIDTH = 30
LIGHT_ACCENT = "blue"
DARK_ACCENT = "cyan"
DESCRIPTION_MAX_LENGTH = 80


def truncate_text(text: str, max_length: int = DESCRIPTION_MAX_LENGTH, suffix: str = "...") -> str:
    """Truncate text to max length with suffix."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def accent(dark: bool) -> str:
    """Accent color for the current theme."""
    return DARK_ACCENT if dark else LIGHT_ACCENT


def series_bars(points: Sequence[DilutionPoint], width: int = BAR_WIDTH) -> List[int]:
    """Bar lengths for a dilution series on a log scale.

    The largest concentration gets the full width and the smallest positive
    one a single cell. Non-positive concentrations get no bar.
    """
    positive = [p.concentration for p in points if p.concentration > 0]
    if not positive:
        return [0 for _ in points]

    high = math.log10(max(positive))
    low = math.log10(min(positive))
    span = high - low

    bars = []
    for p in points:
        if p.concentration <= 0:
            bars.append(0)
        elif span == 0:
            bars.append(width)
        else:
            fraction = (math.log10(p.concentration) - low) / span
            bars.append(1 + round(fraction * (width - 1)))
    return bars


def show_outcome(outcome: CalculationOutcome, dark: bool = False, out: Optional[Console] = None):
    """Display a calculation result."""
    out = out or console
    color = accent(dark)
    out.print(
        Panel(
            f"[bold {color}]{escape(outcome.display)}[/bold {color}]\n\n"
            f"[dim]{escape(outcome.record.sentence)}[/dim]",
            title=f"Result: {escape(outcome.kind.value)}",
        )
    )


def show_series(points: Sequence[DilutionPoint], dark: bool = False, out: Optional[Console] = None):
    """Display a serial dilution series with log-scale bars."""
    out = out or console
    color = accent(dark)

    table = Table(title="Serial dilution")
    table.add_column("Step", style="cyan", justify="right")
    table.add_column("Concentration", style="white", justify="right")
    table.add_column("log scale", style=color)

    for point, bar in zip(points, series_bars(points)):
        table.add_row(str(point.step), format_number(point.concentration), "█" * bar)

    out.print(table)


def show_history(
    records: Sequence[HistoryRecord],
    limit: int = 0,
    compact: bool = False,
    out: Optional[Console] = None,
):
    """Display history records, newest first.

    Args:
        records: Records to list.
        limit: Maximum number to show (0 = all).
        compact: Truncate long descriptions.
        out: Console to print to.
    """
    out = out or console
    if not records:
        out.print("[dim]No calculations in history.[/dim]")
        return

    shown = list(records[:limit]) if limit > 0 else list(records)

    table = Table(title=f"History ({len(records)})")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Type", style="yellow")
    table.add_column("Time", style="dim")
    table.add_column("Description", style="white")

    for i, record in enumerate(shown, 1):
        description = record.description
        if compact:
            description = truncate_text(description)
        table.add_row(str(i), escape(record.type.value), format_time(record), escape(description))

    out.print(table)
    if len(shown) < len(records):
        out.print(f"[dim]... and {len(records) - len(shown)} more[/dim]")


def show_error(message: str, out: Optional[Console] = None):
    """Display an error message."""
    out = out or console
    out.print(f"[red]Error: {escape(message)}[/red]")
