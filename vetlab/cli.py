"""CLI interface for VetLab.

Commands:
- solution: Grams needed from molarity or % w/v
- dilution: C1V1 = C2V2
- serial: Serial dilution series
- dose: Dose, stock volume and infusion rate
- convert: Mass, volume, temperature and molar unit conversion
- buffer: Henderson-Hasselbalch pH and ratio
- history: List, delete and export recorded calculations
- config: Show and change settings
- app: Interactive menu-driven session
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .calculator import Calculator, ValidationError, get_calculator
from .config import SETTABLE_KEYS, apply_setting, load_config, save_config, storage_path
from .display import show_error, show_history, show_outcome, show_series
from .history import HistoryStorageError, HistoryStore, export_text, get_history_store
from .storage import JsonFileStorage


console = Console()


def _configure_logging(verbose: bool):
    """Route vetlab logging through rich on stderr."""
    logger = logging.getLogger("vetlab")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.handlers = [RichHandler(console=Console(stderr=True), show_path=False)]
    logger.propagate = False


def _get_store(ctx) -> HistoryStore:
    """History store for the current project."""
    project_path = ctx.obj["project_path"]
    config = ctx.obj["config"]
    return get_history_store(
        JsonFileStorage(str(storage_path(project_path))),
        config.max_history_entries,
    )


def _get_calculator(ctx) -> Calculator:
    """Calculator recording into the current project's history."""
    config = ctx.obj["config"]
    return get_calculator(_get_store(ctx), config.default_drop_factor)


def _run(ctx, method: str, *args):
    """Run a calculator method, print the outcome, exit 1 on errors."""
    calculator = _get_calculator(ctx)
    try:
        outcome = getattr(calculator, method)(*args)
    except ValidationError as e:
        show_error(str(e), out=console)
        sys.exit(1)
    except HistoryStorageError as e:
        show_error(str(e), out=console)
        sys.exit(1)

    show_outcome(outcome, dark=ctx.obj["config"].dark_mode, out=console)
    return outcome


@click.group()
@click.version_option(version=__version__, prog_name="vetlab")
@click.option(
    "--path",
    "-p",
    default=".",
    help="Project directory holding .vetlab state (default: current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx, path: str, verbose: bool):
    """VetLab - veterinary laboratory calculators.

    Solution preparation, dilution, dosing, unit conversion and buffer pH,
    with a local history of every calculation.
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    project_path = str(Path(path).resolve())
    ctx.obj["project_path"] = project_path
    ctx.obj["config"] = load_config(project_path)


# --- Solution Commands ---


@main.group()
@click.pass_context
def solution(ctx):
    """Grams of solute for a solution."""
    pass


@solution.command("molarity")
@click.option("--molarity", "-m", default="", help="Molarity (M)")
@click.option("--volume", "-v", default="", help="Volume (mL)")
@click.option("--mw", "-w", default="", help="Molar weight (g/mol)")
@click.pass_context
def solution_molarity(ctx, molarity: str, volume: str, mw: str):
    """Grams needed for a solution of given molarity.

    Examples:
        vetlab solution molarity -m 0.1 -v 100 -w 58.44
    """
    _run(ctx, "molarity_to_mass", molarity, volume, mw)


@solution.command("percent")
@click.option("--percent", "-c", default="", help="Concentration (% w/v)")
@click.option("--volume", "-v", default="", help="Final volume (mL)")
@click.pass_context
def solution_percent(ctx, percent: str, volume: str):
    """Grams needed for a % w/v solution.

    Examples:
        vetlab solution percent -c 5 -v 100
    """
    _run(ctx, "percent_to_mass", percent, volume)


# --- Dilution Commands ---


@main.command()
@click.option("--c1", default="", help="Initial concentration")
@click.option("--v1", default="", help="Initial volume (mL)")
@click.option("--c2", default="", help="Final concentration (leave out to solve for it)")
@click.option("--v2", default="", help="Final volume (leave out to solve for it)")
@click.pass_context
def dilution(ctx, c1: str, v1: str, c2: str, v2: str):
    """Solve C1V1 = C2V2 for C2 or V2.

    Examples:
        vetlab dilution --c1 1 --v1 100 --v2 500
        vetlab dilution --c1 1 --v1 100 --c2 0.2
    """
    _run(ctx, "dilution", c1, v1, c2, v2)


@main.command()
@click.option("--initial", "-i", default="", help="Initial concentration")
@click.option("--factor", "-f", default="", help="Dilution factor per step")
@click.option("--steps", "-n", default="", help="Number of steps")
@click.pass_context
def serial(ctx, initial: str, factor: str, steps: str):
    """Serial dilution series.

    Examples:
        vetlab serial -i 1 -f 10 -n 6
    """
    outcome = _run(ctx, "serial_dilution", initial, factor, steps)
    show_series(outcome.result, dark=ctx.obj["config"].dark_mode, out=console)


# --- Dose Command ---


@main.command()
@click.option("--dose", "-d", default="", help="Dose (mg/kg)")
@click.option("--weight", "-w", default="", help="Animal weight (kg)")
@click.option("--concentration", "-c", default="", help="Drug concentration (mg/mL)")
@click.option("--duration", "-t", default="", help="Infusion duration (min)")
@click.option("--drop-factor", "-g", default="", help="Drop factor (gtt/mL, default from config)")
@click.pass_context
def dose(ctx, dose: str, weight: str, concentration: str, duration: str, drop_factor: str):
    """Total dose, stock volume and infusion rate.

    Concentration and duration are optional; each adds a result line.

    Examples:
        vetlab dose -d 5 -w 10
        vetlab dose -d 5 -w 10 -c 50 -t 60 -g 20
    """
    _run(ctx, "dose", dose, weight, concentration, duration, drop_factor)


# --- Convert Command ---


@main.command()
@click.argument("category")
@click.argument("value")
@click.argument("from_unit")
@click.argument("to_unit")
@click.pass_context
def convert(ctx, category: str, value: str, from_unit: str, to_unit: str):
    """Convert VALUE from FROM_UNIT to TO_UNIT.

    CATEGORY is one of mass, volume, temperature, molar.

    Examples:
        vetlab convert mass 1000 mg g
        vetlab convert temperature 37 C F
        vetlab convert molar 2 mM uM
    """
    _run(ctx, "convert", category, value, from_unit, to_unit)


# --- Buffer Commands ---


@main.group()
@click.pass_context
def buffer(ctx):
    """Buffer pH (Henderson-Hasselbalch)."""
    pass


@buffer.command("ph")
@click.option("--pka", "-k", default="", help="pKa of the acid")
@click.option("--ratio", "-r", default="", help="Ratio [A-]/[HA]")
@click.pass_context
def buffer_ph(ctx, pka: str, ratio: str):
    """pH from pKa and [A-]/[HA].

    Examples:
        vetlab buffer ph -k 7.2 -r 2
    """
    _run(ctx, "buffer_ph", pka, ratio)


@buffer.command("ratio")
@click.option("--pka", "-k", default="", help="pKa of the acid")
@click.option("--target-ph", "-t", default="", help="Target pH")
@click.pass_context
def buffer_ratio(ctx, pka: str, target_ph: str):
    """[A-]/[HA] ratio needed for a target pH.

    Examples:
        vetlab buffer ratio -k 7.2 -t 7.5
    """
    _run(ctx, "buffer_ratio", pka, target_ph)


# --- History Commands ---


@main.group()
@click.pass_context
def history(ctx):
    """View, delete and export calculation history."""
    pass


@history.command("list")
@click.option("--limit", "-n", default=0, help="Number of entries to show (0 = all)")
@click.option("--compact", "-c", is_flag=True, help="Truncate long descriptions")
@click.pass_context
def history_list(ctx, limit: int, compact: bool):
    """List recorded calculations, newest first."""
    records = _get_store(ctx).load_all()
    show_history(records, limit=limit, compact=compact, out=console)


@history.command("delete")
@click.argument("index", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def history_delete(ctx, index: int, yes: bool):
    """Delete entry INDEX (1-based, as shown by 'history list').

    Examples:
        vetlab history delete 1
        vetlab history delete 3 --yes
    """
    store = _get_store(ctx)
    records = store.load_all()

    if not 1 <= index <= len(records):
        console.print(f"[red]Error: No history entry #{index}[/red]")
        sys.exit(1)

    record = records[index - 1]
    if not yes and not click.confirm(
        f"Delete #{index} ({record.type.value}): {record.description}?", default=False
    ):
        console.print("[yellow]Aborted.[/yellow]")
        return

    try:
        store.remove_at(index - 1)
    except HistoryStorageError as e:
        show_error(str(e), out=console)
        sys.exit(1)
    console.print(f"[green]Deleted entry #{index}.[/green]")


@history.command("export")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write CSV to file instead of stdout")
@click.pass_context
def history_export(ctx, output: str):
    """Export history as CSV (type,time,description).

    Examples:
        vetlab history export
        vetlab history export -o history.csv
    """
    records = _get_store(ctx).load_all()
    text = export_text(records)

    if not output:
        click.echo(text)
        return

    try:
        Path(output).write_text(text + "\n", encoding="utf-8")
    except OSError as e:
        show_error(f"Could not write {output}: {e}", out=console)
        sys.exit(1)
    console.print(f"[green]Exported {len(records)} entries to {output}[/green]")


# --- Config Commands ---


@main.group()
@click.pass_context
def config(ctx):
    """Show and change VetLab settings."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx):
    """Show current settings."""
    cfg = ctx.obj["config"]

    table = Table(title="VetLab settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("history.max_entries", str(cfg.max_history_entries))
    table.add_row("infusion.default_drop_factor", f"{cfg.default_drop_factor:g}")
    table.add_row("display.dark_mode", "true" if cfg.dark_mode else "false")
    console.print(table)


@config.command("set")
@click.argument("key", type=click.Choice(sorted(SETTABLE_KEYS)))
@click.argument("value")
@click.pass_context
def config_set(ctx, key: str, value: str):
    """Set KEY to VALUE.

    Examples:
        vetlab config set infusion.default_drop_factor 60
        vetlab config set display.dark_mode true
    """
    project_path = ctx.obj["project_path"]
    try:
        cfg = apply_setting(ctx.obj["config"], key, value)
    except ValueError as e:
        show_error(str(e), out=console)
        sys.exit(1)

    save_config(project_path, cfg)
    console.print(f"[green]Set {key} = {value}[/green]")


# --- Interactive Command ---


@main.command()
@click.pass_context
def app(ctx):
    """Start the interactive menu-driven session."""
    from .interactive import run_session

    try:
        run_session(ctx.obj["project_path"], out=console)
    except KeyboardInterrupt:
        console.print("\n[yellow]Session ended.[/yellow]")


if __name__ == "__main__":
    main()
