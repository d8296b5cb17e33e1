"""Interactive menu-driven VetLab session.

A small screen router: the HOME menu leads to one screen per calculator plus
history. Screen changes go through the app_state reducer; each screen
handler prompts for inputs, runs the Calculator and renders the outcome.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import questionary
from rich.console import Console

from .app_state import (
    AppState,
    GoHome,
    HistoryLoaded,
    Navigate,
    Screen,
    SCREEN_TITLES,
    ToggleTheme,
    update,
)
from .calculator import CalculationOutcome, ValidationError, get_calculator
from .config import load_config, storage_path
from .display import show_error, show_history, show_outcome, show_series
from .formulas import CATEGORIES, units_for
from .history import HistoryStorageError, export_text, get_history_store
from .storage import JsonFileStorage

BACK = "Back"
QUIT = "Quit"
TOGGLE_THEME = "Toggle dark mode"

# Default from/to units per conversion category
DEFAULT_UNITS = {
    "mass": ("mg", "g"),
    "volume": ("mL", "L"),
    "temperature": ("°C", "°F"),
    "molar": ("M", "mM"),
}


class Prompter:
    """Prompt primitives backed by questionary.

    Each method returns None when the user cancels (Ctrl-C).
    """

    def select(self, message: str, choices: List[str], default: Optional[str] = None) -> Optional[str]:
        return questionary.select(message, choices=choices, default=default).ask()

    def text(self, message: str, default: str = "") -> Optional[str]:
        return questionary.text(message, default=default).ask()

    def confirm(self, message: str, default: bool = False) -> bool:
        return bool(questionary.confirm(message, default=default).ask())


class Session:
    """One interactive run over a project's VetLab state."""

    def __init__(
        self,
        project_path: str = ".",
        prompter: Optional[Prompter] = None,
        out: Optional[Console] = None,
    ):
        """Initialize with project path.

        Args:
            project_path: Directory holding .vetlab state.
            prompter: Prompt implementation (questionary by default).
            out: Console to render to.
        """
        self.project_path = project_path
        self.config = load_config(project_path)
        self.store = get_history_store(
            JsonFileStorage(str(storage_path(project_path))),
            self.config.max_history_entries,
        )
        self.calculator = get_calculator(self.store, self.config.default_drop_factor)
        self.prompter = prompter or Prompter()
        self.out = out or Console()
        self.state = AppState(dark=self.config.dark_mode)

    def dispatch(self, action) -> AppState:
        """Apply an action to the session state."""
        self.state = update(self.state, action)
        return self.state

    def refresh_history(self):
        """Reload the history mirror from storage."""
        self.dispatch(HistoryLoaded(self.store.load_all()))

    def run(self):
        """Run the session until the user quits."""
        self.refresh_history()
        while True:
            handler = SCREEN_HANDLERS[self.state.screen]
            if not handler(self):
                break

    # --- Helpers ---

    def ask(self, *fields) -> Optional[List[str]]:
        """Prompt for (label, default) pairs; None if any prompt is cancelled."""
        answers = []
        for label, default in fields:
            answer = self.prompter.text(f"{label}:", default=default)
            if answer is None:
                return None
            answers.append(answer)
        return answers

    def calculate(self, fn: Callable[..., CalculationOutcome], *args) -> Optional[CalculationOutcome]:
        """Run a calculator method and report the outcome or error."""
        try:
            outcome = fn(*args)
        except ValidationError as e:
            show_error(str(e), out=self.out)
            return None
        except HistoryStorageError as e:
            show_error(str(e), out=self.out)
            return None

        show_outcome(outcome, dark=self.state.dark, out=self.out)
        self.refresh_history()
        return outcome

    def header(self):
        self.out.print(f"\n[bold]{SCREEN_TITLES[self.state.screen]}[/bold]")


# --- Screen handlers ---
# Each returns False to end the session, True to continue.


def home_screen(session: Session) -> bool:
    screens = [s for s in Screen if s is not Screen.HOME]
    labels = {}
    for screen in screens:
        title = SCREEN_TITLES[screen]
        if screen is Screen.HISTORY:
            title = f"{title} ({len(session.state.history)})"
        labels[title] = screen

    theme = "dark" if session.state.dark else "light"
    choice = session.prompter.select(
        f"VetLab ({theme} mode) - choose a calculator:",
        list(labels) + [TOGGLE_THEME, QUIT],
    )
    if choice is None or choice == QUIT:
        return False
    if choice == TOGGLE_THEME:
        session.dispatch(ToggleTheme())
        return True

    session.dispatch(Navigate(labels[choice]))
    return True


def solution_screen(session: Session) -> bool:
    session.header()
    mode = session.prompter.select(
        "Calculation:", ["Molarity → grams", "% w/v → grams", BACK]
    )
    if mode == "Molarity → grams":
        answers = session.ask(
            ("Molarity (M)", "0.1"), ("Volume (mL)", "100"), ("Molar weight (g/mol)", "58.44")
        )
        if answers is not None:
            session.calculate(session.calculator.molarity_to_mass, *answers)
    elif mode == "% w/v → grams":
        answers = session.ask(("Percent (% w/v)", "5"), ("Final volume (mL)", "100"))
        if answers is not None:
            session.calculate(session.calculator.percent_to_mass, *answers)

    session.dispatch(GoHome())
    return True


def dilution_screen(session: Session) -> bool:
    session.header()
    answers = session.ask(
        ("C1", "1"), ("V1 (mL)", "100"), ("C2 (or blank)", ""), ("V2 (or blank, mL)", "")
    )
    if answers is not None:
        session.calculate(session.calculator.dilution, *answers)

    session.dispatch(GoHome())
    return True


def serial_screen(session: Session) -> bool:
    session.header()
    answers = session.ask(
        ("Initial concentration", "1"), ("Dilution factor", "10"), ("Number of steps", "6")
    )
    if answers is not None:
        outcome = session.calculate(session.calculator.serial_dilution, *answers)
        if outcome is not None:
            show_series(outcome.result, dark=session.state.dark, out=session.out)

    session.dispatch(GoHome())
    return True


def dose_screen(session: Session) -> bool:
    session.header()
    answers = session.ask(
        ("Dose (mg/kg)", "5"),
        ("Animal weight (kg)", "10"),
        ("Drug concentration (mg/mL, optional)", "50"),
        ("Infusion duration (min, optional)", "60"),
        ("Drop factor (gtt/mL)", f"{session.config.default_drop_factor:g}"),
    )
    if answers is not None:
        session.calculate(session.calculator.dose, *answers)

    session.dispatch(GoHome())
    return True


def convert_screen(session: Session) -> bool:
    session.header()
    category = session.prompter.select("Category:", CATEGORIES + [BACK])
    if category is not None and category != BACK:
        units = units_for(category)
        value = session.prompter.text("Value:", default="1000")
        from_unit = session.prompter.select(
            "From unit:", units, default=DEFAULT_UNITS[category][0]
        )
        to_unit = session.prompter.select(
            "To unit:", units, default=DEFAULT_UNITS[category][1]
        )
        if None not in (value, from_unit, to_unit):
            session.calculate(session.calculator.convert, category, value, from_unit, to_unit)

    session.dispatch(GoHome())
    return True


def buffer_screen(session: Session) -> bool:
    session.header()
    mode = session.prompter.select(
        "Calculation:", ["pH from pKa and ratio", "Ratio from target pH", BACK]
    )
    if mode == "pH from pKa and ratio":
        answers = session.ask(("pKa", "7.2"), ("Ratio [A-]/[HA]", "1"))
        if answers is not None:
            session.calculate(session.calculator.buffer_ph, *answers)
    elif mode == "Ratio from target pH":
        answers = session.ask(("pKa", "7.2"), ("Target pH", "7.4"))
        if answers is not None:
            session.calculate(session.calculator.buffer_ratio, *answers)

    session.dispatch(GoHome())
    return True


def history_screen(session: Session) -> bool:
    session.header()
    session.refresh_history()
    show_history(session.state.history, out=session.out)

    action = session.prompter.select(
        "History:", ["Delete an entry", "Export CSV", "Refresh", BACK]
    )
    if action == "Delete an entry":
        _delete_entry(session)
    elif action == "Export CSV":
        _export_csv(session)
    elif action == "Refresh":
        return True

    session.dispatch(GoHome())
    return True


def _delete_entry(session: Session):
    raw = session.prompter.text("Entry number to delete:", default="1")
    if raw is None:
        return
    try:
        position = int(raw.strip())
    except ValueError:
        show_error(f"Not an entry number: {raw}", out=session.out)
        return

    if not 1 <= position <= len(session.state.history):
        show_error(f"No history entry #{position}", out=session.out)
        return
    if not session.prompter.confirm(f"Delete entry #{position}?", default=False):
        return

    try:
        session.store.remove_at(position - 1)
    except HistoryStorageError as e:
        show_error(str(e), out=session.out)
        return
    session.refresh_history()
    session.out.print(f"[green]Deleted entry #{position}.[/green]")


def _export_csv(session: Session):
    target = session.prompter.text("Export to file:", default="vetlab_history.csv")
    if not target:
        return
    path = Path(session.project_path) / target
    try:
        path.write_text(export_text(session.state.history) + "\n", encoding="utf-8")
    except OSError as e:
        show_error(f"Could not write {path}: {e}", out=session.out)
        return
    session.out.print(f"[green]Exported {len(session.state.history)} entries to {path}[/green]")


SCREEN_HANDLERS: Dict[Screen, Callable[[Session], bool]] = {
    Screen.HOME: home_screen,
    Screen.SOLUTION: solution_screen,
    Screen.DILUTION: dilution_screen,
    Screen.SERIAL: serial_screen,
    Screen.DOSE: dose_screen,
    Screen.CONVERT: convert_screen,
    Screen.BUFFER: buffer_screen,
    Screen.HISTORY: history_screen,
}

_unhandled = set(Screen) - set(SCREEN_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Screens without a handler: {sorted(s.name for s in _unhandled)}")


def run_session(project_path: str = ".", prompter: Optional[Prompter] = None, out: Optional[Console] = None):
    """Run an interactive session for a project.

    Args:
        project_path: Directory holding .vetlab state.
        prompter: Prompt implementation (questionary by default).
        out: Console to render to.
    """
    Session(project_path, prompter=prompter, out=out).run()
