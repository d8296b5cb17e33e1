"""Tests for interactive.py - Menu-driven session."""

import io

import pytest
from rich.console import Console

from vetlab.app_state import Screen
from vetlab.config import VetlabConfig, save_config
from vetlab.interactive import SCREEN_HANDLERS, Session
from vetlab.history import CalculationKind


class ScriptedPrompter:
    """Prompter answering from a fixed script, in order."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.messages = []
        self.defaults = {}

    def _next(self, message):
        self.messages.append(message)
        return self.answers.pop(0)

    def select(self, message, choices, default=None):
        answer = self._next(message)
        assert answer is None or answer in choices
        return answer

    def text(self, message, default=""):
        self.defaults[message] = default
        return self._next(message)

    def confirm(self, message, default=False):
        return self._next(message)


@pytest.fixture
def out():
    """Console writing to a buffer."""
    return Console(file=io.StringIO(), width=120)


def run(tmp_path, out, answers):
    """Run a session over a script and return it."""
    prompter = ScriptedPrompter(answers)
    session = Session(str(tmp_path), prompter=prompter, out=out)
    session.run()
    assert prompter.answers == []
    return session


class TestSession:
    """Tests for Session flows."""

    def test_quit(self, tmp_path, out):
        """Test quitting from home."""
        session = run(tmp_path, out, ["Quit"])
        assert session.state.screen is Screen.HOME

    def test_cancel_quits(self, tmp_path, out):
        """Test a cancelled home prompt ends the session."""
        run(tmp_path, out, [None])

    def test_toggle_theme(self, tmp_path, out):
        """Test toggling dark mode."""
        session = run(tmp_path, out, ["Toggle dark mode", "Quit"])
        assert session.state.dark is True

    def test_dark_mode_from_config(self, tmp_path, out):
        """Test the initial theme comes from config."""
        save_config(str(tmp_path), VetlabConfig(dark_mode=True))
        session = run(tmp_path, out, ["Quit"])
        assert session.state.dark is True

    def test_serial_dilution(self, tmp_path, out):
        """Test a serial dilution is shown and recorded."""
        session = run(tmp_path, out, ["Serial dilution", "1", "10", "3", "Quit"])
        assert "0:1, 1:0.1, 2:0.01, 3:0.001" in out.file.getvalue()
        assert len(session.state.history) == 1
        assert session.state.history[0].type is CalculationKind.SERIAL_DILUTION

    def test_solution_molarity(self, tmp_path, out):
        """Test the solution screen molarity flow."""
        session = run(
            tmp_path,
            out,
            ["Solution (M ↔ g / % w/v)", "Molarity → grams", "0.1", "100", "58.44", "Quit"],
        )
        assert "0.5844 g" in out.file.getvalue()
        assert session.state.history[0].type is CalculationKind.MOLARITY_TO_MASS

    def test_solution_back(self, tmp_path, out):
        """Test backing out records nothing."""
        session = run(tmp_path, out, ["Solution (M ↔ g / % w/v)", "Back", "Quit"])
        assert session.state.history == ()

    def test_convert(self, tmp_path, out):
        """Test the conversion screen."""
        session = run(
            tmp_path, out, ["Unit conversion", "temperature", "37", "°C", "°F", "Quit"]
        )
        assert "98.6 °F" in out.file.getvalue()
        assert session.state.history[0].type is CalculationKind.UNIT_CONVERSION

    def test_validation_error_continues(self, tmp_path, out):
        """Test bad input shows an error and returns home."""
        session = run(
            tmp_path,
            out,
            ["Buffer pH (Henderson–Hasselbalch)", "pH from pKa and ratio", "", "1", "Quit"],
        )
        assert "Enter numeric values for" in out.file.getvalue()
        assert session.state.history == ()
        assert session.state.screen is Screen.HOME

    def test_dose_then_delete(self, tmp_path, out):
        """Test recording a dose then deleting it from history."""
        session = run(
            tmp_path,
            out,
            [
                "Dose and infusion rate (mL/hr, drops/min)",
                "5", "10", "50", "60", "20",
                "History (1)",
                "Delete an entry",
                "1",
                True,
                "Quit",
            ],
        )
        assert "Total dose: 50 mg" in out.file.getvalue()
        assert session.state.history == ()
        assert session.store.load_all() == []

    def test_delete_declined(self, tmp_path, out):
        """Test declining the confirmation keeps the entry."""
        session = run(
            tmp_path,
            out,
            [
                "Dose and infusion rate (mL/hr, drops/min)",
                "5", "10", "", "", "",
                "History (1)",
                "Delete an entry",
                "1",
                False,
                "Quit",
            ],
        )
        assert len(session.store.load_all()) == 1

    def test_delete_out_of_range(self, tmp_path, out):
        """Test deleting a missing entry reports an error."""
        run(tmp_path, out, ["History (0)", "Delete an entry", "3", "Quit"])
        assert "No history entry #3" in out.file.getvalue()

    def test_export(self, tmp_path, out):
        """Test exporting history to CSV."""
        run(
            tmp_path,
            out,
            [
                "C1V1 = C2V2 dilution", "1", "100", "", "500",
                "History (1)", "Export CSV", "out.csv",
                "Quit",
            ],
        )
        content = (tmp_path / "out.csv").read_text(encoding="utf-8")
        assert content.startswith("type,time,description\n")
        assert '"C1V1"' in content

    def test_buffer_prompts_prefilled(self, tmp_path, out):
        """Test buffer prompts offer a typical pKa and target pH."""
        prompter = ScriptedPrompter(
            ["Buffer pH (Henderson–Hasselbalch)", "Ratio from target pH", "7.2", "7.4", "Quit"]
        )
        Session(str(tmp_path), prompter=prompter, out=out).run()
        assert prompter.defaults["pKa:"] == "7.2"
        assert prompter.defaults["Target pH:"] == "7.4"

    def test_history_persists_between_sessions(self, tmp_path, out):
        """Test a new session sees earlier records."""
        run(tmp_path, out, ["Buffer pH (Henderson–Hasselbalch)", "Ratio from target pH", "7.2", "7.5", "Quit"])
        session = run(tmp_path, out, ["Quit"])
        assert session.state.history[0].type is CalculationKind.BUFFER_RATIO


class TestScreenHandlers:
    """Tests for the screen handler table."""

    def test_every_screen_handled(self):
        """Test every screen has a handler."""
        assert set(SCREEN_HANDLERS) == set(Screen)
