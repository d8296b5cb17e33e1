"""Application state for the interactive VetLab session.

State is an immutable AppState value. Every change goes through update(),
which takes the current state and an action and returns the next state:
- Navigate / GoHome switch the active screen
- ToggleTheme flips the dark flag
- HistoryLoaded replaces the in-memory history mirror
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Sequence, Tuple, Union

from .history import HistoryRecord


class Screen(Enum):
    """Screens of the interactive session."""

    HOME = "home"
    SOLUTION = "solution"
    DILUTION = "c1v1"
    SERIAL = "serial"
    DOSE = "dose"
    CONVERT = "convert"
    BUFFER = "buffer"
    HISTORY = "history"


SCREEN_TITLES = {
    Screen.HOME: "Home",
    Screen.SOLUTION: "Solution (M ↔ g / % w/v)",
    Screen.DILUTION: "C1V1 = C2V2 dilution",
    Screen.SERIAL: "Serial dilution",
    Screen.DOSE: "Dose and infusion rate (mL/hr, drops/min)",
    Screen.CONVERT: "Unit conversion",
    Screen.BUFFER: "Buffer pH (Henderson–Hasselbalch)",
    Screen.HISTORY: "History",
}


@dataclass(frozen=True)
class AppState:
    """Everything the session needs to render."""

    screen: Screen = Screen.HOME
    dark: bool = False
    history: Tuple[HistoryRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Navigate:
    screen: Screen


@dataclass(frozen=True)
class GoHome:
    pass


@dataclass(frozen=True)
class ToggleTheme:
    pass


@dataclass(frozen=True)
class HistoryLoaded:
    records: Sequence[HistoryRecord]


Action = Union[Navigate, GoHome, ToggleTheme, HistoryLoaded]


def update(state: AppState, action: Action) -> AppState:
    """Return the state that follows from applying an action.

    Raises:
        TypeError: If the action is not a known action type.
    """
    if isinstance(action, Navigate):
        return replace(state, screen=action.screen)
    if isinstance(action, GoHome):
        return replace(state, screen=Screen.HOME)
    if isinstance(action, ToggleTheme):
        return replace(state, dark=not state.dark)
    if isinstance(action, HistoryLoaded):
        return replace(state, history=tuple(action.records))
    raise TypeError(f"Unknown action: {action!r}")
