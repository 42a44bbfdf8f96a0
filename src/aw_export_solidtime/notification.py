"""Status display for the time spent in the current session."""

import re
from abc import ABC, abstractmethod
from datetime import timedelta

from .output import user_output
from .utils import format_duration

CLOCK_ICON = "⏱"
PAUSE_ICON = "⏸"
STRIKE = "\u0336"


class SpentTimeNotification(ABC):
    """Passive observer of the tracker; nothing it returns is used."""

    @abstractmethod
    def update(self, total: timedelta) -> None:
        pass

    @abstractmethod
    def enable(self) -> None:
        pass

    @abstractmethod
    def disable(self) -> None:
        pass

    @abstractmethod
    def dispose(self) -> None:
        pass


def strike_through(text: str) -> str:
    return re.sub(r"(.)", lambda m: m.group(1) + STRIKE, text)


class ConsoleStatus(SpentTimeNotification):
    """Prints a one-line status whenever its text changes.

    Enabled: "⏱ 1 hrs 5 mins". Disabled (paused): pause icon and struck-through time.
    """

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet
        self.enabled = True
        self.disposed = False
        self.total = timedelta(0)
        self.text = self._render()
        self._last_printed: str | None = None

    def _render(self) -> str:
        formatted = format_duration(self.total)
        if self.enabled:
            return f"{CLOCK_ICON} {formatted}"
        return f"{PAUSE_ICON} {strike_through(formatted)}"

    def _refresh(self) -> None:
        self.text = self._render()
        if self.quiet or self.disposed or self.text == self._last_printed:
            return
        self._last_printed = self.text
        user_output(self.text, color="green" if self.enabled else "yellow")

    def update(self, total: timedelta) -> None:
        self.total = total
        self._refresh()

    def enable(self) -> None:
        self.enabled = True
        self._refresh()

    def disable(self) -> None:
        self.enabled = False
        self._refresh()

    def dispose(self) -> None:
        self.disposed = True
