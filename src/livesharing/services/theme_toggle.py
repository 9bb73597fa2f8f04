"""Two-valued theme state shared between participants."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress

from livesharing.events import ThemeChanged

DEFAULT_THEME = "blue"
ALTERNATE_THEME = "emerald"

ThemeListener = Callable[[ThemeChanged], None]


class ThemeToggle:
    """Flips between the default and alternate theme and notifies listeners."""

    def __init__(self, *, is_alternate: bool = False) -> None:
        self._is_alternate = is_alternate
        self._listeners: list[ThemeListener] = []

    @property
    def is_alternate(self) -> bool:
        return self._is_alternate

    @property
    def theme_name(self) -> str:
        return ALTERNATE_THEME if self._is_alternate else DEFAULT_THEME

    def add_listener(self, listener: ThemeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ThemeListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    def switch_theme(self) -> None:
        self.set_theme(not self._is_alternate)

    def set_theme(self, is_alternate: bool) -> None:
        if is_alternate == self._is_alternate:
            return
        self._is_alternate = is_alternate
        event = ThemeChanged(is_alternate)
        for listener in list(self._listeners):
            listener(event)
