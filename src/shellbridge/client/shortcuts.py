"""Auxiliary shortcut keys for terminals without a full keyboard.

The bar offers Escape, Tab, a literal slash and a one-shot Ctrl
modifier. Tapping Ctrl arms it; the next character typed or shortcut
pressed is sent as its control character and the modifier disarms, so a
chord like Ctrl+C works without holding two keys.
"""

from __future__ import annotations

import enum


class ShortcutKey(str, enum.Enum):
    ESCAPE = "escape"
    TAB = "tab"
    CTRL = "ctrl"
    SLASH = "slash"


SHORTCUT_INPUT = {
    ShortcutKey.ESCAPE: "\x1b",
    ShortcutKey.TAB: "\t",
    ShortcutKey.SLASH: "/",
}


def apply_ctrl(char: str) -> str:
    """Map a letter to its control character (a/A -> \\x01 ... z/Z -> \\x1a).

    Anything other than a single ASCII letter is returned unchanged.
    """
    if len(char) == 1 and char.isascii() and char.isalpha():
        return chr(ord(char.lower()) - ord("a") + 1)
    return char


class ShortcutBar:
    """Shortcut key state for one terminal."""

    def __init__(self) -> None:
        self._ctrl_armed = False

    @property
    def ctrl_armed(self) -> bool:
        return self._ctrl_armed

    def press(self, key: ShortcutKey) -> str | None:
        """Press a shortcut; returns the input to send, if any.

        Pressing Ctrl only toggles the armed modifier and sends nothing.
        """
        if key is ShortcutKey.CTRL:
            self._ctrl_armed = not self._ctrl_armed
            return None
        return self.transform(SHORTCUT_INPUT[key])

    def transform(self, data: str) -> str:
        """Apply an armed Ctrl to the first character of ``data`` and disarm."""
        if not self._ctrl_armed or not data:
            return data
        self._ctrl_armed = False
        return apply_ctrl(data[0]) + data[1:]
