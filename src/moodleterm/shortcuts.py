"""Key binding policy for the interactive shell.

The shell reads one line at a time; each line is looked up here and turned
into a named `Command`. Anything that is not a binding is treated as query
text while a finder is open.
"""

from dataclasses import dataclass
from enum import Enum


class Command(Enum):
    QUIT = "quit"
    HELP = "help"
    REFRESH = "refresh"
    BACK = "back"
    UP = "up"
    DOWN = "down"
    PAGE_UP = "page-up"
    PAGE_DOWN = "page-down"
    HOME = "home"
    END = "end"
    EXPAND = "expand"
    COLLAPSE = "collapse"
    TOGGLE = "toggle"
    OPEN_COURSE_FINDER = "open-course-finder"
    OPEN_CONTENT_FINDER = "open-content-finder"
    OPEN_LINK = "open-link"
    OPEN_ASSIGNMENT = "open-assignment"
    FINDER_APPLY = "finder-apply"
    FINDER_CANCEL = "finder-cancel"
    FINDER_PREVIOUS_TARGET = "finder-previous-target"
    FINDER_NEXT_TARGET = "finder-next-target"


@dataclass(frozen=True)
class Shortcut:
    command: Command
    keys: tuple[str, ...]
    action: str


SHORTCUTS = (
    Shortcut(Command.QUIT, ("q", ":q"), "Quit"),
    Shortcut(Command.HELP, ("?",), "Show key bindings"),
    Shortcut(Command.REFRESH, ("r",), "Refresh dashboard or course page"),
    Shortcut(Command.BACK, ("b", "esc"), "Back to dashboard"),
    Shortcut(Command.UP, ("k", "up"), "Move selection up"),
    Shortcut(Command.DOWN, ("j", "down"), "Move selection down"),
    Shortcut(Command.PAGE_UP, ("K", "pgup"), "Jump up by one page"),
    Shortcut(Command.PAGE_DOWN, ("J", "pgdn"), "Jump down by one page"),
    Shortcut(Command.HOME, ("g", "home"), "Jump to first row"),
    Shortcut(Command.END, ("G", "end"), "Jump to last row"),
    Shortcut(Command.EXPAND, ("l", "right"), "Expand node or step into it"),
    Shortcut(Command.COLLAPSE, ("h", "left"), "Collapse node or step out to parent"),
    Shortcut(Command.TOGGLE, ("t",), "Toggle node"),
    Shortcut(Command.OPEN_COURSE_FINDER, ("/",), "Find a course"),
    Shortcut(Command.OPEN_CONTENT_FINDER, ("f",), "Find content in this course"),
    Shortcut(Command.OPEN_LINK, ("o",), "Open selected link in browser"),
    Shortcut(Command.OPEN_ASSIGNMENT, ("a",), "Show assignment details"),
)

FINDER_SHORTCUTS = (
    Shortcut(Command.FINDER_APPLY, ("",), "Apply selection (empty line)"),
    Shortcut(Command.FINDER_CANCEL, ("esc",), "Close finder"),
    Shortcut(Command.UP, ("up",), "Move selection up"),
    Shortcut(Command.DOWN, ("down",), "Move selection down"),
    Shortcut(Command.PAGE_UP, ("pgup",), "Jump up by one page"),
    Shortcut(Command.PAGE_DOWN, ("pgdn",), "Jump down by one page"),
    Shortcut(Command.HOME, ("home",), "First result"),
    Shortcut(Command.END, ("end",), "Last result"),
    Shortcut(Command.FINDER_PREVIOUS_TARGET, ("left",), "Previous target type"),
    Shortcut(Command.FINDER_NEXT_TARGET, ("right",), "Next target type"),
)


def _index(shortcuts: tuple[Shortcut, ...]) -> dict[str, Command]:
    table = {}
    for shortcut in shortcuts:
        for key in shortcut.keys:
            table[key] = shortcut.command
    return table


_PAGE_KEYS = _index(SHORTCUTS)
_FINDER_KEYS = _index(FINDER_SHORTCUTS)


def resolve(line: str, finder_open: bool = False) -> Command | None:
    """Map one line of input to a command, or None if it is not a binding."""
    key = line.strip()
    if finder_open:
        return _FINDER_KEYS.get(key)
    return _PAGE_KEYS.get(key)


def shortcut_sections() -> list[tuple[str, tuple[Shortcut, ...]]]:
    return [("Pages", SHORTCUTS), ("Finder", FINDER_SHORTCUTS)]
