"""Interactive prompts built on InquirerPy."""

from __future__ import annotations

import sys

from InquirerPy import inquirer
from InquirerPy.base.control import Choice

from gitdeck.errors import GitDeckError, NoCandidatesError, UserCancelledError


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise GitDeckError(
            "Interactive mode requires a TTY. Provide a full repository name to run non-interactively."
        )


class InquirerSelector:
    """Fuzzy chooser returning the index of the picked item."""

    def __init__(self, message: str = "Select"):
        self.message = message

    def select(self, items: list[str]) -> int:
        if not items:
            raise NoCandidatesError("nothing to select")
        _ensure_tty()
        choices = [Choice(value=idx, name=item) for idx, item in enumerate(items)]
        try:
            picked = inquirer.fuzzy(message=self.message, choices=choices).execute()
        except KeyboardInterrupt as e:
            raise UserCancelledError("selection cancelled") from e
        if picked is None:
            raise UserCancelledError("selection cancelled")
        return picked


def confirm(message: str, default: bool = True) -> bool:
    """Ask a yes/no question. Ctrl-C cancels the whole command."""
    _ensure_tty()
    try:
        return bool(inquirer.confirm(message=message, default=default).execute())
    except KeyboardInterrupt as e:
        raise UserCancelledError("confirmation cancelled") from e
