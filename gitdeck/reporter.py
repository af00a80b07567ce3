"""Reporters: render sync results and branch/tag listings."""

from __future__ import annotations

from colorama import Fore, Style

from gitdeck.models import Branch, SyncResult, Tag
from gitdeck.protocols import OutputHandler

MESSAGE_WIDTH = 40

# marker, color, SyncResult field
RESULT_FIELDS = (
    ("↑", Fore.GREEN, "pushed"),
    ("↓", Fore.GREEN, "pulled"),
    ("-", Fore.RED, "deleted"),
    ("$", Fore.MAGENTA, "conflict"),
    ("?", Fore.YELLOW, "detached"),
)


def _flag(marker: str, color: str) -> str:
    return f"{color}{marker}{Style.RESET_ALL}"


def render_sync_result(result: SyncResult, with_header: bool = False) -> str:
    """Render one result as marker lines; empty string when there is nothing to show."""
    lines = []
    if result.uncommitted > 0:
        lines.append(f"  {_flag('*', Fore.YELLOW)} {result.uncommitted} dirty")
    for marker, color, attr in RESULT_FIELDS:
        branches = getattr(result, attr)
        if branches:
            lines.append(f"  {_flag(marker, color)} {', '.join(branches)}")

    if not lines:
        return ""
    if with_header:
        lines.insert(0, f"> {result.name}:")
    return "\n".join(lines)


def _shorten(message: str, width: int = MESSAGE_WIDTH) -> str:
    if len(message) <= width:
        return message
    return message[:width - 3] + "..."


class SummaryReporter:
    """Generates and displays summary reports"""

    def __init__(self, output: OutputHandler):
        """Create a reporter that writes to the given output handler."""
        self.output = output

    def print_result(self, result: SyncResult) -> None:
        """Print the result of syncing the current repository."""
        self.output.info("")
        display = render_sync_result(result)
        if not display:
            self.output.info("No result to display")
            return
        self.output.info("Result:")
        self.output.info(display)

    def print_results(self, results: list[SyncResult]) -> None:
        """Print every non-empty result of a batch sync, separated by blank lines."""
        displays = [d for d in (render_sync_result(r, with_header=True) for r in results) if d]
        self.output.info("")
        if not displays:
            self.output.info("No result to display")
            return
        for i, display in enumerate(displays):
            self.output.info(display)
            if i != len(displays) - 1:
                self.output.info("")

    def print_branches(self, branches: list[Branch]) -> None:
        if not branches:
            self.output.info("<empty list>")
            return
        width = max(len(branch.name) for branch in branches) + 2
        self.output.info(f"{'NAME':<{width}} {'STATUS':<9} {'COMMIT':<10} MESSAGE")
        for branch in branches:
            name = f"* {branch.name}" if branch.current else f"  {branch.name}"
            self.output.info(
                f"{name:<{width}} {branch.status.value:<9} {branch.commit_id:<10} "
                f"{_shorten(branch.commit_message)}"
            )

    def print_tags(self, tags: list[Tag]) -> None:
        if not tags:
            self.output.info("<empty list>")
            return
        width = max(len(tag.name) for tag in tags)
        self.output.info(f"{'NAME':<{width}} {'COMMIT':<10} MESSAGE")
        for tag in tags:
            self.output.info(f"{tag.name:<{width}} {tag.commit_id:<10} {_shorten(tag.commit_message)}")
