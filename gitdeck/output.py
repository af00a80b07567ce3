"""Output handler implementations: console, null, buffered.

Progress messages go to stderr so that stdout stays free for machine-readable
output (the `home` command prints a path that shells `cd` into).
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

from colorama import Fore, Style
from tqdm import tqdm

from gitdeck.protocols import OutputHandler

SECTION_WIDTH = 50


class ConsoleOutputHandler:
    """Console output with colors."""

    def __init__(self, verbose: bool = False, stream: TextIO | None = None):
        """Create a console handler writing to `stream` (stderr by default)."""
        self.verbose = verbose
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stderr

    def _write(self, line: str) -> None:
        tqdm.write(line, file=self.stream)

    def info(self, message: str, indent: int = 0) -> None:
        self._write("  " * indent + message)

    def success(self, message: str, indent: int = 0) -> None:
        self._write("  " * indent + f"{Fore.GREEN}{message}{Style.RESET_ALL}")

    def warning(self, message: str, indent: int = 0) -> None:
        self._write("  " * indent + f"{Fore.YELLOW}{message}{Style.RESET_ALL}")

    def error(self, message: str, indent: int = 0) -> None:
        self._write("  " * indent + f"{Fore.RED}{message}{Style.RESET_ALL}")

    def section(self, title: str) -> None:
        self._write("")
        self._write(f"{Style.BRIGHT}{title}{Style.RESET_ALL}")
        self._write("-" * SECTION_WIDTH)

    def debug(self, message: str) -> None:
        """Print a cyan debug message (only when verbose is enabled)."""
        if self.verbose:
            self._write(f"{Fore.CYAN}[DEBUG] {message}{Style.RESET_ALL}")


class NullOutputHandler:
    """Silent output handler, used for batch tasks and tests."""

    def info(self, message: str, indent: int = 0) -> None:
        pass

    def success(self, message: str, indent: int = 0) -> None:
        pass

    def warning(self, message: str, indent: int = 0) -> None:
        pass

    def error(self, message: str, indent: int = 0) -> None:
        pass

    def section(self, title: str) -> None:
        pass

    def debug(self, message: str) -> None:
        pass


class BufferedOutputHandler:
    """Collects a task's messages while the batch status line owns the terminal."""

    def __init__(self, title: str = ""):
        self.title = title
        self.messages: list[str] = []

    def info(self, message: str, indent: int = 0) -> None:
        self.messages.append("  " * indent + message)

    def success(self, message: str, indent: int = 0) -> None:
        self.messages.append("  " * indent + f"{Fore.GREEN}{message}{Style.RESET_ALL}")

    def warning(self, message: str, indent: int = 0) -> None:
        self.messages.append("  " * indent + f"{Fore.YELLOW}{message}{Style.RESET_ALL}")

    def error(self, message: str, indent: int = 0) -> None:
        self.messages.append("  " * indent + f"{Fore.RED}{message}{Style.RESET_ALL}")

    def section(self, title: str) -> None:
        self.messages.append("")
        self.messages.append(title)
        self.messages.append("-" * SECTION_WIDTH)

    def debug(self, message: str) -> None:
        self.messages.append(f"[DEBUG] {message}")

    def flush_to(self, target: OutputHandler) -> None:
        """Write the buffered messages under a section header and clear the buffer."""
        if not self.messages:
            return
        if self.title:
            target.section(self.title)
        for msg in self.messages:
            target.info(msg)
        self.messages.clear()


@contextmanager
def deferred_logging(logger: logging.Logger | None = None) -> Iterator[logging.handlers.MemoryHandler]:
    """Hold the records `logger` (the root logger by default) emits inside the block.

    Its handlers are detached for the duration and replay every held record,
    in order, on exit.
    """
    logger = logger or logging.getLogger()
    handlers = logger.handlers[:]
    memory = logging.handlers.MemoryHandler(capacity=1024, flushLevel=logging.CRITICAL + 1)
    for handler in handlers:
        logger.removeHandler(handler)
    logger.addHandler(memory)
    try:
        yield memory
    finally:
        logger.removeHandler(memory)
        for handler in handlers:
            logger.addHandler(handler)
        for record in memory.buffer:
            logger.handle(record)
        memory.buffer.clear()
        memory.close()
