"""Concurrent batch executor with a single live status line.

Tasks run on a pool of worker threads. Workers only report events; the
calling thread is the sole terminal writer and redraws the status line on
every event:

    Sync [=====>              ] (3/12) acme/widget, acme/gadget, ...
"""

from __future__ import annotations

import logging
import os
import queue
import shutil
import sys
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, TextIO

from colorama import Cursor, Fore, Style
from colorama.ansi import clear_line

from gitdeck.errors import BatchError
from gitdeck.models import BatchReport, TaskFailure
from gitdeck.protocols import Task

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL_WIDTH = 20
MINIMAL_BAR_WIDTH = 20

SPACE = " "
SEP = ", "
OMIT = ", ..."


@dataclass(frozen=True)
class TaskStarted:
    index: int
    name: str


@dataclass(frozen=True)
class TaskDone:
    index: int
    value: Any = None
    error: str | None = None


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _worker(work: queue.Queue, events: queue.Queue) -> None:
    while True:
        try:
            index, task = work.get_nowait()
        except queue.Empty:
            return
        events.put(TaskStarted(index, task.name))
        try:
            value = task.run()
        except BaseException as e:
            # every started task reports done, whatever it raised
            logger.debug("Task %s failed", task.name, exc_info=True)
            events.put(TaskDone(index, error=_error_message(e)))
        else:
            events.put(TaskDone(index, value=value))


class BatchTracker:
    """Aggregates task events into the status line and the final report."""

    def __init__(self, desc: str, total: int, stream: TextIO | None = None, width: int | None = None):
        self.desc = desc
        self.total = total
        self.stream = stream or sys.stderr
        self.width = width
        self.running: list[TaskStarted] = []
        self.results: list[Any] = [None] * total
        self.report = BatchReport(desc=desc, total=total)
        self._total_pad = len(str(total))
        self._desc_head = SPACE * len(desc)

    @property
    def done_count(self) -> int:
        return self.report.ok_count + self.report.fail_count

    def terminal_width(self) -> int:
        if self.width is not None:
            width = self.width
        else:
            width = shutil.get_terminal_size((DEFAULT_TERMINAL_WIDTH, 24)).columns
        return width if width > 0 else DEFAULT_TERMINAL_WIDTH

    def _overwrite(self, line: str) -> None:
        self.stream.write(Cursor.UP() + clear_line() + line + "\n")
        self.stream.flush()

    def started(self, event: TaskStarted) -> None:
        self.running.append(event)
        self._overwrite(self.render())

    def done(self, event: TaskDone) -> None:
        started = next((task for task in self.running if task.index == event.index), None)
        if started is None:
            return
        self.running.remove(started)

        if event.error is not None:
            self.report.fail_count += 1
            self.report.failures.append(TaskFailure(event.index, started.name, event.error))
            status = f"{Fore.RED}fail{Style.RESET_ALL}"
        else:
            self.report.ok_count += 1
            self.results[event.index] = event.value
            status = f"{Fore.GREEN}ok{Style.RESET_ALL}"

        self._overwrite(f"{self._desc_head} {started.name} {status}")
        self.stream.write(self.render() + "\n")
        self.stream.flush()

    def render(self, width: int | None = None) -> str:
        """The status line, fitted to `width` visible columns."""
        width = width if width is not None else self.terminal_width()
        if len(self.desc) > width:
            return "." * width

        parts = [f"{Fore.CYAN}{Style.BRIGHT}{self.desc}{Style.RESET_ALL}"]
        used = len(self.desc)
        if used + len(SPACE) > width or self.bar_width(width) == 0:
            return "".join(parts)

        for segment in (SPACE, self.render_bar(width), SPACE, self.render_tag(), SPACE):
            if used + len(segment) > width:
                return "".join(parts)
            parts.append(segment)
            used += len(segment)

        left = width - used
        if left > 0:
            parts.append(self.render_running(left))
        return "".join(parts)

    @staticmethod
    def bar_width(width: int) -> int:
        if width <= MINIMAL_BAR_WIDTH:
            return 0
        return width // 4

    def render_bar(self, width: int) -> str:
        bar_width = self.bar_width(width)
        if self.done_count >= self.total:
            filled = bar_width
        else:
            filled = min(int(bar_width * self.done_count / self.total), bar_width)

        if filled == 0:
            current = ""
        else:
            current = "=" * (filled - 1) + ">"
        return f"[{current}{SPACE * (bar_width - filled)}]"

    def render_tag(self) -> str:
        return f"({self.done_count:>{self._total_pad}}/{self.total})"

    def render_running(self, width: int) -> str:
        """Running task names joined by ', ', elided to fit `width`."""
        out = ""
        for idx, task in enumerate(self.running):
            add = len(task.name) if idx == 0 else len(task.name) + len(SEP)
            is_last = idx == len(self.running) - 1
            new_width = len(out) + add
            if new_width > width or (not is_last and new_width == width):
                delta = width - len(out)
                if delta > 0:
                    out += "." * delta if delta < len(OMIT) else OMIT
                break
            if idx != 0:
                out += SEP
            out += task.name
        return out[:width]

    def finish(self, elapsed: float) -> BatchReport:
        """Print the summary and, on failure, every error message."""
        self.report.elapsed = elapsed
        self.report.failures.sort(key=lambda failure: failure.index)
        if self.report.ok:
            result = f"{Fore.GREEN}ok{Style.RESET_ALL}"
        else:
            result = f"{Fore.RED}fail{Style.RESET_ALL}"

        self._overwrite("")
        self.stream.write(
            f"{self.desc} result: {result}. {self.report.ok_count} ok; "
            f"{self.report.fail_count} failed; finished in {elapsed:.2f}s\n"
        )
        if self.report.failures:
            self.stream.write("\nError message:\n")
            for failure in self.report.failures:
                self.stream.write(f"  {failure.name}: {failure.message}\n")
            self.stream.write("\n")
        self.stream.flush()
        return self.report


def run_batch(
    desc: str,
    tasks: Sequence[Task],
    *,
    workers: int | None = None,
    stream: TextIO | None = None,
    width: int | None = None,
) -> list[Any]:
    """Run every task and return their results in submission order.

    Raises BatchError carrying the report if any task failed; the other
    tasks still run to completion.
    """
    if not tasks:
        return []

    worker_count = max(1, min(workers or os.cpu_count() or 1, len(tasks)))

    work: queue.Queue = queue.Queue()
    for index, task in enumerate(tasks):
        work.put((index, task))
    events: queue.Queue = queue.Queue()

    tracker = BatchTracker(desc, len(tasks), stream=stream, width=width)
    tracker.stream.write(f"{Fore.CYAN}{Style.BRIGHT}{desc} with {worker_count} workers{Style.RESET_ALL}\n\n")
    tracker.stream.flush()

    start = time.monotonic()
    threads = [
        threading.Thread(target=_worker, args=(work, events), daemon=True)
        for _ in range(worker_count)
    ]
    for thread in threads:
        thread.start()

    while tracker.done_count < tracker.total:
        event = events.get()
        if isinstance(event, TaskStarted):
            tracker.started(event)
        else:
            tracker.done(event)

    for thread in threads:
        thread.join()

    report = tracker.finish(time.monotonic() - start)
    if not report.ok:
        raise BatchError(report)
    return tracker.results
