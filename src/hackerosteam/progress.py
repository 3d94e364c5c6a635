# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Progress reporting for sandbox operations.

Operations never print. They report through an OperationReporter, which
turns calls into events and fans them out to every subscribed observer:
the CLI renders them with rich, the D-Bus daemon re-emits them as
signals. Nothing here knows who is listening.

Long-running external commands (dnf inside the container) are observed
line by line; any line of the form ``Progress: <number>%`` becomes a
ProgressEvent. Other lines are ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Iterable, Union

logger = logging.getLogger(__name__)

PROGRESS_RE = re.compile(r"Progress:\s*(\d+(?:\.\d+)?)\s*%")


class MessageType(IntEnum):
    """Message types for operation progress."""

    INFO = 0  # Regular info (blue)
    SUCCESS = 1  # Success with checkmark (green)
    WARNING = 2  # Warning (yellow)
    ERROR = 3  # Error (red)
    DIM = 4  # Muted/secondary info (gray)
    HINT = 5  # Hint for user action


@dataclass(frozen=True)
class MessageEvent:
    type: MessageType
    text: str


@dataclass(frozen=True)
class ProgressEvent:
    fraction: float


@dataclass(frozen=True)
class CompletedEvent:
    success: bool
    message: str = ""
    exit_code: int = 0


Event = Union[MessageEvent, ProgressEvent, CompletedEvent]
Observer = Callable[[Event], None]


def parse_progress(line: str) -> float | None:
    """Extract a completion fraction in [0, 1] from a progress line.

    Returns None for anything that isn't a progress line.
    """
    match = PROGRESS_RE.search(line)
    if match is None:
        return None
    return min(float(match.group(1)) / 100.0, 1.0)


@dataclass
class ProgressEmitter:
    """Fans events out to any number of observers."""

    _observers: list[Observer] = field(default_factory=list)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer. Returns a function that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def emit(self, event: Event) -> None:
        for observer in list(self._observers):
            observer(event)


@dataclass
class OperationReporter:
    """Injected into the orchestrator for progress reporting.

    Usage:
        reporter = OperationReporter()
        reporter.subscribe(print)
        reporter.info("Creating container...")
        reporter.progress(0.5)
    """

    emitter: ProgressEmitter = field(default_factory=ProgressEmitter)

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        return self.emitter.subscribe(observer)

    def _message(self, message_type: MessageType, message: str) -> None:
        self.emitter.emit(MessageEvent(message_type, message))

    def info(self, message: str) -> None:
        self._message(MessageType.INFO, message)

    def success(self, message: str) -> None:
        self._message(MessageType.SUCCESS, message)

    def warning(self, message: str) -> None:
        self._message(MessageType.WARNING, message)

    def error(self, message: str) -> None:
        self._message(MessageType.ERROR, message)

    def dim(self, message: str) -> None:
        self._message(MessageType.DIM, message)

    def hint(self, message: str) -> None:
        self._message(MessageType.HINT, message)

    def progress(self, fraction: float) -> None:
        self.emitter.emit(ProgressEvent(fraction))

    def completed(self, success: bool, message: str = "", exit_code: int = 0) -> None:
        self.emitter.emit(CompletedEvent(success, message, exit_code))


def watch_lines(lines: Iterable[str], reporter: OperationReporter) -> None:
    """Report progress for each matching line as it is consumed."""
    for line in lines:
        fraction = parse_progress(line)
        if fraction is not None:
            logger.debug("progress %.2f", fraction)
            reporter.progress(fraction)
