"""Tests for progress parsing and event fan-out."""

import pytest

from hackerosteam.progress import (
    CompletedEvent,
    MessageEvent,
    MessageType,
    OperationReporter,
    ProgressEmitter,
    ProgressEvent,
    parse_progress,
    watch_lines,
)


@pytest.mark.parametrize("line, expected", [
    ("Progress: 10%", 0.10),
    ("Progress: 100%", 1.0),
    ("Progress:42 %", 0.42),
    ("Progress: 12.5%", 0.125),
    ("Progress: 250%", 1.0),
    ("noise", None),
    ("Progress: lots", None),
    ("", None),
])
def test_parse_progress(line, expected):
    if expected is None:
        assert parse_progress(line) is None
    else:
        assert parse_progress(line) == pytest.approx(expected)


def test_watch_lines_reports_only_progress_lines():
    events = []
    reporter = OperationReporter()
    reporter.subscribe(events.append)

    watch_lines(["Progress: 10%", "noise", "Progress: 100%"], reporter)

    assert events == [ProgressEvent(0.10), ProgressEvent(1.0)]


def test_emitter_fans_out_and_unsubscribes():
    emitter = ProgressEmitter()
    first, second = [], []
    emitter.subscribe(first.append)
    unsubscribe = emitter.subscribe(second.append)

    emitter.emit(ProgressEvent(0.5))
    unsubscribe()
    unsubscribe()
    emitter.emit(ProgressEvent(0.6))

    assert first == [ProgressEvent(0.5), ProgressEvent(0.6)]
    assert second == [ProgressEvent(0.5)]


def test_reporter_message_types():
    events = []
    reporter = OperationReporter()
    reporter.subscribe(events.append)

    reporter.info("a")
    reporter.success("b")
    reporter.warning("c")
    reporter.error("d")
    reporter.dim("e")
    reporter.hint("f")
    reporter.completed(False, "boom", 3)

    assert [e.type for e in events[:-1]] == [
        MessageType.INFO,
        MessageType.SUCCESS,
        MessageType.WARNING,
        MessageType.ERROR,
        MessageType.DIM,
        MessageType.HINT,
    ]
    assert events[0] == MessageEvent(MessageType.INFO, "a")
    assert events[-1] == CompletedEvent(False, "boom", 3)
