"""Tests for StatusReporter."""

from __future__ import annotations

from conftest import ExplodingObserver, RecordingObserver, StubLogger

from agentfork.core.domain.enums import StatusKind
from agentfork.core.domain.session_components.status_reporter import (
    StatusReporter,
    truncate_preview,
)


def test_truncate_preview_marks_cut() -> None:
    assert truncate_preview("abcdef", 3) == "abc..."
    assert truncate_preview("abc", 3) == "abc"


class TestStatusReporter:
    def test_emit_tags_session_id(self, observer: RecordingObserver) -> None:
        reporter = StatusReporter(observer, session_id="task-1")
        reporter.emit(StatusKind.START, "Starting task: x")

        event = observer.events[0]
        assert event.kind == StatusKind.START
        assert event.message == "Starting task: x"
        assert event.session_id == "task-1"

    def test_disabled_without_observer(self) -> None:
        reporter = StatusReporter()
        assert not reporter.enabled
        reporter.emit(StatusKind.ERROR, "ignored")

    def test_observer_failure_is_logged_not_raised(self) -> None:
        logger = StubLogger()
        reporter = StatusReporter(ExplodingObserver(), session_id="s", logger=logger)

        reporter.emit(StatusKind.ERROR, "boom")

        assert logger.events("warning") == ["status_observer_failed"]

    def test_for_session_shares_observer(self, observer: RecordingObserver) -> None:
        child = StatusReporter(observer, session_id="parent").for_session("parent:task-2")
        child.emit(StatusKind.COMPLETION, "done")
        assert observer.events[0].session_id == "parent:task-2"
