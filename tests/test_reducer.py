"""Tests for session state transitions and the observable store."""

from __future__ import annotations

import pytest

from scrapestream.schemas import ExtractionSession, ResultRecord, SessionStatus, StreamEvent
from scrapestream.services.reducer import (
    apply_event,
    clear_results,
    mark_failed,
    mark_stopped,
    record_error,
    record_malformed,
    request_stop,
    running_progress,
    start_session,
)
from scrapestream.services.store import SessionStore


def _event(**fields) -> StreamEvent:
    return StreamEvent.model_validate(fields)


@pytest.fixture
def running() -> ExtractionSession:
    return start_session("coffee", "Berlin")


class TestApplyEvent:
    """Tests for ``apply_event``."""

    def test_adopts_session_id_once(self, running):
        """The first session id sticks for the whole session."""
        first = apply_event(running, _event(sessionId="s1")).session
        second = apply_event(first, _event(sessionId="s2")).session
        assert first.session_id == "s1"
        assert second.session_id == "s1"

    def test_results_are_replaced_not_merged(self, running):
        """Each event carries the full snapshot."""
        first = apply_event(
            running, _event(results=[{"title": "A"}, {"title": "B"}])
        ).session
        second = apply_event(first, _event(results=[{"title": "C"}])).session
        assert [r.title for r in second.results] == ["C"]

    def test_missing_results_clear_snapshot(self, running):
        """An event without results replaces the snapshot with nothing."""
        first = apply_event(running, _event(results=[{"title": "A"}])).session
        second = apply_event(first, _event(total=20)).session
        assert second.results == ()

    def test_running_event(self, running):
        """Non-terminal events keep the session running."""
        outcome = apply_event(running, _event(total=42.4))
        assert outcome.terminal is False
        assert outcome.session.status == SessionStatus.RUNNING
        assert outcome.session.progress_percent == 42
        assert outcome.session.message == "Processing..."

    def test_running_event_message(self, running):
        """The server message is adopted."""
        session = apply_event(running, _event(total=5, message="Scrolling")).session
        assert session.message == "Scrolling"

    def test_terminal_event(self, running):
        """Completion forces progress to 100 and adopts the filename."""
        outcome = apply_event(
            running,
            _event(isComplete=True, total=3, filename="f.xlsx"),
        )
        assert outcome.terminal is True
        assert outcome.session.status == SessionStatus.COMPLETED
        assert outcome.session.progress_percent == 100
        assert outcome.session.message == "Completed"
        assert outcome.session.filename == "f.xlsx"

    def test_events_after_completion_are_ignored(self, running):
        """No transition leaves COMPLETED."""
        done = apply_event(running, _event(isComplete=True)).session
        outcome = apply_event(done, _event(total=10, results=[{"title": "X"}]))
        assert outcome.session is done
        assert outcome.terminal is True

    def test_idle_session_ignores_events(self):
        """Events do nothing before a run starts."""
        idle = ExtractionSession()
        assert apply_event(idle, _event(total=10)).session is idle

    def test_progress_is_non_decreasing(self, running):
        """Progress across running events never goes backwards."""
        session = running
        seen = []
        for total in [10, 30, 20, 150, 50, -5]:
            session = apply_event(session, _event(total=total)).session
            seen.append(session.progress_percent)
        assert seen == [10, 30, 30, 99, 99, 99]
        assert seen == sorted(seen)

    def test_worked_example(self, running):
        """Two events end in a completed session with one result."""
        session = apply_event(
            running, _event(sessionId="s1", results=[], total=10)
        ).session
        assert session.progress_percent == 10
        outcome = apply_event(
            session,
            _event(
                sessionId="s1",
                results=[{"title": "A"}],
                isComplete=True,
                filename="f.xlsx",
            ),
        )
        final = outcome.session
        assert final.status == SessionStatus.COMPLETED
        assert final.progress_percent == 100
        assert final.results == (ResultRecord(title="A"),)
        assert final.filename == "f.xlsx"


class TestRunningProgress:
    """Tests for ``running_progress``."""

    @pytest.mark.parametrize(
        ("total", "expected"),
        [(0, 0), (0.5, 1), (1.49, 1), (98.6, 99), (100, 99), (250, 99), (-3, 0)],
    )
    def test_clamp_and_round_half_up(self, total, expected):
        """Counters are rounded half-up and clamped into [0, 99]."""
        assert running_progress(total, 0) == expected

    def test_absent_total_keeps_previous(self):
        """A missing counter leaves progress unchanged."""
        assert running_progress(None, 37) == 37


class TestStopTransitions:
    """Tests for the stop/complete precedence rules."""

    def test_request_stop_from_running(self, running):
        """A running session moves to STOP_REQUESTED."""
        assert request_stop(running).status == SessionStatus.STOP_REQUESTED

    def test_request_stop_ignored_when_final(self, running):
        """Completed sessions are not touched."""
        done = apply_event(running, _event(isComplete=True)).session
        assert request_stop(done) is done

    def test_terminal_event_beats_pending_stop(self, running):
        """A terminal event after a stop request still completes."""
        pending = request_stop(running)
        done = apply_event(pending, _event(isComplete=True, filename="f")).session
        assert done.status == SessionStatus.COMPLETED
        assert mark_stopped(done) is done

    def test_running_event_keeps_stop_pending(self, running):
        """Progress events do not revert a pending stop."""
        pending = request_stop(running)
        session = apply_event(pending, _event(total=40, results=[{"title": "A"}])).session
        assert session.status == SessionStatus.STOP_REQUESTED
        assert session.progress_percent == 40
        assert len(session.results) == 1

    def test_mark_stopped(self, running):
        """A locally aborted session ends as STOPPED."""
        stopped = mark_stopped(request_stop(running))
        assert stopped.status == SessionStatus.STOPPED
        assert stopped.message == "Extraction stopped"
        assert stopped.progress_percent < 100

    def test_mark_failed_clears_results(self, running):
        """Transport failures end as FAILED and drop partial results."""
        session = apply_event(running, _event(results=[{"title": "A"}])).session
        failed = mark_failed(session, "connection reset")
        assert failed.status == SessionStatus.FAILED
        assert failed.error == "connection reset"
        assert failed.results == ()

    def test_mark_failed_ignored_when_completed(self, running):
        """A completed session cannot fail afterwards."""
        done = apply_event(running, _event(isComplete=True)).session
        assert mark_failed(done, "late error") is done


class TestSoftErrors:
    """Tests for error bookkeeping that never changes status."""

    def test_record_malformed(self, running):
        """Malformed frames are counted and surfaced."""
        session = record_malformed(record_malformed(running))
        assert session.malformed_frames == 2
        assert session.error == "Error processing data from server"
        assert session.status == SessionStatus.RUNNING

    def test_record_error_keeps_results(self, running):
        """Export errors leave results and status alone."""
        done = apply_event(
            running, _event(isComplete=True, results=[{"title": "A"}])
        ).session
        errored = record_error(done, "Error downloading file")
        assert errored.status == SessionStatus.COMPLETED
        assert errored.results == done.results
        assert errored.error == "Error downloading file"


class TestClearResults:
    """Tests for ``clear_results``."""

    def test_finished_session_resets_to_idle(self, running):
        """Clearing a finished run resets it but keeps the search terms."""
        done = apply_event(
            running,
            _event(sessionId="s1", isComplete=True, results=[{"title": "A"}], filename="f"),
        ).session
        cleared = clear_results(done)
        assert cleared.status == SessionStatus.IDLE
        assert cleared.session_id is None
        assert cleared.results == ()
        assert cleared.filename is None
        assert cleared.keyword == "coffee"

    def test_active_session_only_drops_snapshot(self, running):
        """Clearing during a run keeps the run going."""
        session = apply_event(
            running, _event(sessionId="s1", results=[{"title": "A"}])
        ).session
        cleared = clear_results(session)
        assert cleared.status == SessionStatus.RUNNING
        assert cleared.session_id == "s1"
        assert cleared.results == ()


class TestSessionStore:
    """Tests for ``SessionStore``."""

    def test_publish_notifies_subscribers(self, running):
        """Observers receive each new snapshot."""
        store = SessionStore()
        seen = []
        store.subscribe(seen.append)
        store.publish(running)
        assert store.state is running
        assert seen == [running]

    def test_republishing_same_snapshot_is_silent(self, running):
        """Publishing the current object again notifies nobody."""
        store = SessionStore(running)
        seen = []
        store.subscribe(seen.append)
        store.publish(running)
        assert seen == []

    def test_unsubscribe(self, running):
        """Removed observers are no longer called."""
        store = SessionStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        store.publish(running)
        assert seen == []

    def test_failing_observer_does_not_break_others(self, running):
        """An observer that raises is skipped."""
        store = SessionStore()
        seen = []

        def broken(_session):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(seen.append)
        store.publish(running)
        assert seen == [running]
