"""Tests for log tailing and finish markers."""

import threading

import pytest

from ecs_run_task.ecs.models import ContainerState
from ecs_run_task.logs.client import LogEvent
from ecs_run_task.logs.tailer import LogTailer
from ecs_run_task.logs.writer import (
    LogWriter,
    finish_marker,
    finish_sentinel,
    write_container_finished,
)
from ecs_run_task.run.cancel import CancelToken
from ecs_run_task.run.errors import FinalizationError


GROUP = 'group'
STREAM = 'prefix/app/task1'


def _tailer(logs, container_id='c1', poll_interval=0.01):
    emitted = []
    tailer = LogTailer(
        logs=logs,
        group=GROUP,
        stream=STREAM,
        should_continue=finish_sentinel(container_id),
        emit=emitted.append,
        poll_interval=poll_interval,
    )
    return tailer, emitted


class TestFinishSentinel:
    """Tests for the sentinel predicate."""

    def test_rejects_own_marker(self):
        should_continue = finish_sentinel('c1')

        assert should_continue(LogEvent(finish_marker('c1', 0))) is False
        assert should_continue(LogEvent(finish_marker('c1', 137))) is False

    def test_accepts_other_lines(self):
        should_continue = finish_sentinel('c1')

        assert should_continue(LogEvent('hello')) is True
        assert should_continue(LogEvent(finish_marker('c2', 0))) is True
        assert should_continue(LogEvent('  Container c1 exited with 0')) is True

    def test_marker_format(self):
        assert finish_marker('abc123', 5) == "Container abc123 exited with 5"


class TestLogTailer:
    """Tests for LogTailer."""

    def test_stops_at_sentinel(self, fake_logs):
        for message in ['one', 'two', finish_marker('c1', 0), 'after']:
            fake_logs.put_event(GROUP, STREAM, message)
        tailer, emitted = _tailer(fake_logs)

        assert tailer.watch(CancelToken()) is True
        assert emitted == ['one', 'two']

    def test_sentinel_first(self, fake_logs):
        fake_logs.put_event(GROUP, STREAM, finish_marker('c1', 1))
        fake_logs.put_event(GROUP, STREAM, 'never shown')
        tailer, emitted = _tailer(fake_logs)

        assert tailer.watch(CancelToken()) is True
        assert emitted == []

    def test_other_container_marker_is_output(self, fake_logs):
        fake_logs.put_event(GROUP, STREAM, finish_marker('c2', 0))
        fake_logs.put_event(GROUP, STREAM, finish_marker('c1', 0))
        tailer, emitted = _tailer(fake_logs)

        assert tailer.watch(CancelToken()) is True
        assert emitted == [finish_marker('c2', 0)]

    def test_polls_incrementally(self, fake_logs):
        tailer, emitted = _tailer(fake_logs)

        assert tailer.poll() is False
        fake_logs.put_event(GROUP, STREAM, 'one')
        assert tailer.poll() is False
        fake_logs.put_event(GROUP, STREAM, 'two')
        fake_logs.put_event(GROUP, STREAM, 'three')
        assert tailer.poll() is False

        assert emitted == ['one', 'two', 'three']

    def test_waits_for_marker_written_later(self, fake_logs):
        fake_logs.put_event(GROUP, STREAM, 'early')
        tailer, emitted = _tailer(fake_logs)
        timer = threading.Timer(0.05, fake_logs.put_event, (GROUP, STREAM, finish_marker('c1', 0)))

        timer.start()
        try:
            assert tailer.watch(CancelToken()) is True
        finally:
            timer.cancel()

        assert emitted == ['early']

    def test_cancelled_token_stops_without_fetching(self, fake_logs):
        token = CancelToken()
        token.cancel()
        tailer, _ = _tailer(fake_logs)

        assert tailer.watch(token) is False
        assert fake_logs.get_calls == 0

    def test_cancel_interrupts_wait(self, fake_logs):
        token = CancelToken()
        # Long interval: only cancellation can end the wait in time
        tailer, _ = _tailer(fake_logs, poll_interval=60)
        timer = threading.Timer(0.05, token.cancel)

        timer.start()
        result = {}
        worker = threading.Thread(target=lambda: result.update(found=tailer.watch(token)))
        worker.start()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert result['found'] is False

    def test_fetch_error_propagates(self, fake_logs):
        fake_logs.get_error = RuntimeError("throttled")
        tailer, _ = _tailer(fake_logs)

        with pytest.raises(RuntimeError, match="throttled"):
            tailer.watch(CancelToken())


class TestWriteContainerFinished:
    """Tests for writing finish markers."""

    def _container(self, **kwargs):
        data = {
            'name': 'app',
            'arn': 'arn:aws:ecs:us-east-1:123456789012:container/default/task1/c1',
            'last_status': 'STOPPED',
            'exit_code': 0,
        }
        data.update(kwargs)
        return ContainerState(**data)

    def test_writes_marker(self, fake_logs):
        writer = LogWriter(fake_logs, GROUP, STREAM)

        write_container_finished(writer, self._container(exit_code=2))

        assert fake_logs.messages(GROUP, STREAM) == ["Container c1 exited with 2"]

    def test_requires_stopped(self, fake_logs):
        writer = LogWriter(fake_logs, GROUP, STREAM)

        with pytest.raises(FinalizationError, match="expected container to be STOPPED, got RUNNING"):
            write_container_finished(writer, self._container(last_status='RUNNING'))

        assert fake_logs.messages(GROUP, STREAM) == []

    def test_missing_exit_code_surfaces_reason(self, fake_logs):
        writer = LogWriter(fake_logs, GROUP, STREAM)
        container = self._container(exit_code=None, reason="OutOfMemoryError")

        with pytest.raises(FinalizationError) as excinfo:
            write_container_finished(writer, container)

        assert str(excinfo.value) == "OutOfMemoryError"
        assert fake_logs.messages(GROUP, STREAM) == []


class TestCancelToken:
    """Tests for CancelToken."""

    def test_cancel_reaches_children(self):
        parent = CancelToken()
        child = parent.child()
        grandchild = child.child()

        parent.cancel()

        assert child.cancelled
        assert grandchild.cancelled

    def test_child_cancel_leaves_parent(self):
        parent = CancelToken()
        child = parent.child()

        child.cancel()

        assert child.cancelled
        assert not parent.cancelled

    def test_child_of_cancelled_parent(self):
        parent = CancelToken()
        parent.cancel()

        assert parent.child().cancelled

    def test_wait_returns_false_on_timeout(self):
        assert CancelToken().wait(0.01) is False
