"""Tests for incremental reads and the background tail thread."""

import queue

import pytest

from logbench.events import RequestAggregate
from logbench.tailer import LogFile, Tailer, find_log_file
from tests.conftest import line


@pytest.fixture
def log_path(tmp_path, request_line):
    path = tmp_path / 'development.log'
    path.write_text(request_line + '\n')
    return path


def append(path, text):
    with open(path, 'a') as fh:
        fh.write(text)


class TestLogFile:
    def test_missing_file_raises(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(FileNotFoundError, match='File not found'):
            LogFile(str(tmp_path / 'nope.log'))

    def test_default_path_used_when_given_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / 'log').mkdir()
        (tmp_path / 'log' / 'development.log').write_text('')
        assert find_log_file('missing.log') == 'log/development.log'

    def test_initial_read_consumes_file(self, log_path):
        lf = LogFile(str(log_path))
        events = lf.initial_read()
        assert len(events) == 1
        assert isinstance(events[0], RequestAggregate)
        assert lf.offset == log_path.stat().st_size
        assert lf.poll() == []

    def test_growth_yields_only_new_lines(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        append(log_path, line(message='SELECT 1', request_id='abc123') + '\n')
        events = lf.poll()
        assert len(events) == 1
        assert events[0].raw_content == 'SELECT 1'
        assert lf.poll() == []

    def test_partial_line_waits_for_newline(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        text = line(message='SELECT 1', request_id='abc123')
        append(log_path, text[:10])
        assert lf.poll() == []
        append(log_path, text[10:] + '\n')
        assert len(lf.poll()) == 1

    def test_truncation_reads_nothing(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        offset = lf.offset
        log_path.write_text('')
        assert lf.poll() == []
        assert lf.offset == offset

    def test_malformed_appended_lines_are_skipped(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        append(log_path, 'garbage\n' + line(message='hi', request_id='x') + '\n')
        assert [e.raw_content for e in lf.poll()] == ['hi']


class TestTailer:
    def test_poll_once_queues_events(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        q = queue.SimpleQueue()
        tailer = Tailer(lf, q)
        assert tailer.poll_once() == 0
        assert q.empty()

        append(log_path, line(message='SELECT 1', request_id='abc123') + '\n')
        assert tailer.poll_once() == 1
        kind, events = q.get_nowait()
        assert kind == 'events'
        assert len(events) == 1

    def test_thread_delivers_and_stops(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        q = queue.SimpleQueue()
        tailer = Tailer(lf, q, idle_interval=0.01, active_interval=0.01)
        tailer.start()
        try:
            append(log_path, line(message='SELECT 1', request_id='abc123') + '\n')
            kind, events = q.get(timeout=5)
        finally:
            tailer.stop(timeout=5)
        assert kind == 'events'
        assert len(events) == 1
        assert not tailer.running


class TestTailerResilience:
    def test_hostile_line_does_not_stop_delivery(self, log_path):
        lf = LogFile(str(log_path))
        lf.initial_read()
        q = queue.SimpleQueue()
        tailer = Tailer(lf, q, idle_interval=0.01, active_interval=0.01)
        tailer.start()
        try:
            append(log_path, line(method='GET', path='/bad', status=1e400,
                                  request_id='bad') + '\n')
            append(log_path, line(method='GET', path='/ok', status=200,
                                  request_id='ok') + '\n')
            paths = []
            while '/ok' not in paths:
                kind, events = q.get(timeout=5)
                assert kind == 'events'
                paths += [e.path for e in events]
        finally:
            tailer.stop(timeout=5)
        assert '/bad' in paths

    def test_unexpected_error_is_reported_and_polling_continues(self, log_path, monkeypatch):
        import logbench.tailer as tailer_mod

        real_parse = tailer_mod.parse_lines
        calls = []

        def flaky_parse(lines):
            calls.append(lines)
            if len(calls) == 1 and lines:
                raise RuntimeError('boom')
            return real_parse(lines)

        lf = LogFile(str(log_path))
        lf.initial_read()
        q = queue.SimpleQueue()
        monkeypatch.setattr(tailer_mod, 'parse_lines', flaky_parse)
        tailer = Tailer(lf, q, idle_interval=0.01, active_interval=0.01)
        append(log_path, line(message='first', request_id='abc123') + '\n')
        tailer.start()
        try:
            assert q.get(timeout=5) == ('error', 'boom')
            append(log_path, line(message='second', request_id='abc123') + '\n')
            kind, events = q.get(timeout=5)
        finally:
            tailer.stop(timeout=5)
        assert kind == 'events'
        assert [e.raw_content for e in events] == ['second']

    def test_initial_read_leaves_partial_line(self, tmp_path, request_line):
        path = tmp_path / 'partial.log'
        text = line(message='SELECT 1', request_id='abc123')
        path.write_text(request_line + '\n' + text[:10])
        lf = LogFile(str(path))
        assert len(lf.initial_read()) == 1
        assert lf.offset == len(request_line) + 1
        append(path, text[10:] + '\n')
        assert [e.raw_content for e in lf.poll()] == ['SELECT 1']
