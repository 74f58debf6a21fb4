"""
Incremental log file reading and the background tail thread.

LogFile owns the byte offset: initial_read() consumes the whole file once,
poll() returns events for the complete lines appended since. Tailer runs
poll() on a daemon thread and hands each non-empty batch to the urwid loop
through a SimpleQueue, waking it with a byte on a watch_pipe fd.
"""

import logging
import os
import queue as _queue
import threading

from .config import DEFAULT_LOG_PATH
from .parser import parse_lines

logger = logging.getLogger(__name__)

INACTIVE_SLEEP_TIME = 0.5
ACTIVE_SLEEP_TIME   = 0.01


def find_log_file(path: str | None) -> str:
    # First existing candidate, else the path as given (validated by caller).
    candidates = [p for p in (path, DEFAULT_LOG_PATH) if p]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return path or DEFAULT_LOG_PATH


class LogFile:
    def __init__(self, path: str | None):
        self.path    = find_log_file(path)
        self._offset = 0
        if not os.path.isfile(self.path):
            raise FileNotFoundError(f'File not found: {self.path}')

    @property
    def offset(self) -> int:
        return self._offset

    def size(self) -> int:
        return os.path.getsize(self.path)

    def initial_read(self) -> list:
        # Whole file as the starting dataset; a half-written last line is left
        # for the first poll.
        with open(self.path, 'rb') as fh:
            data = fh.read()
        end = data.rfind(b'\n')
        if end == -1:
            return []
        self._offset = end + 1
        return parse_lines(data[:end].splitlines())

    def read_new_lines(self) -> list:
        """
        Raw lines appended since the last read.

        A shrunken file counts as no growth; the offset is never rewound. A
        trailing line without its newline is left for the next call.
        """
        try:
            size = self.size()
        except OSError:
            return []
        if size <= self._offset:
            return []
        with open(self.path, 'rb') as fh:
            fh.seek(self._offset)
            data = fh.read(size - self._offset)
        end = data.rfind(b'\n')
        if end == -1:
            return []
        self._offset += end + 1
        return data[:end].splitlines()

    def poll(self) -> list:
        return parse_lines(self.read_new_lines())


class Tailer:
    """
    Polls a LogFile on a daemon thread.

    Queue message tuples:
      ('events', list)  -- parsed events from one poll
      ('error',  str)   -- read or parse failure; the thread keeps polling
    Must be drained exclusively from the urwid main-loop thread.
    """

    def __init__(self, log_file: LogFile, q: _queue.SimpleQueue,
                 write_fd: int | None = None,
                 idle_interval: float = INACTIVE_SLEEP_TIME,
                 active_interval: float = ACTIVE_SLEEP_TIME):
        self._file     = log_file
        self._q        = q
        self._fd       = write_fd
        self._idle     = idle_interval
        self._active   = active_interval
        self._stop     = threading.Event()
        self._thread   = threading.Thread(target=self._run, daemon=True,
                                          name='logbench-tail')

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if timeout is not None and self._thread.is_alive():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    # Internal

    def _wake(self) -> None:
        if self._fd is None:
            return
        try:   os.write(self._fd, b'x')
        except OSError: pass

    def _put(self, kind: str, payload) -> None:
        self._q.put((kind, payload))
        self._wake()

    def poll_once(self) -> int:
        # One poll; returns the number of raw lines consumed.
        try:
            lines = self._file.read_new_lines()
        except OSError as exc:
            logger.warning('tail read failed: %s', exc)
            self._put('error', str(exc))
            return 0
        events = parse_lines(lines)
        if events:
            self._put('events', events)
        return len(lines)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                n = self.poll_once()
            except Exception as exc:
                # the offset is already past the failed batch
                logger.exception('tail poll failed')
                self._put('error', str(exc) or type(exc).__name__)
                n = 0
            self._stop.wait(self._active if n else self._idle)
