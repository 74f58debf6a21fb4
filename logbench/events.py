"""
Typed log events.

Every line that survives classification becomes one of the classes below.
Content is fixed at construction; derived fields (operation, duration,
cache hit) are computed once from it in __post_init__.
"""

import enum
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone


ANSI_RE = re.compile(r'\x1b\[[0-9;]*m')

CALL_MARKERS = ('↳', 'â†³')   # ↳ and its mis-decoded bytes

_DURATION_RE = re.compile(r'\(([0-9.]+)ms\)')


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub('', text)


class Kind(enum.Enum):
    HTTP_REQUEST  = 'http_request'
    SQL           = 'sql'
    CACHE         = 'cache'
    SQL_CALL_LINE = 'sql_call_line'
    OTHER         = 'other'


class Operation(enum.Enum):
    SELECT      = 'SELECT'
    INSERT      = 'INSERT'
    UPDATE      = 'UPDATE'
    DELETE      = 'DELETE'
    TRANSACTION = 'TRANSACTION'
    BEGIN       = 'BEGIN'
    COMMIT      = 'COMMIT'
    ROLLBACK    = 'ROLLBACK'
    SAVEPOINT   = 'SAVEPOINT'


# Lookup order matters: the first keyword present wins.
_OPERATION_RES = [(op, re.compile(rf'\b{op.value}\b')) for op in Operation]

TRANSACTIONAL = frozenset({
    Operation.TRANSACTION, Operation.BEGIN, Operation.COMMIT,
    Operation.ROLLBACK, Operation.SAVEPOINT,
})


def find_operation(clean: str) -> Operation | None:
    for op, rx in _OPERATION_RES:
        if rx.search(clean):
            return op
    return None


def parse_timestamp(raw) -> datetime:
    # ISO-8601 to an aware datetime; ingestion time when absent or unparsable.
    if not isinstance(raw, str) or not raw:
        return datetime.now(timezone.utc)
    raw = raw.strip()
    if raw.endswith(('Z', 'z')):
        raw = raw[:-1] + '+00:00'
    try:
        ts = datetime.fromisoformat(raw)
        if ts.tzinfo is None:
            ts = ts.astimezone()   # naive stamps are local time
    except (ValueError, OverflowError, OSError):
        return datetime.now(timezone.utc)
    return ts


@dataclass(frozen=True, eq=False)
class LogEvent:
    kind:           Kind
    correlation_id: str | None
    timestamp:      datetime
    raw_content:    str = ''

    @property
    def clean_content(self) -> str:
        return strip_ansi(self.raw_content)

    @property
    def is_request(self) -> bool:
        return self.kind is Kind.HTTP_REQUEST

    @property
    def is_query(self) -> bool:
        return self.kind in (Kind.SQL, Kind.CACHE)


@dataclass(frozen=True, eq=False)
class QueryEvent(LogEvent):
    operation:    Operation | None = field(init=False, default=None)
    duration_ms:  float            = field(init=False, default=0.0)
    is_cache_hit: bool             = field(init=False, default=False)

    def __post_init__(self):
        clean = strip_ansi(self.raw_content)
        m     = _DURATION_RE.search(clean)
        try:
            duration = float(m.group(1)) if m else 0.0
        except ValueError:    # e.g. "(1.2.3ms)"
            duration = 0.0
        object.__setattr__(self, 'operation',    find_operation(clean))
        object.__setattr__(self, 'duration_ms',  duration)
        object.__setattr__(self, 'is_cache_hit',
                           self.kind is Kind.CACHE and 'CACHE' in clean)

    @property
    def cached(self) -> bool:
        return self.kind is Kind.CACHE

    @property
    def is_select(self) -> bool:
        return self.operation is Operation.SELECT

    @property
    def is_insert(self) -> bool:
        return self.operation is Operation.INSERT

    @property
    def is_update(self) -> bool:
        return self.operation is Operation.UPDATE

    @property
    def is_delete(self) -> bool:
        return self.operation is Operation.DELETE

    @property
    def is_transactional(self) -> bool:
        return self.operation in TRANSACTIONAL


@dataclass(frozen=True, eq=False)
class CallLineEvent(LogEvent):
    location: str = field(init=False, default='')

    def __post_init__(self):
        text = strip_ansi(self.raw_content).strip()
        for marker in CALL_MARKERS:
            if text.startswith(marker):
                text = text[len(marker):].strip()
                break
        object.__setattr__(self, 'location', text)


def parse_params(raw):
    # dict stays a dict; JSON strings are decoded; anything else is kept as text.
    if raw is None or raw == '':
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except (ValueError, RecursionError):
            return raw
        return decoded if isinstance(decoded, dict) else raw
    return str(raw)


class RequestAggregate(LogEvent):
    """
    One HTTP request summary plus the log events sharing its request id.

    The header fields never change after construction. `related` only grows,
    through add_related(); every derived counter is recomputed lazily after
    an append.
    """

    def __init__(self, correlation_id: str | None, timestamp: datetime,
                 raw_content: str = '', *, method: str = '', path: str = '',
                 status_code: int | None = None,
                 duration_ms: float | None = None,
                 controller: str | None = None, action: str | None = None,
                 params=None):
        super().__init__(Kind.HTTP_REQUEST, correlation_id, timestamp, raw_content)
        object.__setattr__(self, 'method',      method)
        object.__setattr__(self, 'path',        path)
        object.__setattr__(self, 'status_code', status_code)
        object.__setattr__(self, 'duration_ms', duration_ms)
        object.__setattr__(self, 'controller',  controller)
        object.__setattr__(self, 'action',      action)
        object.__setattr__(self, 'params',      params)
        object.__setattr__(self, '_related',    [])
        object.__setattr__(self, '_derived',    None)

    def __repr__(self) -> str:
        return (f'RequestAggregate({self.method} {self.path} '
                f'{self.status_code} id={self.correlation_id!r} '
                f'related={len(self._related)})')

    # Related events

    @property
    def related(self) -> tuple:
        return tuple(self._related)

    @property
    def related_count(self) -> int:
        return len(self._related)

    def add_related(self, event: LogEvent) -> None:
        if event.is_request:
            return
        self._related.append(event)
        object.__setattr__(self, '_derived', None)

    def _compute(self) -> dict:
        d = self._derived
        if d is None:
            queries = [e for e in self._related if isinstance(e, QueryEvent)]
            d = {
                'queries':          queries,
                'cache_operations': [q for q in queries if q.cached],
                'sql_queries':      [q for q in queries if not q.cached],
                'total_query_time': sum(q.duration_ms for q in queries),
            }
            object.__setattr__(self, '_derived', d)
        return d

    @property
    def queries(self) -> list:
        return self._compute()['queries']

    @property
    def cache_operations(self) -> list:
        return self._compute()['cache_operations']

    @property
    def sql_queries(self) -> list:
        return self._compute()['sql_queries']

    @property
    def query_count(self) -> int:
        return len(self.queries)

    @property
    def cached_query_count(self) -> int:
        return len(self.cache_operations)

    @property
    def total_query_time(self) -> float:
        return self._compute()['total_query_time']

    # Status

    @property
    def is_success(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return self.status_code is not None and 300 <= self.status_code < 400

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500
