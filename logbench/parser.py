"""
Line classification and request correlation.

classify() decides what a decoded JSON object is; parse_line() turns one raw
line into a typed event (or None); Correlator groups events into
RequestAggregates, merging later batches into requests it already knows.
"""

import json
import logging
import re

from .events import (
    CALL_MARKERS, CallLineEvent, Kind, LogEvent, QueryEvent, RequestAggregate,
    parse_params, parse_timestamp, strip_ansi,
)

logger = logging.getLogger(__name__)

SQL_KEYWORDS = ('SELECT', 'INSERT', 'UPDATE', 'DELETE', 'TRANSACTION',
                'BEGIN', 'COMMIT', 'ROLLBACK', 'SAVEPOINT')

_RE_SQL = re.compile(r'\b(?:' + '|'.join(SQL_KEYWORDS) + r')\b')


def _message(data: dict) -> str:
    msg = data.get('message')
    if msg is None:
        return ''
    return msg if isinstance(msg, str) else str(msg)


def classify(data: dict) -> Kind:
    # First match wins: request, cache, sql, call line, other.
    if all(data.get(k) is not None and data.get(k) is not False
           for k in ('method', 'path', 'status')):
        return Kind.HTTP_REQUEST
    msg = _message(data)
    if 'CACHE' in msg:
        return Kind.CACHE
    if _RE_SQL.search(strip_ansi(msg)):
        return Kind.SQL
    if any(marker in msg for marker in CALL_MARKERS):
        return Kind.SQL_CALL_LINE
    return Kind.OTHER


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _correlation_id(data: dict):
    # Non-string ids never group, so 123 and "123" cannot merge.
    rid = data.get('request_id')
    if not isinstance(rid, str) or rid == '':
        return None
    return rid


def build_event(data: dict) -> LogEvent:
    kind = classify(data)
    rid  = _correlation_id(data)
    ts   = parse_timestamp(data.get('timestamp'))
    msg  = _message(data)
    if kind is Kind.HTTP_REQUEST:
        return RequestAggregate(
            rid, ts, msg,
            method      = str(data['method']),
            path        = str(data['path']),
            status_code = _as_int(data.get('status')),
            duration_ms = _as_float(data.get('duration')),
            controller  = data.get('controller'),
            action      = data.get('action'),
            params      = parse_params(data.get('params')),
        )
    if kind in (Kind.SQL, Kind.CACHE):
        return QueryEvent(kind, rid, ts, msg)
    if kind is Kind.SQL_CALL_LINE:
        return CallLineEvent(kind, rid, ts, msg)
    return LogEvent(kind, rid, ts, msg)


def parse_line(raw) -> LogEvent | None:
    # One raw line (str or bytes) to an event. Malformed lines yield None.
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', errors='replace')
    line = raw.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except (ValueError, RecursionError):
        logger.debug('dropping non-JSON line: %.80r', line)
        return None
    if not isinstance(data, dict):
        logger.debug('dropping non-object line: %.80r', line)
        return None
    return build_event(data)


def parse_lines(lines) -> list:
    events = []
    for raw in lines:
        ev = parse_line(raw)
        if ev is not None:
            events.append(ev)
    return events


class Correlator:
    """
    Groups events by request id into RequestAggregates.

    Known requests are remembered across ingest() calls so that events
    arriving in a later batch are appended to the aggregate created from an
    earlier one. Only the caller's thread may call ingest(); aggregates are
    mutated here and nowhere else.
    """

    def __init__(self):
        self._by_id: dict[str, RequestAggregate] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, correlation_id: str) -> RequestAggregate | None:
        return self._by_id.get(correlation_id)

    def ingest(self, events) -> list:
        # Returns only the aggregates created by this batch, oldest first.
        groups: dict[str, list] = {}
        for ev in events:
            if ev.correlation_id is None:
                continue
            groups.setdefault(ev.correlation_id, []).append(ev)

        created = []
        for rid, group in groups.items():
            agg = self._by_id.get(rid)
            if agg is None:
                agg = next((e for e in group if isinstance(e, RequestAggregate)), None)
                if agg is None:
                    logger.debug('discarding %d event(s) for %r: no request line',
                                 len(group), rid)
                    continue
                self._by_id[rid] = agg
                created.append(agg)
            appended = 0
            for ev in group:
                if ev.is_request:
                    continue
                agg.add_related(ev)
                appended += 1
            if appended and agg not in created:
                logger.debug('appended %d event(s) to known request %r', appended, rid)

        created.sort(key=lambda r: r.timestamp)
        return created


def group_by_request(events) -> list:
    return Correlator().ingest(events)
