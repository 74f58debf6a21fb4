"""
Detail pane line builder and its render cache.

build_detail_lines() turns one RequestAggregate into the ordered list of
physical lines shown in the right pane. Lines are grouped into logical
entries by entry_id; blank spacer lines are separators and belong to no
entry. DetailCache memoizes the build on everything that changes the output.
"""

from dataclasses import dataclass, field

from .ansi import ansi_markup, has_ansi, wrap_text
from .events import Kind, LogEvent
from .summary import breakdown_line, build_stats, summary_line


def _no_color(n: int, bold: bool = False):
    return None


@dataclass(eq=False)
class DetailLine:
    text:      str              = ''
    attr:      str | None       = None
    segments:  list | None      = None    # [(attr, text), ...]
    raw_ansi:  bool             = False
    entry_id:  int | None       = None
    separator: bool             = False
    original:  LogEvent | None  = field(default=None, repr=False)

    def markup(self, color_pair=None) -> list:
        # urwid markup for this line (ANSI text needs color_pair to resolve).
        if self.segments:
            return [(a, t) if a else t for a, t in self.segments]
        if self.raw_ansi:
            return ansi_markup(self.text, color_pair or _no_color)
        if self.attr:
            return [(self.attr, self.text)]
        return [self.text]


def _separator() -> DetailLine:
    return DetailLine(separator=True)


# Entry helpers

def entry_ids(lines) -> list:
    # Distinct entry ids of non-separator lines, in display order.
    ids, seen = [], set()
    for line in lines:
        if line.separator or line.entry_id is None or line.entry_id in seen:
            continue
        seen.add(line.entry_id)
        ids.append(line.entry_id)
    return ids


def entry_span(lines, entry_id):
    """
    (first, last) physical line indices of entry_id, or None.

    `last` extends through separator lines that directly follow the entry,
    so revealing it also reveals its trailing spacing.
    """
    first = next((i for i, l in enumerate(lines) if l.entry_id == entry_id), None)
    if first is None:
        return None
    last = first
    for i in range(first + 1, len(lines)):
        if lines[i].entry_id == entry_id or lines[i].separator:
            last = i
        else:
            break
    return first, last


def entry_lines(lines, entry_id) -> list:
    return [l for l in lines if l.entry_id == entry_id]


# Filtering

def filter_related(events, flt) -> list:
    """
    Related events passing the detail filter, in original order.

    A matching call line pulls in the event after it; a matching query pulls
    in the call line directly before it.
    """
    events = list(events)
    if flt is None or not flt.present():
        return events
    matched = set()
    for i, ev in enumerate(events):
        if not ev.raw_content or not flt.matches(ev.raw_content):
            continue
        matched.add(i)
        if ev.kind is Kind.SQL_CALL_LINE:
            if i + 1 < len(events):
                matched.add(i + 1)
        elif ev.kind in (Kind.SQL, Kind.CACHE):
            if i > 0 and events[i - 1].kind is Kind.SQL_CALL_LINE:
                matched.add(i - 1)
    return [events[i] for i in sorted(matched)]


# Formatting

def _format_value(value, depth: int) -> str:
    if isinstance(value, dict):
        return _format_hash(value, depth + 1)
    if isinstance(value, list):
        return '[' + ', '.join(str(v) for v in value) + ']'
    return str(value)


def _format_hash(d: dict, depth: int = 1) -> str:
    if not d:
        return '{}'
    if depth > 2:
        return '{...}'
    pairs = [f'{k}: {_format_value(v, depth)}' for k, v in d.items()]
    return '{ ' + ', '.join(pairs) + ' }'


def format_params(params) -> str:
    if isinstance(params, dict):
        return _format_hash(params, 0) if params else '{}'
    return str(params)


_METHOD_PAIRS = {'GET': 3, 'POST': 4, 'PUT': 5, 'PATCH': 5, 'DELETE': 6}


def status_pair(status: int | None) -> int:
    if status is None:
        return 2
    if 200 <= status < 300:
        return 3
    if 300 <= status < 400:
        return 4
    if 400 <= status < 600:
        return 6
    return 2


def _chunks(text: str, width: int) -> list:
    width = max(1, width)
    return [text[i:i + width] for i in range(0, len(text), width)] or ['']


# Builder

class _Builder:
    def __init__(self, request, width: int, detail_filter, color_pair):
        self.request   = request
        self.width     = width
        self.max_width = max(1, width - 4)
        self.filter    = detail_filter
        self.cp        = color_pair or _no_color
        self.lines: list = []

    def label(self) -> str | None:
        return self.cp(1)

    def add(self, text='', attr=None, entry_id=None, segments=None, **kw):
        if segments is not None:
            text = ''.join(t for _, t in segments)
        self.lines.append(DetailLine(text=text, attr=attr, segments=segments,
                                     entry_id=entry_id, **kw))

    def build(self) -> list:
        r = self.request
        self.lines.append(_separator())

        method_attr = self.cp(_METHOD_PAIRS.get(r.method, 2), True)
        self.add(entry_id=1, segments=[(self.label(), 'Method: '),
                                       (method_attr, r.method)])
        self.path_lines(2)
        self.status_lines(3)
        if r.controller:
            value = f'{r.controller}#{r.action}' if r.action else str(r.controller)
            self.add(entry_id=4, segments=[(self.label(), 'Controller: '),
                                           (None, value)])
        if r.correlation_id:
            self.add(entry_id=5, segments=[(self.label(), 'Request ID: '),
                                           (None, r.correlation_id)])
        self.params_lines(6)
        self.related_lines(7)
        return self.lines

    def path_lines(self, entry_id: int) -> None:
        prefix = 'Path: '
        path   = self.request.path or ''
        first  = max(1, self.max_width - len(prefix))
        self.add(entry_id=entry_id, segments=[(self.label(), prefix),
                                              (None, path[:first])])
        rest = path[first:]
        if rest:
            for chunk in _chunks(rest, self.max_width):
                self.add(chunk, entry_id=entry_id)

    def status_lines(self, entry_id: int) -> None:
        r = self.request
        if r.status_code is None:
            return
        segs = [(self.label(), 'Status: '),
                (self.cp(status_pair(r.status_code)), str(r.status_code))]
        if r.duration_ms is not None:
            segs.append((self.label(), ' | Duration: '))
            segs.append((None, f'{r.duration_ms}ms'))
        self.add(entry_id=entry_id, segments=segs)

    def params_lines(self, entry_id: int) -> None:
        params = self.request.params
        if params is None:
            return
        self.lines.append(_separator())
        self.add(entry_id=entry_id, segments=[(self.cp(1, True), 'Params:')])
        indent = '  '
        for chunk in _chunks(format_params(params), self.max_width - len(indent)):
            self.add(indent + chunk, entry_id=entry_id)

    def related_lines(self, entry_id: int) -> None:
        r       = self.request
        related = r.related
        if not r.correlation_id or not related:
            return
        shown = filter_related(related, self.filter)
        stats = build_stats(r)

        self.lines.append(_separator())
        self.add('Query Summary:', attr=self.cp(1, True), entry_id=entry_id)
        if stats['total_queries'] > 0:
            self.add(f'  {summary_line(stats)}', attr=self.cp(2), entry_id=entry_id)
            breakdown = breakdown_line(stats)
            if breakdown:
                self.add(f'  {breakdown}', attr=self.cp(2), entry_id=entry_id)

        entry_id += 1
        self.lines.append(_separator())
        if self.filter is not None and self.filter.present():
            count = f'({len(shown)}/{len(related)} shown)'
            self.add(entry_id=entry_id, segments=[
                (self.cp(1, True), 'Related Logs '),
                (self.cp(2), count),
                (self.cp(1, True), ':'),
            ])
        else:
            self.add('Related Logs:', attr=self.cp(1, True), entry_id=entry_id)

        i = 0
        while i < len(shown):
            ev  = shown[i]
            nxt = shown[i + 1] if i + 1 < len(shown) else None
            entry_id += 1
            if ev.is_query and nxt is not None and nxt.kind is Kind.SQL_CALL_LINE:
                self.event_lines(ev.raw_content, entry_id, ev, trailing=0)
                self.event_lines(nxt.raw_content, entry_id, ev, trailing=1)
                i += 2
                continue
            self.event_lines(ev.raw_content, entry_id, ev,
                             trailing=0 if ev.is_query else 1)
            i += 1

    def event_lines(self, text: str, entry_id: int, original, trailing: int) -> None:
        ansi   = has_ansi(text)
        chunks = [c for part in (text.splitlines() or [''])
                  for c in wrap_text(part, self.width - 6)]
        for n, chunk in enumerate(chunks):
            self.lines.append(DetailLine(
                text     = f'  {chunk}  ',
                raw_ansi = ansi,
                entry_id = entry_id,
                original = original if n == 0 else None,
            ))
        for _ in range(trailing):
            self.lines.append(_separator())


def build_detail_lines(request, width: int, detail_filter=None,
                       color_pair=None) -> list:
    """
    All display lines for `request` at pane content width `width`.

    color_pair(n, bold=False) returns the attribute for color pair n; when
    omitted lines carry no colors.
    """
    return _Builder(request, width, detail_filter, color_pair).build()


class DetailCache:
    """
    Memoizes build_detail_lines() for the most recently shown request.

    The key is (request identity, related-event count, detail filter text,
    width). A hit returns the very same list; any key change rebuilds it.
    """

    def __init__(self, build=build_detail_lines):
        self._build   = build
        self._key     = None
        self._lines   = None
        self._request = None
        self.builds   = 0

    @staticmethod
    def key_for(request, width: int, detail_filter) -> tuple:
        text = detail_filter.text if detail_filter is not None else ''
        return (id(request), request.related_count, text, width)

    def get(self, request, width: int, detail_filter=None, color_pair=None) -> list:
        key = self.key_for(request, width, detail_filter)
        if self._lines is not None and key == self._key and self._request is request:
            return self._lines
        self._lines   = self._build(request, width, detail_filter, color_pair)
        self._key     = key
        self._request = request
        self.builds  += 1
        return self._lines

    def invalidate(self) -> None:
        self._key     = None
        self._lines   = None
        self._request = None
