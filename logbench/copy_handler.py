"""Reconstruct the focused request or detail entry as clipboard text."""

import re

from . import clipboard
from .details import entry_ids, entry_lines
from .events import CALL_MARKERS, strip_ansi
from .parser import SQL_KEYWORDS
from .summary import text_summary

_SQL_RE = re.compile(r'\b(?:' + '|'.join(SQL_KEYWORDS) + r')\b', re.IGNORECASE)


def is_sql(text: str) -> bool:
    return _SQL_RE.search(text) is not None


def _unpad(text: str) -> str:
    # event lines are rendered as '  <chunk>  '
    if text.startswith('  ') and text.endswith('  ') and len(text) >= 4:
        return text[2:-2]
    return text


def request_text(request) -> str:
    out = ['```', f'{request.method} {request.path} {request.status_code}']
    if request.duration_ms is not None:
        out.append(f'Duration: {request.duration_ms}ms')
    if request.controller:
        out.append(f'Controller: {request.controller}')
    if request.action:
        out.append(f'Action: {request.action}')
    if request.correlation_id:
        out.append(f'Request ID: {request.correlation_id}')
    out.append(f'Timestamp: {request.timestamp.isoformat()}')
    if request.params:
        out.append(f'Params: {request.params}')
    if request.related_count:
        out.append('')
        out.append(text_summary(request))
    out.append('```')
    return '\n'.join(out)


def companion_call_line(lines) -> str | None:
    # Visible text of the call line inside one entry's lines, unwrapped.
    texts = [strip_ansi(_unpad(l.text)) for l in lines]
    for i, text in enumerate(texts):
        if text.strip().startswith(CALL_MARKERS):
            return ''.join(texts[i:]).strip()
    return None


class CopyHandler:
    """
    Copies whatever is selected in the focused pane.

    lines_for(request) must return the detail lines currently displayed for
    the request (normally DetailCache output); sink receives the final text.
    """

    def __init__(self, state, lines_for, sink=None):
        self.state     = state
        self.lines_for = lines_for
        self._sink     = sink

    def _copy(self, text: str) -> None:
        if self._sink is not None:
            self._sink(text)
        else:
            clipboard.copy(text)

    def copy_to_clipboard(self) -> str | None:
        if self.state.left_pane_focused:
            text = self.selected_request_text()
        else:
            text = self.selected_entry_text()
        if text is not None:
            self._copy(text)
        return text

    def selected_request_text(self) -> str | None:
        request = self.state.current_request()
        if request is None:
            return None
        return request_text(request)

    def selected_entry_text(self) -> str | None:
        request = self.state.current_request()
        if request is None:
            return None
        lines = self.lines_for(request)
        if not lines:
            return None
        ids = entry_ids(lines)
        idx = self.state.detail_selected_entry
        if not 0 <= idx < len(ids):
            return None
        selected = entry_lines(lines, ids[idx])
        original = next((l.original for l in selected if l.original is not None), None)

        if original is not None:
            clean = strip_ansi(original.raw_content).strip()
            if not is_sql(clean):
                return clean
            call = companion_call_line(selected)
            body = f'{clean}\n{call}' if call else clean
            return f'```sql\n{body}\n```'

        parts = [strip_ansi(l.text).strip() for l in selected]
        text  = ' '.join(p for p in parts if p)
        text  = re.sub(r'\s+', ' ', text).strip()
        if is_sql(text):
            return f'```sql\n{text}\n```'
        return text
