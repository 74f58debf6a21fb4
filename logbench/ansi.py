"""
ANSI-aware text layout.

Two wrap modes share one contract: the output is a list of chunks whose
visible text, concatenated, is exactly the visible text of the input.
wrap_ansi() never splits an escape sequence and re-opens the active color at
the start of every continuation chunk.
"""

import re

from .events import ANSI_RE, strip_ansi

RESET = '\x1b[0m'

_SPLIT_RE = re.compile(r'(\x1b\[[0-9;]*m)')
_CODES_RE = re.compile(r'\x1b\[([0-9;]*)m')

# ANSI SGR code -> color pair id (see app.COLOR_PAIRS)
ANSI_PAIRS = {
    1:  7,    # bold
    30: 8,    # black
    31: 6,    # red
    32: 3,    # green
    33: 4,    # yellow
    34: 5,    # blue
    35: 9,    # magenta
    36: 1,    # cyan
}


def has_ansi(text: str) -> bool:
    return ANSI_RE.search(text) is not None


def visible_len(text: str) -> int:
    return len(strip_ansi(text))


def tokenize(text: str) -> list:
    # [('ansi', '\x1b[1m'), ('text', 'foo'), ...]; empty literals dropped.
    out = []
    for part in _SPLIT_RE.split(text):
        if not part:
            continue
        out.append(('ansi' if _SPLIT_RE.fullmatch(part) else 'text', part))
    return out


def wrap_plain(text: str, max_width: int) -> list:
    max_width = max(1, max_width)
    if len(text) <= max_width:
        return [text]
    chunks    = []
    remaining = text
    while len(remaining) > max_width:
        window = remaining[:max_width]
        brk    = max_width
        # breaking mid-word: back up to just after the last space in the window
        if remaining[max_width] != ' ' and ' ' in window:
            brk = window.rindex(' ') + 1
        chunks.append(remaining[:brk])
        remaining = remaining[brk:]
    if remaining:
        chunks.append(remaining)
    return chunks


def wrap_ansi(text: str, max_width: int) -> list:
    max_width = max(1, max_width)
    if visible_len(text) <= max_width:
        return [text]

    chunks       = []
    chunk        = ''
    chunk_len    = 0
    active_color = ''

    for kind, part in tokenize(text):
        if kind == 'ansi':
            active_color = '' if part == RESET else part
            chunk += part
            continue
        while part:
            room = max_width - chunk_len
            if room <= 0:
                chunks.append(chunk)
                chunk, chunk_len = active_color, 0
                room = max_width
            take       = part[:room]
            chunk     += take
            chunk_len += len(take)
            part       = part[room:]

    if chunk:
        chunks.append(chunk)
    return chunks


def wrap_text(text: str, max_width: int) -> list:
    if has_ansi(text):
        return wrap_ansi(text, max_width)
    return wrap_plain(text, max_width)


def _attr_for(codes: list, color_pair):
    # First recognised code wins; reset / white / unknown mean default.
    if not codes or codes == [0]:
        return None
    for code in codes:
        if code == 37:
            return None
        pair = ANSI_PAIRS.get(code)
        if pair is not None:
            return color_pair(pair)
    return None


def ansi_markup(text: str, color_pair) -> list:
    """
    Convert an escape-colored string to urwid markup.

    color_pair(n) maps a small pair id to a palette attribute name. Literal
    text with no active color is emitted as a bare string.
    """
    out  = []
    attr = None
    for kind, part in tokenize(text):
        if kind == 'ansi':
            m = _CODES_RE.fullmatch(part)
            codes = [int(c) for c in m.group(1).split(';') if c.isdigit()]
            attr  = _attr_for(codes, color_pair)
        elif attr is not None:
            out.append((attr, part))
        else:
            out.append(part)
    return out or ['']
