#!/usr/bin/env python3
"""
LogBench — two-pane terminal viewer for JSON-lines request logs
Requires: urwid  →  pip install urwid

Usage:    logbench [PATH]            (defaults to log/development.log)

Keys:
  Tab / ← →    switch pane
  ↑ ↓ / k j    move selection (requests on the left, entries on the right)
  PgUp / PgDn  move by a page
  g / G        first / last request
  /            filter the focused pane; Enter keeps it, Esc clears it
  Esc          clear the focused pane's filter
  s            cycle sort (time, duration, status)
  a            toggle auto-scroll
  t            toggle text selection (hands the mouse back to the terminal)
  c / u        clear requests / undo the clear
  y            copy the selection to the clipboard
  q            quit
"""

import argparse
import logging
import queue as _queue
import sys

import urwid

from .ansi import strip_ansi
from .config import Config, load_config
from .copy_handler import CopyHandler
from .details import DetailCache, build_detail_lines
from .parser import Correlator
from .state import State
from .tailer import LogFile, Tailer

logger = logging.getLogger(__name__)


# Palette
# color pair id -> (attr name, foreground); every pair also gets a bold twin.
COLOR_PAIRS = {
    1:  ('cyan',     'dark cyan'),
    2:  ('dim',      'dark gray'),
    3:  ('green',    'light green'),
    4:  ('yellow',   'yellow'),
    5:  ('blue',     'light blue'),
    6:  ('red',      'light red'),
    7:  ('bold',     'white'),
    8:  ('black',    'black'),
    9:  ('magenta',  'light magenta'),
    10: ('selected', 'black'),
}

PALETTE = [
    # chrome
    ('header',     'white,bold',       'dark blue'),
    ('h_dim',      'light blue',       'dark blue'),
    ('tail_on',    'light green,bold', 'dark blue'),
    ('tail_off',   'dark gray',        'dark blue'),
    ('footer',     'black',            'light gray'),
    ('fk',         'dark blue,bold',   'light gray'),
    ('f_msg',      'dark red,bold',    'light gray'),
    # panes
    ('filter',     'yellow',           'default'),
    ('row_sel',    'black',            'dark cyan'),
    ('row_sel_d',  'black',            'light gray'),
    ('detail_sel', 'black',            'dark cyan'),
    ('empty',      'dark gray',        'default'),
]
for _n, (_name, _fg) in COLOR_PAIRS.items():
    _bg = 'dark cyan' if _name == 'selected' else 'default'
    PALETTE.append((_name,        _fg,           _bg))
    PALETTE.append((_name + '_b', _fg + ',bold', _bg))


def color_pair(n: int, bold: bool = False) -> str | None:
    pair = COLOR_PAIRS.get(n)
    if pair is None:
        return None
    return pair[0] + '_b' if bold else pair[0]


_METHOD_ATTR = {'GET': 'green_b', 'POST': 'yellow_b', 'PUT': 'blue_b',
                'PATCH': 'blue_b', 'DELETE': 'red_b'}


def _status_attr(status) -> str:
    if status is None:
        return 'dim'
    if 200 <= status < 300:
        return 'green'
    if 300 <= status < 400:
        return 'yellow'
    return 'red' if status >= 400 else 'dim'


# Widgets
class PaneView(urwid.Widget):
    """
    Box widget that paints whatever draw_cb(cols, rows) returns.

    draw_cb returns one urwid markup item per row; scrolling is owned by the
    State object, not by urwid, so the widget only ever renders a window.
    """
    _sizing     = frozenset([urwid.BOX])
    _selectable = False

    def __init__(self, draw_cb, mouse_cb=None):
        super().__init__()
        self._draw_cb  = draw_cb
        self._mouse_cb = mouse_cb

    def refresh(self) -> None:
        self._invalidate()

    def render(self, size, focus=False):
        maxcol, maxrow = size
        if maxrow <= 0:
            return urwid.SolidCanvas(' ', maxcol, 0)
        rows  = list(self._draw_cb(maxcol, maxrow))[:maxrow]
        rows += [''] * (maxrow - len(rows))
        canvases = []
        for m in rows:
            c = urwid.CompositeCanvas(urwid.Text(m, wrap='clip').render((maxcol,)))
            if c.rows() > 1:   # embedded newline; one markup item is one row
                c.trim_end(c.rows() - 1)
            canvases.append((c, None, False))
        return urwid.CanvasCombine(canvases)

    def mouse_event(self, size, event, button, col, row, focus):
        if self._mouse_cb is None:
            return False
        return self._mouse_cb(event, button, col, row)


# Main Application
class LogBenchApp:
    def __init__(self, state: State, correlator: Correlator,
                 display_name: str = '', config: Config | None = None):
        self.state        = state
        self.correlator   = correlator
        self.display_name = display_name
        self.config       = config or Config()

        self.cache        = DetailCache(build_detail_lines)
        self.copier       = CopyHandler(state, self.detail_lines_for)
        self.tail_q: _queue.SimpleQueue = _queue.SimpleQueue()
        self.tail_live    = False
        self._status_msg  = ''
        self._detail_width = 80
        self._left_rows    = 10
        self._right_rows   = 10
        self._loop_ref     = None

        self._build_ui()
        self.refresh()

    # Build
    def _build_ui(self):
        self.w_title  = urwid.Text('', wrap='clip')
        self.w_footer = urwid.Text('', wrap='clip')

        self.left_view  = PaneView(self._draw_requests, self._on_left_mouse)
        self.right_view = PaneView(self._draw_details, self._on_right_mouse)
        self.left_box   = urwid.LineBox(self.left_view,  title=' Requests ',
                                        title_align='left')
        self.right_box  = urwid.LineBox(self.right_view, title=' Request Details ',
                                        title_align='left')

        self._body_cols = urwid.Columns([
            ('weight', 2, self.left_box),
            ('weight', 3, self.right_box),
        ], dividechars=0)

        self.frame = urwid.Frame(
            body       = self._body_cols,
            header     = urwid.AttrMap(self.w_title, 'header'),
            footer     = urwid.AttrMap(self.w_footer, 'footer'),
            focus_part = 'body',
        )

    def attach(self, loop) -> None:
        self._loop_ref = loop
        if self.config.redraw_interval > 0:
            loop.set_alarm_in(self.config.redraw_interval, self._on_tick)

    # Refresh
    def refresh(self) -> None:
        self._refresh_title()
        self._refresh_pane_titles()
        self._refresh_footer()
        self.left_view.refresh()
        self.right_view.refresh()

    def _refresh_title(self):
        st = self.state
        self.w_title.set_text([
            ('header', ' ◉  LogBench  '),
            ('h_dim',  self.display_name),
            ('header', f'  [sort: {st.sort.label}]  '),
            ('h_dim',  'auto-scroll  ' if st.auto_scroll else ''),
            ('h_dim',  'text-select  ' if st.text_selection_mode else ''),
            ('tail_on', '● LIVE') if self.tail_live else ('tail_off', '○ ────'),
        ])

    def _refresh_pane_titles(self):
        st    = self.state
        shown = len(st.filtered_requests())
        total = len(st.requests)
        mark  = '▶ '
        left  = f' {mark if st.left_pane_focused else ""}Requests ({shown}/{total}) '
        if st.main_filter.present() or st.main_filter.active:
            left += f'Filter: {st.main_filter.cursor_display} '
        right = f' {mark if st.right_pane_focused else ""}Request Details '
        if st.detail_filter.present() or st.detail_filter.active:
            right += f'Filter: {st.detail_filter.cursor_display} '
        self.left_box.set_title(left)
        self.right_box.set_title(right)

    def _refresh_footer(self):
        st = self.state
        if st.editing:
            self.w_footer.set_text([
                ('fk', '  Enter'), ('footer', ':apply  '),
                ('fk', 'Esc'),     ('footer', ':clear  '),
                ('fk', 'Backspace'), ('footer', ':delete  '),
            ])
            return
        undo = [('fk', 'u'), ('footer', ':undo  ')] if st.can_undo_clear() else []
        msg  = [('f_msg', f'  {self._status_msg}')] if self._status_msg else []
        self.w_footer.set_text([
            ('fk', '  q'),   ('footer', ':quit  '),
            ('fk', 'Tab'),   ('footer', ':pane  '),
            ('fk', '/'),     ('footer', ':filter  '),
            ('fk', 's'),     ('footer', ':sort  '),
            ('fk', 'a'),     ('footer', ':auto-scroll  '),
            ('fk', 't'),     ('footer', ':select text  ' if not st.text_selection_mode
                                     else ':mouse  '),
            ('fk', 'c'),     ('footer', ':clear  '),
            *undo,
            ('fk', 'y'),     ('footer', ':copy  '),
            *msg,
        ])

    def set_status(self, msg: str) -> None:
        self._status_msg = msg
        self._refresh_footer()

    # Panes
    def _request_row(self, req, cols: int, selected: bool) -> list:
        method = f'{req.method[:6]:<6}'
        status = f'{req.status_code if req.status_code is not None else "---":>3}'
        dur    = f' {req.duration_ms:.0f}ms' if req.duration_ms is not None else ''
        path_w = max(0, cols - len(method) - len(status) - len(dur) - 2)
        path   = (req.path or '')[:path_w]
        if selected:
            attr = 'row_sel' if self.state.left_pane_focused else 'row_sel_d'
            text = f'{method} {status} {path:<{path_w}}{dur}'
            return [(attr, text.ljust(cols))]
        return [
            (_METHOD_ATTR.get(req.method, 'bold_b'), method), ' ',
            (_status_attr(req.status_code), status), ' ',
            f'{path:<{path_w}}',
            ('dim', dur),
        ]

    def _draw_requests(self, cols: int, rows: int) -> list:
        st = self.state
        self._left_rows = rows
        st.adjust_auto_scroll(rows)
        st.clamp_selection()
        st.adjust_scroll_for_selection(rows)
        st.adjust_scroll_bounds(rows)

        reqs = st.filtered_requests()
        if not reqs:
            if st.main_filter.present():
                return [('empty', ' no requests match the filter')]
            return [('empty', ' waiting for requests…')]
        top = st.scroll_offset
        return [self._request_row(r, cols, i == st.selected)
                for i, r in enumerate(reqs[top:top + rows], top)]

    def detail_lines_for(self, request) -> list:
        return self.cache.get(request, self._detail_width,
                              self.state.detail_filter, color_pair)

    def _draw_details(self, cols: int, rows: int) -> list:
        st = self.state
        self._detail_width = cols
        self._right_rows   = rows
        req = st.current_request()
        if req is None:
            return [('empty', ' no request selected')]

        lines = self.detail_lines_for(req)
        st.adjust_detail_scroll_bounds(len(lines), rows)
        st.adjust_detail_scroll_for_entry_selection(rows, lines)
        sel_id = st.selected_entry_id(lines) if st.right_pane_focused else None

        out = []
        top = st.detail_scroll_offset
        for line in lines[top:top + rows]:
            if sel_id is not None and not line.separator and line.entry_id == sel_id:
                out.append(('detail_sel', strip_ansi(line.text).ljust(cols)))
            else:
                out.append(line.markup(color_pair))
        return out

    # Mouse
    def _on_left_mouse(self, event, button, col, row) -> bool:
        st = self.state
        if button == 4:
            st.switch_to_left_pane()
            st.navigate_up()
        elif button == 5:
            st.switch_to_left_pane()
            st.navigate_down()
        elif event == 'mouse press' and button == 1:
            st.switch_to_left_pane()
            target = st.scroll_offset + row
            if target < len(st.filtered_requests()) and target != st.selected:
                st.selected    = target
                st.auto_scroll = False
                st.reset_detail_selection()
        else:
            return False
        self.refresh()
        return True

    def _on_right_mouse(self, event, button, col, row) -> bool:
        st = self.state
        if button in (4, 5):
            st.switch_to_right_pane()
            if button == 4:
                st.navigate_up()
            else:
                st.navigate_down()
        elif event == 'mouse press' and button == 1:
            st.switch_to_right_pane()
        else:
            return False
        self.refresh()
        return True

    # Tail hand-off
    def ingest(self, events) -> int:
        # Correlate one batch; returns the number of new requests.
        created = self.correlator.ingest(events)
        if created:
            self.state.add_requests(created)
        return len(created)

    def drain_tail_queue(self) -> int:
        added = 0
        while True:
            try:
                kind, payload = self.tail_q.get_nowait()
            except _queue.Empty:
                break
            if kind == 'events':
                added += self.ingest(payload)
            elif kind == 'error':
                self._status_msg = f'⚠ tail: {payload}'
        return added

    def on_tail_pipe(self, _data: bytes) -> None:
        """
        Main-loop-thread callback: drain the tail queue into the state.
        This is the only point where tail thread output enters urwid state.
        """
        self.drain_tail_queue()
        self.refresh()
        if self._loop_ref is not None:
            self._loop_ref.draw_screen()

    def _on_tick(self, loop, _user_data):
        self.refresh()
        loop.set_alarm_in(self.config.redraw_interval, self._on_tick)

    # Input
    def _handle_filter_key(self, key: str) -> None:
        st = self.state
        if key == 'enter':
            st.exit_filter_mode()
        elif key == 'esc':
            st.clear_filter()
        elif key == 'backspace':
            st.backspace_filter()
        elif len(key) == 1 and key.isprintable():
            st.add_to_filter(key)

    def handle_input(self, key) -> None:
        if not isinstance(key, str):   # unhandled mouse events
            return
        st = self.state
        if st.editing:
            self._handle_filter_key(key)
            self.refresh()
            return

        self._status_msg = ''
        if key in ('q', 'Q'):
            st.stop()
            raise urwid.ExitMainLoop()
        elif key == 'tab':
            st.toggle_pane()
        elif key in ('left', 'h'):
            st.switch_to_left_pane()
        elif key in ('right', 'l'):
            st.switch_to_right_pane()
        elif key in ('up', 'k'):
            st.navigate_up()
        elif key in ('down', 'j'):
            st.navigate_down()
        elif key == 'page up':
            st.navigate_up(self._page_size())
        elif key == 'page down':
            st.navigate_down(self._page_size())
        elif key == 'g':
            st.switch_to_left_pane()
            st.navigate_up(len(st.requests) or 1)
        elif key == 'G':
            st.switch_to_left_pane()
            st.navigate_down(len(st.requests) or 1)
        elif key == '/':
            st.enter_filter_mode()
        elif key == 'esc':
            st.clear_filter()
        elif key in ('s', 'S'):
            st.cycle_sort_mode()
        elif key in ('a', 'A'):
            st.toggle_auto_scroll()
        elif key in ('c', 'C'):
            n = len(st.requests)
            st.clear_requests()
            self._status_msg = f'cleared {n} request(s), u to undo'
        elif key in ('u', 'U'):
            if st.undo_clear_requests():
                self._status_msg = 'restored cleared requests'
        elif key in ('t', 'T'):
            on = st.toggle_text_selection_mode()
            self._apply_mouse_tracking()
            self._status_msg = ('text selection on, t to restore mouse' if on
                                else 'mouse restored')
        elif key in ('y', 'Y'):
            self._status_msg = 'copied' if self.copier.copy_to_clipboard() else 'nothing to copy'
        self.refresh()

    def _apply_mouse_tracking(self) -> None:
        if self._loop_ref is None:
            return
        self._loop_ref.screen.set_mouse_tracking(not self.state.text_selection_mode)

    def _page_size(self) -> int:
        rows = self._left_rows if self.state.left_pane_focused else self._right_rows
        return max(1, rows - 1)


# Entry point
def setup_logging(config: Config) -> None:
    # The screen belongs to urwid, so logging only ever goes to a file.
    if not config.debug_log:
        return
    logging.basicConfig(
        filename = config.debug_log,
        level    = getattr(logging, config.debug_level, logging.DEBUG),
        format   = '%(asctime)s [%(levelname)s] %(name)s — %(message)s',
    )


def main(argv=None):
    ap = argparse.ArgumentParser(
        prog='logbench',
        description='LogBench — terminal viewer for JSON-lines request logs',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__)
    ap.add_argument('path', nargs='?', default=None,
                    help='log file to open (default: log/development.log)')
    args = ap.parse_args(argv)

    try:
        config = load_config(args.path)
    except ValueError as exc:
        sys.exit(f'Error: {exc}')
    setup_logging(config)

    try:
        log_file = LogFile(config.log_path)
    except FileNotFoundError as exc:
        sys.exit(f'Error: {exc}')

    correlator = Correlator()
    state      = State(correlator.ingest(log_file.initial_read()))
    logger.info('loaded %d request(s) from %s', len(state.requests), log_file.path)

    app  = LogBenchApp(state, correlator, log_file.path, config)
    loop = urwid.MainLoop(
        app.frame,
        palette         = PALETTE,
        unhandled_input = app.handle_input,
        handle_mouse    = True,
    )
    app.attach(loop)

    tail_write_fd = loop.watch_pipe(app.on_tail_pipe)
    tailer = Tailer(log_file, app.tail_q, tail_write_fd,
                    idle_interval   = config.idle_interval,
                    active_interval = config.active_interval)
    tailer.start()
    app.tail_live = True
    app.refresh()

    try:
        loop.run()
    finally:
        tailer.stop()


if __name__ == '__main__':
    main()
