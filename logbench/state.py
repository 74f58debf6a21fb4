"""
Navigation state for the two-pane viewer.

A single State object holds everything the UI mutates: the live request
list, focus, selection and scroll per pane, both filters, the sort mode and
the pending cleared batch. It is owned by the urwid main loop and passed
explicitly to whatever needs it.
"""

from dataclasses import dataclass, field

from .details import entry_ids, entry_span

LEFT  = 'left'
RIGHT = 'right'


class Filter:
    # Case-insensitive substring filter with an editing mode.

    CURSOR = '█'

    def __init__(self, text: str = ''):
        self.text   = text
        self.active = False

    def __repr__(self) -> str:
        return f'Filter({self.text!r}, active={self.active})'

    def enter_mode(self) -> None:
        self.active = True

    def exit_mode(self) -> None:
        self.active = False

    def add_character(self, ch: str) -> None:
        self.text += ch

    def remove_character(self) -> None:
        self.text = self.text[:-1]

    def clear(self) -> None:
        self.text   = ''
        self.active = False

    def present(self) -> bool:
        return bool(self.text)

    def matches(self, value) -> bool:
        if not self.text:
            return True
        if value is None:
            return False
        return self.text.lower() in str(value).lower()

    @property
    def display_text(self) -> str:
        return self.text

    @property
    def cursor_display(self) -> str:
        return self.text + self.CURSOR if self.active else self.text


class Sort:
    MODES  = ('time', 'duration', 'status')
    LABELS = {'time': 'Time', 'duration': 'Duration', 'status': 'Status'}

    def __init__(self, mode: str = 'time'):
        if mode not in self.MODES:
            raise ValueError(f'unknown sort mode: {mode!r}')
        self.mode = mode

    def cycle(self) -> str:
        i = self.MODES.index(self.mode)
        self.mode = self.MODES[(i + 1) % len(self.MODES)]
        return self.mode

    @property
    def label(self) -> str:
        return self.LABELS[self.mode]

    def sort_requests(self, requests: list) -> list:
        # time: oldest first; duration and status: largest first, missing last.
        if self.mode == 'time':
            return sorted(requests, key=lambda r: r.timestamp)
        if self.mode == 'duration':
            return sorted(requests, key=lambda r: (r.duration_ms is None,
                                                   -(r.duration_ms or 0.0)))
        return sorted(requests, key=lambda r: (r.status_code is None,
                                               -(r.status_code or 0)))


@dataclass
class ClearedBatch:
    requests:              list = field(default_factory=list)
    selected:              int  = 0
    scroll_offset:         int  = 0
    detail_scroll_offset:  int  = 0
    detail_selected_entry: int  = 0


class State:
    def __init__(self, requests=None):
        self.requests: list           = list(requests or [])
        self.selected                 = 0
        self.scroll_offset            = 0
        self.auto_scroll              = True
        self.focused_pane             = LEFT
        self.detail_scroll_offset     = 0
        self.detail_selected_entry    = 0
        self.main_filter              = Filter()
        self.detail_filter            = Filter()
        self.sort                     = Sort()
        self.cleared: ClearedBatch | None = None
        self.running                  = True
        self.text_selection_mode      = False

    # Lifecycle

    def stop(self) -> None:
        self.running = False

    def add_requests(self, new_requests) -> None:
        self.requests.extend(new_requests)

    def toggle_text_selection_mode(self) -> bool:
        # While on, the terminal keeps the mouse for its own text selection.
        self.text_selection_mode = not self.text_selection_mode
        return self.text_selection_mode

    def toggle_auto_scroll(self) -> None:
        self.auto_scroll = not self.auto_scroll

    def cycle_sort_mode(self) -> str:
        return self.sort.cycle()

    # Focus

    def switch_to_left_pane(self) -> None:
        self.focused_pane = LEFT

    def switch_to_right_pane(self) -> None:
        self.focused_pane = RIGHT

    def toggle_pane(self) -> None:
        self.focused_pane = RIGHT if self.focused_pane == LEFT else LEFT

    @property
    def left_pane_focused(self) -> bool:
        return self.focused_pane == LEFT

    @property
    def right_pane_focused(self) -> bool:
        return self.focused_pane == RIGHT

    # Filters

    def enter_filter_mode(self) -> None:
        # Only the focused pane's filter becomes editable.
        if self.left_pane_focused:
            self.detail_filter.exit_mode()
            self.main_filter.enter_mode()
        else:
            self.main_filter.exit_mode()
            self.detail_filter.enter_mode()

    def exit_filter_mode(self) -> None:
        self.main_filter.exit_mode()
        self.detail_filter.exit_mode()

    @property
    def filter_mode(self) -> bool:
        return self.main_filter.active

    @property
    def detail_filter_mode(self) -> bool:
        return self.detail_filter.active

    @property
    def editing(self) -> bool:
        return self.main_filter.active or self.detail_filter.active

    def add_to_filter(self, ch: str) -> None:
        if self.main_filter.active:
            self.main_filter.add_character(ch)
        elif self.detail_filter.active:
            self.detail_filter.add_character(ch)
            self.reset_detail_selection()

    def backspace_filter(self) -> None:
        if self.main_filter.active:
            self.main_filter.remove_character()
        elif self.detail_filter.active:
            self.detail_filter.remove_character()
            self.reset_detail_selection()

    def clear_filter(self) -> None:
        if self.left_pane_focused:
            self.clear_requests_filter()
        else:
            self.clear_detail_filter()

    def clear_requests_filter(self) -> None:
        self.main_filter.clear()
        self.selected      = 0
        self.scroll_offset = 0

    def clear_detail_filter(self) -> None:
        self.detail_filter.clear()
        self.reset_detail_selection()

    # Requests

    def _request_matches(self, req) -> bool:
        f = self.main_filter
        return (f.matches(req.path) or f.matches(req.method)
                or f.matches(req.controller) or f.matches(req.action)
                or f.matches(req.status_code) or f.matches(req.correlation_id))

    def filtered_requests(self) -> list:
        if self.main_filter.present():
            reqs = [r for r in self.requests if self._request_matches(r)]
        else:
            reqs = list(self.requests)
        return self.sort.sort_requests(reqs)

    def current_request(self):
        reqs = self.filtered_requests()
        if not reqs or not 0 <= self.selected < len(reqs):
            return None
        return reqs[self.selected]

    # Navigation

    def navigate_up(self, steps: int = 1) -> None:
        if self.left_pane_focused:
            before             = self.selected
            self.selected      = max(self.selected - steps, 0)
            self.auto_scroll   = False
            if self.selected != before:
                self.reset_detail_selection()
        else:
            self.detail_selected_entry = max(self.detail_selected_entry - steps, 0)

    def navigate_down(self, steps: int = 1) -> None:
        if self.left_pane_focused:
            before           = self.selected
            last             = len(self.filtered_requests()) - 1
            self.selected    = max(min(self.selected + steps, last), 0)
            self.auto_scroll = False
            if self.selected != before:
                self.reset_detail_selection()
        else:
            # upper bound is applied at render time against the live entries
            self.detail_selected_entry += steps

    def reset_detail_selection(self) -> None:
        self.detail_selected_entry = 0
        self.detail_scroll_offset  = 0

    # Scroll: left pane

    def clamp_selection(self) -> None:
        n = len(self.filtered_requests())
        self.selected = max(0, min(self.selected, n - 1))

    def adjust_auto_scroll(self, visible_height: int) -> None:
        if not self.auto_scroll:
            return
        n = len(self.filtered_requests())
        if n == 0:
            return
        if self.selected != n - 1:
            self.reset_detail_selection()
        self.selected      = n - 1
        self.scroll_offset = max(self.selected - visible_height + 1, 0)

    def adjust_scroll_for_selection(self, visible_height: int) -> None:
        if self.selected < self.scroll_offset:
            self.scroll_offset = self.selected
        elif self.selected >= self.scroll_offset + visible_height:
            self.scroll_offset = self.selected - visible_height + 1

    def adjust_scroll_bounds(self, visible_height: int) -> None:
        n          = len(self.filtered_requests())
        max_offset = max(n - visible_height, 0)
        self.scroll_offset = max(0, min(self.scroll_offset, max_offset))

    # Scroll: right pane

    def adjust_detail_scroll_bounds(self, total_lines: int, visible_height: int) -> None:
        max_offset = max(total_lines - visible_height, 0)
        self.detail_scroll_offset = max(0, min(self.detail_scroll_offset, max_offset))

    def clamp_detail_entry(self, lines) -> list:
        ids = entry_ids(lines)
        self.detail_selected_entry = max(0, min(self.detail_selected_entry,
                                                len(ids) - 1))
        return ids

    def selected_entry_id(self, lines):
        ids = entry_ids(lines)
        if 0 <= self.detail_selected_entry < len(ids):
            return ids[self.detail_selected_entry]
        return None

    def adjust_detail_scroll_for_entry_selection(self, visible_height: int, lines) -> None:
        """
        Clamp the selected entry to the entries present in `lines` and scroll
        so that the whole entry is on screen.

        If the entry starts above the viewport, scroll up to its first line;
        if it ends below, scroll down just far enough to show its last line
        (including the separator lines directly after it).
        """
        ids = self.clamp_detail_entry(lines)
        if not ids:
            return
        span = entry_span(lines, ids[self.detail_selected_entry])
        if span is None:
            return
        first, last = span
        if first < self.detail_scroll_offset:
            self.detail_scroll_offset = first
        elif last >= self.detail_scroll_offset + visible_height:
            self.detail_scroll_offset = last - visible_height + 1

    # Clear / undo

    def clear_requests(self) -> None:
        # A pending batch keeps its first snapshot and accumulates requests.
        if self.cleared is not None:
            self.cleared.requests.extend(self.requests)
        else:
            self.cleared = ClearedBatch(
                requests              = list(self.requests),
                selected              = self.selected,
                scroll_offset         = self.scroll_offset,
                detail_scroll_offset  = self.detail_scroll_offset,
                detail_selected_entry = self.detail_selected_entry,
            )
        self.requests              = []
        self.selected              = 0
        self.scroll_offset         = 0
        self.detail_scroll_offset  = 0
        self.detail_selected_entry = 0

    def can_undo_clear(self) -> bool:
        return self.cleared is not None

    def undo_clear_requests(self) -> bool:
        batch = self.cleared
        if batch is None:
            return False
        self.requests              = batch.requests + self.requests
        self.selected              = batch.selected
        self.scroll_offset         = batch.scroll_offset
        self.detail_scroll_offset  = batch.detail_scroll_offset
        self.detail_selected_entry = batch.detail_selected_entry
        self.cleared               = None
        return True
