"""Tests for reconstructing clipboard text from the current selection."""

import pytest

from logbench import clipboard
from logbench.copy_handler import CopyHandler, companion_call_line, is_sql, request_text
from logbench.details import build_detail_lines, entry_lines
from logbench.state import State


@pytest.fixture
def copied():
    return []


@pytest.fixture
def handler(sample_request, copied):
    state = State([sample_request])
    return CopyHandler(state, lambda r: build_detail_lines(r, 80), sink=copied.append)


class TestIsSql:
    def test_keywords(self):
        assert is_sql('select * from users')
        assert is_sql('TRANSACTION (0.1ms)  BEGIN')
        assert not is_sql('Rendered users/index.html.erb')


class TestRequestText:
    def test_fields(self, sample_request):
        text = request_text(sample_request)
        lines = text.splitlines()
        assert lines[0] == '```'
        assert lines[1] == 'GET /users 200'
        assert 'Duration: 45.2ms' in lines
        assert 'Controller: UsersController' in lines
        assert 'Action: index' in lines
        assert 'Request ID: abc123' in lines
        assert 'Query Summary:' in lines
        assert lines[-1] == '```'


class TestCopyHandler:
    def test_left_pane_copies_request(self, handler, copied, sample_request):
        text = handler.copy_to_clipboard()
        assert copied == [text]
        assert text == request_text(sample_request)

    def test_header_entry(self, handler, copied):
        handler.state.switch_to_right_pane()
        assert handler.copy_to_clipboard() == 'Method: GET'

    def test_sql_entry_includes_call_line(self, handler):
        handler.state.switch_to_right_pane()
        handler.state.detail_selected_entry = 7     # entry 9: query + call line
        assert handler.selected_entry_text() == (
            '```sql\n'
            'User Load (1.2ms)  SELECT "users".* FROM "users"\n'
            '↳ app/controllers/users_controller.rb:5:in `index`\n'
            '```'
        )

    def test_plain_event_entry(self, handler):
        handler.state.switch_to_right_pane()
        handler.state.detail_selected_entry = 9
        assert handler.selected_entry_text() == 'Rendered users/index.html.erb'

    def test_out_of_range_entry(self, handler, copied):
        handler.state.switch_to_right_pane()
        handler.state.detail_selected_entry = 42
        assert handler.copy_to_clipboard() is None
        assert copied == []

    def test_no_request(self, copied):
        h = CopyHandler(State(), lambda r: [], sink=copied.append)
        assert h.copy_to_clipboard() is None

    def test_default_sink_is_system_clipboard(self, sample_request, monkeypatch):
        sent = []
        monkeypatch.setattr(clipboard, 'copy', lambda text: sent.append(text) or True)
        h = CopyHandler(State([sample_request]), lambda r: [])
        h.copy_to_clipboard()
        assert sent == [request_text(sample_request)]


class TestCompanionCallLine:
    def test_wrapped_call_line_is_joined(self, sample_request):
        lines = entry_lines(build_detail_lines(sample_request, 30), 9)
        assert companion_call_line(lines) == \
            '↳ app/controllers/users_controller.rb:5:in `index`'


class TestClipboardFallback:
    def test_writes_fallback_file(self, tmp_path, monkeypatch):
        target = tmp_path / 'copy.txt'
        monkeypatch.setattr(clipboard, '_pick_command', lambda: None)
        monkeypatch.setattr(clipboard, 'FALLBACK_FILE', str(target))
        assert clipboard.copy('hello')
        assert target.read_text() == 'hello'
