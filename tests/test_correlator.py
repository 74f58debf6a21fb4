"""Tests for grouping events into requests across batches."""

from logbench.events import RequestAggregate
from logbench.parser import Correlator, group_by_request, parse_lines
from tests.conftest import line


class TestGroupByRequest:
    def test_single_request_collects_related(self, sample_events):
        (req,) = group_by_request(sample_events)
        assert isinstance(req, RequestAggregate)
        assert req.related_count == 4
        assert req.query_count == 2
        assert req.cached_query_count == 1
        assert len(req.sql_queries) == 1
        assert round(req.total_query_time, 1) == 1.2

    def test_events_without_request_are_discarded(self):
        events = parse_lines([line(message='SELECT 1', request_id='orphan')])
        assert group_by_request(events) == []

    def test_events_without_id_are_ignored(self, sample_lines):
        events = parse_lines(sample_lines + [line(message='SELECT 2')])
        (req,) = group_by_request(events)
        assert req.related_count == 4

    def test_requests_sorted_by_timestamp(self):
        events = parse_lines([
            line(method='GET', path='/b', status=200, request_id='b',
                 timestamp='2024-01-01T10:00:05Z'),
            line(method='GET', path='/a', status=200, request_id='a',
                 timestamp='2024-01-01T10:00:01Z'),
        ])
        assert [r.path for r in group_by_request(events)] == ['/a', '/b']

    def test_related_order_is_preserved(self, sample_events):
        (req,) = group_by_request(sample_events)
        assert list(req.related) == sample_events[1:]


class TestCorrelator:
    def test_later_batch_appends_to_known_request(self, request_line):
        c = Correlator()
        (req,) = c.ingest(parse_lines([request_line]))
        assert req.related_count == 0

        created = c.ingest(parse_lines([
            line(message='SELECT 1 (0.5ms)', request_id='abc123'),
        ]))
        assert created == []
        assert req.related_count == 1
        assert req.query_count == 1
        assert c.get('abc123') is req

    def test_duplicate_request_line_is_ignored(self, request_line):
        c = Correlator()
        (req,) = c.ingest(parse_lines([request_line]))
        assert c.ingest(parse_lines([request_line])) == []
        assert len(c) == 1
        assert req.related_count == 0

    def test_related_tuple_is_a_snapshot(self, sample_request):
        before = sample_request.related
        sample_request.add_related(parse_lines([line(message='x', request_id='abc123')])[0])
        assert len(before) == 4
        assert sample_request.related_count == 5

    def test_requests_are_never_related(self, sample_request, request_line):
        sample_request.add_related(parse_lines([request_line])[0])
        assert sample_request.related_count == 4


class TestStatusPredicates:
    def test_ranges(self):
        reqs = group_by_request(parse_lines([
            line(method='GET', path='/', status=s, request_id=str(s))
            for s in (200, 302, 404, 503)
        ]))
        by_status = {r.status_code: r for r in reqs}
        assert by_status[200].is_success
        assert by_status[302].is_redirect
        assert by_status[404].is_client_error
        assert by_status[503].is_server_error
        assert not by_status[404].is_success
