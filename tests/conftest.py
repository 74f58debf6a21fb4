import json

import pytest

from logbench.parser import parse_lines


def line(**fields) -> str:
    return json.dumps(fields)


REQUEST_ID = 'abc123'


@pytest.fixture
def request_line():
    return line(method='GET', path='/users', status=200, duration=45.2,
                controller='UsersController', action='index',
                request_id=REQUEST_ID, timestamp='2024-01-01T10:00:00Z')


@pytest.fixture
def sample_lines(request_line):
    return [
        request_line,
        line(message='User Load (1.2ms)  SELECT "users".* FROM "users"',
             request_id=REQUEST_ID, timestamp='2024-01-01T10:00:00.100Z'),
        line(message='↳ app/controllers/users_controller.rb:5:in `index`',
             request_id=REQUEST_ID, timestamp='2024-01-01T10:00:00.101Z'),
        line(message='CACHE User Load (0.0ms)  SELECT "users".* FROM "users"',
             request_id=REQUEST_ID, timestamp='2024-01-01T10:00:00.200Z'),
        line(message='Rendered users/index.html.erb',
             request_id=REQUEST_ID, timestamp='2024-01-01T10:00:00.300Z'),
    ]


@pytest.fixture
def sample_events(sample_lines):
    return parse_lines(sample_lines)


@pytest.fixture
def sample_request(sample_events):
    from logbench.parser import group_by_request
    (request,) = group_by_request(sample_events)
    return request


def make_requests(n, prefix='r'):
    """n independent requests with increasing timestamps and durations."""
    from logbench.parser import group_by_request
    lines = [line(method='GET', path=f'/items/{i}', status=200 + i % 3 * 100,
                  duration=float(i + 1), request_id=f'{prefix}{i}',
                  timestamp=f'2024-01-01T10:00:{i:02d}Z')
             for i in range(n)]
    return group_by_request(parse_lines(lines))
