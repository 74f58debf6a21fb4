"""Query statistics for a request and their human-readable summary lines."""

from .events import Kind, QueryEvent


def build_stats(request) -> dict:
    stats = {
        'total_queries':  request.query_count,
        'total_time':     request.total_query_time,
        'cached_queries': request.cached_query_count,
        'select':         0,
        'insert':         0,
        'update':         0,
        'delete':         0,
        'transaction':    0,
    }
    for ev in request.related:
        if ev.kind in (Kind.SQL, Kind.CACHE) and isinstance(ev, QueryEvent):
            _categorize(ev, stats)
    return stats


def _categorize(query: QueryEvent, stats: dict) -> None:
    if query.is_select:
        stats['select'] += 1
    elif query.is_insert:
        stats['insert'] += 1
    elif query.is_update:
        stats['update'] += 1
    elif query.is_delete:
        stats['delete'] += 1
    elif query.is_transactional:
        stats['transaction'] += 1


def summary_line(stats: dict) -> str:
    parts = [f"{stats['total_queries']} queries"]
    if stats['total_time'] > 0:
        timing = f"{round(stats['total_time'], 1)}ms total"
        if stats['cached_queries'] > 0:
            timing += f", {stats['cached_queries']} cached"
        parts.append(f'({timing})')
    elif stats['cached_queries'] > 0:
        parts.append(f"({stats['cached_queries']} cached)")
    return ' '.join(parts)


_BREAKDOWN = (('select', 'SELECT'), ('insert', 'INSERT'), ('update', 'UPDATE'),
              ('delete', 'DELETE'), ('transaction', 'TRANSACTION'))


def breakdown_line(stats: dict) -> str:
    return ', '.join(f'{stats[key]} {label}'
                     for key, label in _BREAKDOWN if stats[key] > 0)


def text_summary(request) -> str:
    stats = build_stats(request)
    out   = ['Query Summary:']
    if stats['total_queries'] > 0:
        out.append(summary_line(stats))
        breakdown = breakdown_line(stats)
        if breakdown:
            out.append(breakdown)
    return '\n'.join(out)
