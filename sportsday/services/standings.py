"""Leaderboards derived from the live score set.

Nothing here is stored or cached: callers pass in the latest snapshots and
get a freshly computed table back. Sorting is Python's stable sort, so equal
scores keep the order they had in the snapshot and no further tie-break is
applied. ``rank`` is simply the 1-based position in the sorted list.
"""

from typing import Any, Dict, Iterable, List

from sportsday.store import EntityStore, coerce_id

UNKNOWN_NAME = 'Unknown'
UNKNOWN_HOUSE = 'N/A'


def rank_event(scores: Iterable[Dict[str, Any]], event_id: Any) -> List[Dict[str, Any]]:
    """Scores for one event, highest first, each annotated with its rank."""
    rows = [s for s in scores if s.get('eventId') == event_id]
    rows.sort(key=lambda s: s['score'], reverse=True)
    return [dict(row, rank=pos) for pos, row in enumerate(rows, start=1)]


def compute_standings(scores: Iterable[Dict[str, Any]],
                      participants: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Overall table: one row per participant that has at least one score."""
    totals: Dict[Any, float] = {}
    for s in scores:
        pid = s.get('participantId')
        totals[pid] = totals.get(pid, 0.0) + float(s.get('score') or 0)

    by_id = {p['id']: p for p in participants}
    rows = []
    for pid, total in totals.items():
        meta = by_id.get(pid) or {}
        rows.append({
            'participantId': pid,
            'name': meta.get('name') or UNKNOWN_NAME,
            'house': meta.get('house') or UNKNOWN_HOUSE,
            'totalScore': total,
        })
    rows.sort(key=lambda r: r['totalScore'], reverse=True)
    for pos, row in enumerate(rows, start=1):
        row['rank'] = pos
    return rows


def get_standings(store: EntityStore) -> List[Dict[str, Any]]:
    return compute_standings(store.read_all('scores'), store.read_all('participants'))


def get_event_ranking(store: EntityStore, event_id: Any) -> List[Dict[str, Any]]:
    event_id = coerce_id(event_id, 'eventId')
    return rank_event(store.read_all('scores', {'eventId': event_id}), event_id)
