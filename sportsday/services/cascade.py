"""Cascade deletes for events and participants.

Deleting a parent is a two-phase, non-atomic operation: the parent record is
removed first, then every score referencing it. If the second phase is
interrupted the leftover scores are orphans; running the same delete again,
or ``sweep_orphans``, removes them. Every step is idempotent.
"""

from typing import Any, List

from flask import current_app

from sportsday.errors import PartialCascadeFailure, SportsdayError
from sportsday.store import EntityStore, coerce_id


def _delete_dependents(store: EntityStore, collection: str, record_id: int, field: str) -> List[int]:
    scores = store.read_all('scores', {field: record_id})
    pending = [s['id'] for s in scores]
    deleted: List[int] = []
    for score_id in pending:
        try:
            store.delete('scores', score_id)
        except SportsdayError as exc:
            remaining = [sid for sid in pending if sid not in deleted]
            current_app.logger.warning(
                f"[cascade-partial] {collection}={record_id} deleted={len(deleted)} remaining={len(remaining)} cause={exc.message}"
            )
            raise PartialCascadeFailure(collection, record_id, deleted, remaining) from exc
        deleted.append(score_id)
    return deleted


def delete_event(store: EntityStore, event_id: Any) -> List[int]:
    """Delete an event and all of its scores. Returns the deleted score ids."""
    event_id = coerce_id(event_id, 'eventId')
    existed = store.delete('events', event_id)
    deleted = _delete_dependents(store, 'events', event_id, 'eventId')
    current_app.logger.info(f"[cascade] events={event_id} existed={existed} scores_deleted={len(deleted)}")
    return deleted


def delete_participant(store: EntityStore, participant_id: Any) -> List[int]:
    """Delete a participant and all of their scores. Returns the deleted score ids."""
    participant_id = coerce_id(participant_id, 'participantId')
    existed = store.delete('participants', participant_id)
    deleted = _delete_dependents(store, 'participants', participant_id, 'participantId')
    current_app.logger.info(f"[cascade] participants={participant_id} existed={existed} scores_deleted={len(deleted)}")
    return deleted


def find_orphans(store: EntityStore) -> List[int]:
    event_ids = {e['id'] for e in store.read_all('events')}
    participant_ids = {p['id'] for p in store.read_all('participants')}
    return [
        s['id'] for s in store.read_all('scores')
        if s['eventId'] not in event_ids or s['participantId'] not in participant_ids
    ]


def sweep_orphans(store: EntityStore) -> List[int]:
    """Delete every score whose event or participant no longer exists."""
    deleted = []
    for score_id in find_orphans(store):
        if store.delete('scores', score_id):
            deleted.append(score_id)
    current_app.logger.info(f"[sweep] orphans_deleted={len(deleted)}")
    return deleted
