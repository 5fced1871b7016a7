import math
import re
from typing import Any, Dict, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from sportsday.errors import ValidationError
from sportsday.models import utcnow
from sportsday.store import EntityStore, coerce_id

# Unsigned decimal, as typed into a score field. '' means "clear".
CANDIDATE_PATTERN = re.compile(r'[0-9]*\.?[0-9]*')

CREATED = 'created'
UPDATED = 'updated'
DELETED = 'deleted'
NOOP = 'noop'


def is_valid_candidate(raw: str) -> bool:
    """Edit-boundary filter: may ``raw`` be held in a score input at all?"""
    return raw == '' or bool(CANDIDATE_PATTERN.fullmatch(raw))


def parse_candidate(raw: Any) -> Optional[float]:
    """Return the float a candidate stands for, or None when it clears the score.

    Strings must be unsigned decimals with at least one digit ('12', '12.5',
    '.5', '3.'). Numbers are taken as-is when finite and non-negative.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid score: {raw!r}")
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            raise ValidationError('Score is out of range.')
        if not math.isfinite(value) or value < 0:
            raise ValidationError(f"Invalid score: {raw!r}")
        return value
    if not isinstance(raw, str):
        raise ValidationError(f"Invalid score: {raw!r}")
    text = raw.strip()
    if text == '':
        return None
    if not CANDIDATE_PATTERN.fullmatch(text) or not any(ch.isdigit() for ch in text):
        raise ValidationError(f"Invalid score: {raw!r}")
    value = float(text)
    if not math.isfinite(value):
        raise ValidationError('Score is out of range.')
    return value


def _existing(store: EntityStore, event_id: int, participant_id: int) -> Optional[Dict[str, Any]]:
    found = store.read_all('scores', {'eventId': event_id, 'participantId': participant_id})
    return found[0] if found else None


def _require_parents(store: EntityStore, event_id: int, participant_id: int) -> None:
    if store.read_one('events', event_id) is None:
        raise ValidationError(f"Event {event_id} does not exist.")
    if store.read_one('participants', participant_id) is None:
        raise ValidationError(f"Participant {participant_id} does not exist.")


def save_score(store: EntityStore, event_id: Any, participant_id: Any, raw: Any) -> Tuple[str, Optional[int]]:
    """Create, update or delete the single score for an (event, participant) pair.

    Looks the pair up before every write so it never appends a second record.
    Returns ``(outcome, score_id)``; ``score_id`` is None for a no-op.
    """
    event_id = coerce_id(event_id, 'eventId')
    participant_id = coerce_id(participant_id, 'participantId')
    value = parse_candidate(raw)

    current = _existing(store, event_id, participant_id)
    if value is None:
        if current is None:
            return NOOP, None
        store.delete('scores', current['id'])
        current_app.logger.info(f"[score-save] event={event_id} participant={participant_id} cleared id={current['id']}")
        return DELETED, current['id']

    data = {'score': value, 'timestamp': utcnow()}
    if current is not None:
        store.update('scores', current['id'], data)
        current_app.logger.info(f"[score-save] event={event_id} participant={participant_id} updated id={current['id']} score={value}")
        return UPDATED, current['id']

    _require_parents(store, event_id, participant_id)
    try:
        score_id = store.create('scores', dict(data, eventId=event_id, participantId=participant_id))
    except IntegrityError:
        # Another caller created this pair first; last write wins
        current = _existing(store, event_id, participant_id)
        if current is None:
            raise
        store.update('scores', current['id'], data)
        current_app.logger.info(f"[score-save] event={event_id} participant={participant_id} lost create race, updated id={current['id']}")
        return UPDATED, current['id']
    current_app.logger.info(f"[score-save] event={event_id} participant={participant_id} created id={score_id} score={value}")
    return CREATED, score_id


def save_event_scores(store: EntityStore, event_id: Any, values: Dict[Any, Any]) -> Dict[int, str]:
    """Save one candidate per participant for a single event.

    Every candidate is validated before the first write, so a malformed value
    leaves the whole batch unapplied.
    """
    event_id = coerce_id(event_id, 'eventId')
    parsed = {coerce_id(pid, 'participantId'): parse_candidate(raw) for pid, raw in (values or {}).items()}
    if any(v is not None for v in parsed.values()) and store.read_one('events', event_id) is None:
        raise ValidationError(f"Event {event_id} does not exist.")
    outcomes: Dict[int, str] = {}
    for participant_id, value in parsed.items():
        outcomes[participant_id], _ = save_score(store, event_id, participant_id, value)
    return outcomes


def save_stopwatch_score(store: EntityStore, watch, event_id: Any, participant_id: Any) -> Tuple[str, Optional[int]]:
    """Store the stopwatch's elapsed time, in seconds, as the pair's score."""
    elapsed_ms = watch.elapsed_ms
    if elapsed_ms <= 0:
        raise ValidationError('Stopwatch time is 0. Please run the stopwatch first.')
    return save_score(store, event_id, participant_id, elapsed_ms / 1000)
