from typing import Any, Callable, Dict, List

from sportsday.errors import ValidationError
from sportsday.store import EntityStore, coerce_id

Callback = Callable[[List[Dict[str, Any]]], None]


def _clean(value: Any) -> str:
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f"Expected text, got {type(value).__name__}")
    return value.strip()


def create_event(store: EntityStore, name: Any, type: Any) -> int:
    name, type = _clean(name), _clean(type)
    if not name or not type:
        raise ValidationError('Event name and type cannot be empty.')
    return store.create('events', {'name': name, 'type': type})


def update_event(store: EntityStore, event_id: Any, name: Any = None, type: Any = None) -> None:
    """Rename and/or retype an event. Omitted fields are left untouched."""
    changes: Dict[str, str] = {}
    for field, value in (('name', name), ('type', type)):
        if value is None:
            continue
        value = _clean(value)
        if not value:
            raise ValidationError('Event name and type cannot be empty.')
        changes[field] = value
    if not changes:
        raise ValidationError('Nothing to update.')
    store.update('events', coerce_id(event_id, 'eventId'), changes)


def create_participant(store: EntityStore, name: Any, house: Any = '') -> int:
    name = _clean(name)
    if not name:
        raise ValidationError('Participant name cannot be empty.')
    return store.create('participants', {'name': name, 'house': _clean(house)})


def update_participant(store: EntityStore, participant_id: Any, name: Any = None, house: Any = None) -> None:
    changes: Dict[str, str] = {}
    if name is not None:
        name = _clean(name)
        if not name:
            raise ValidationError('Participant name cannot be empty.')
        changes['name'] = name
    if house is not None:
        changes['house'] = _clean(house)
    if not changes:
        raise ValidationError('Nothing to update.')
    store.update('participants', coerce_id(participant_id, 'participantId'), changes)


def subscribe_events(store: EntityStore, callback: Callback):
    return store.subscribe('events', callback)


def subscribe_participants(store: EntityStore, callback: Callback):
    return store.subscribe('participants', callback)


def subscribe_scores_for_event(store: EntityStore, event_id: Any, callback: Callback):
    return store.subscribe('scores', callback, {'eventId': coerce_id(event_id, 'eventId')})


def subscribe_all_scores(store: EntityStore, callback: Callback):
    return store.subscribe('scores', callback)
