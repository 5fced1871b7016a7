from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from sportsday import socketio
from sportsday.errors import SportsdayError, ValidationError
from sportsday.services.standings import compute_standings, get_standings, rank_event
from sportsday.store import EntityStore, coerce_id
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
import threading

NAMESPACE = '/ws'


class LiveRooms:
    """Bus subscriptions backing each Socket.IO room, shared by its sockets.

    A room's subscriptions are created when its first socket joins and
    cancelled when its last socket leaves or disconnects.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.room_sids: Dict[str, Set[str]] = {}
        self.room_subs: Dict[str, List[Any]] = {}
        self.sid_rooms: Dict[str, Set[str]] = {}

    def join(self, sid: str, room: str, open_subs: Callable[[], List[Any]]) -> None:
        with self.lock:
            self.sid_rooms.setdefault(sid, set()).add(room)
            sids = self.room_sids.setdefault(room, set())
            first = not sids
            sids.add(sid)
        if first:
            subs = open_subs()
            with self.lock:
                # the room may have emptied (or been reopened) while subscribing
                keep = room in self.room_sids and room not in self.room_subs
                if keep:
                    self.room_subs[room] = subs
            if not keep:
                for sub in subs:
                    sub.cancel()

    def leave(self, sid: str, room: str) -> None:
        with self.lock:
            self.sid_rooms.get(sid, set()).discard(room)
            sids = self.room_sids.get(room)
            if sids is None:
                return
            sids.discard(sid)
            if sids:
                return
            self.room_sids.pop(room, None)
            subs = self.room_subs.pop(room, [])
        for sub in subs:
            sub.cancel()
        current_app.logger.info(f"[unsubscribe] room={room} closed")

    def leave_all(self, sid: str) -> None:
        with self.lock:
            rooms = list(self.sid_rooms.pop(sid, set()))
        for room in rooms:
            self.leave(sid, room)

    def has_room(self, room: str) -> bool:
        return room in self.room_sids


def _live() -> LiveRooms:
    return current_app.extensions['live_rooms']


def _bus():
    return current_app.extensions['change_bus']


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _emit_to(room: str, event: str, payload: Dict[str, Any]) -> None:
    # socketio.emit since this may run inside an HTTP request that mutated the store
    socketio.emit(event, payload, to=room, namespace=NAMESPACE)


def _resolve(data: Dict[str, Any]) -> Tuple[str, str, Callable[[], Dict[str, Any]], Callable[[str], List[Any]]]:
    """Map a subscribe request to (room, event name, snapshot builder, subscription opener)."""
    collection = data.get('collection')
    event_id = data.get('eventId')
    store = EntityStore()

    if collection in ('events', 'participants') or (collection == 'scores' and event_id is None):
        room = f"collection:{collection}"

        def snapshot():
            return {'collection': collection, 'records': store.read_all(collection)}

        def open_subs(r):
            return [_bus().subscribe(
                collection,
                lambda records: _emit_to(r, 'snapshot', {'collection': collection, 'records': records}),
                initial=False,
            )]
        return room, 'snapshot', snapshot, open_subs

    if collection == 'scores':
        event_id = coerce_id(event_id, 'eventId')
        room = f"scores:event:{event_id}"
        filters = {'eventId': event_id}

        def event_payload(records):
            return {'collection': 'scores', 'eventId': event_id, 'records': records,
                    'ranking': rank_event(records, event_id)}

        def snapshot():
            return event_payload(store.read_all('scores', filters))

        def open_subs(r):
            return [_bus().subscribe('scores', lambda records: _emit_to(r, 'snapshot', event_payload(records)),
                                     filters, initial=False)]
        return room, 'snapshot', snapshot, open_subs

    if collection == 'standings':
        room = 'standings'

        def snapshot():
            return {'standings': get_standings(store)}

        def open_subs(r):
            # Either collection changing means the whole table is re-derived
            def push(_records):
                _emit_to(r, 'standings', {'standings': compute_standings(
                    store.read_all('scores'), store.read_all('participants'))})
            return [_bus().subscribe('scores', push, initial=False),
                    _bus().subscribe('participants', push, initial=False)]
        return room, 'standings', snapshot, open_subs

    raise ValidationError(f"Unknown collection: {collection!r}")


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _live().leave_all(_get_sid())


def handle_subscribe(data):
    try:
        room, event_name, snapshot, open_subs = _resolve(data or {})
        payload = snapshot()
    except SportsdayError as exc:
        emit('error', exc.to_dict())
        return
    join_room(room)
    _live().join(_get_sid(), room, lambda: open_subs(room))
    current_app.logger.info(f"[subscribe] sid={_get_sid()} room={room}")
    emit('subscribed', {'room': room})
    emit(event_name, payload)


def handle_unsubscribe(data):
    try:
        room = _resolve(data or {})[0]
    except SportsdayError as exc:
        emit('error', exc.to_dict())
        return
    leave_room(room)
    _live().leave(_get_sid(), room)
    emit('unsubscribed', {'room': room})


def handle_join_stopwatch(data):
    code = ((data or {}).get('code') or '').upper()
    if not code:
        emit('error', {'error': 'code is required'})
        return
    try:
        watch = current_app.extensions['stopwatches'].get(code)
    except SportsdayError as exc:
        emit('error', exc.to_dict())
        return
    room = f"stopwatch:{code}"
    join_room(room)
    emit('joined', {'room': room})
    emit('stopwatch_state', dict(watch.to_dict(), code=code))


def handle_leave_stopwatch(data):
    code = ((data or {}).get('code') or '').upper()
    if not code:
        emit('error', {'error': 'code is required'})
        return
    room = f"stopwatch:{code}"
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(flask_app: Optional[Any] = None) -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    if flask_app is not None:
        flask_app.extensions['live_rooms'] = LiveRooms()
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('subscribe', handle_subscribe, namespace=NAMESPACE)
    socketio.on_event('unsubscribe', handle_unsubscribe, namespace=NAMESPACE)
    socketio.on_event('join_stopwatch', handle_join_stopwatch, namespace=NAMESPACE)
    socketio.on_event('leave_stopwatch', handle_leave_stopwatch, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
