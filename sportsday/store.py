"""Entity store adapter over the three shared collections.

Records go in and come out as plain dicts using the external camelCase field
names (``eventId``, ``participantId``...). Every mutation commits on its own
and then publishes its collection on the change bus; there is no transaction
spanning several records.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, has_request_context
from flask_login import current_user
from sqlalchemy.exc import DBAPIError, IntegrityError

from sportsday import db
from sportsday.errors import PermissionDenied, RecordNotFound, StoreUnavailable, ValidationError
from sportsday.models import Event, Participant, Score

COLLECTIONS = {
    'events': Event,
    'participants': Participant,
    'scores': Score,
}

ID_FIELDS = {'eventId', 'participantId'}


def coerce_id(value: Any, field: str = 'id') -> int:
    """Return ``value`` as a record id or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


def _model_for(collection: str):
    model = COLLECTIONS.get(collection)
    if model is None:
        raise ValidationError(f"Unknown collection: {collection!r}")
    return model


def _columns(model, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Translate external field names to column attributes."""
    cols: Dict[str, Any] = {}
    for field, value in (data or {}).items():
        attr = model.FIELDS.get(field)
        if attr is None:
            raise ValidationError(f"Unknown field for {model.__tablename__}: {field!r}")
        cols[attr] = coerce_id(value, field) if field in ID_FIELDS else value
    return cols


@contextmanager
def _guard(session):
    """Map driver/connection failures to StoreUnavailable after a rollback."""
    try:
        yield
    except IntegrityError:
        session.rollback()
        raise
    except DBAPIError as exc:
        session.rollback()
        current_app.logger.warning(f"[store-unavailable] {exc.__class__.__name__}: {exc}")
        raise StoreUnavailable("The record store is unavailable. Please try again.") from exc


def _ordered(model, query):
    if model is Score:
        return query.order_by(Score.id)
    return query.order_by(model.name, model.id)


def read_snapshot(collection: str, filters: Optional[Dict[str, Any]] = None,
                  session=None) -> List[Dict[str, Any]]:
    session = session or db.session
    model = _model_for(collection)
    cols = _columns(model, filters)
    with _guard(session):
        rows = _ordered(model, session.query(model).filter_by(**cols)).all()
    return [r.to_dict() for r in rows]


class EntityStore:
    def __init__(self, session=None, bus=None, caller=None):
        self.session = session or db.session
        self.bus = bus
        self.caller = caller

    def as_caller(self, caller) -> 'EntityStore':
        return EntityStore(self.session, self.bus, caller)

    # ---- reads ----

    def read_all(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return read_snapshot(collection, filters, session=self.session)

    def read_one(self, collection: str, record_id: Any) -> Optional[Dict[str, Any]]:
        model = _model_for(collection)
        with _guard(self.session):
            row = self.session.get(model, coerce_id(record_id))
        return row.to_dict() if row else None

    def subscribe(self, collection: str, callback: Callable[[List[Dict[str, Any]]], None],
                  filters: Optional[Dict[str, Any]] = None):
        if self.bus is None:
            raise RuntimeError('EntityStore has no change bus to subscribe on')
        _columns(_model_for(collection), filters)
        return self.bus.subscribe(collection, callback, filters)

    # ---- mutations ----

    def create(self, collection: str, data: Dict[str, Any]) -> int:
        self._require_caller()
        model = _model_for(collection)
        row = model(**_columns(model, data))
        with _guard(self.session):
            self.session.add(row)
            self.session.commit()
        current_app.logger.info(f"[store-create] collection={collection} id={row.id} caller={self._caller_id()}")
        self._publish(collection)
        return row.id

    def update(self, collection: str, record_id: Any, partial: Dict[str, Any]) -> None:
        self._require_caller()
        model = _model_for(collection)
        cols = _columns(model, partial)
        with _guard(self.session):
            row = self.session.get(model, coerce_id(record_id))
            if row is None:
                raise RecordNotFound(f"No {collection} record with id {record_id}")
            for attr, value in cols.items():
                setattr(row, attr, value)
            self.session.add(row)
            self.session.commit()
        current_app.logger.info(f"[store-update] collection={collection} id={record_id} fields={sorted(cols)}")
        self._publish(collection)

    def delete(self, collection: str, record_id: Any) -> bool:
        """Delete a record; deleting one that is already gone is a no-op."""
        self._require_caller()
        model = _model_for(collection)
        with _guard(self.session):
            row = self.session.get(model, coerce_id(record_id))
            if row is None:
                return False
            self.session.delete(row)
            self.session.commit()
        current_app.logger.info(f"[store-delete] collection={collection} id={record_id} caller={self._caller_id()}")
        self._publish(collection)
        return True

    # ---- helpers ----

    def _require_caller(self) -> None:
        if self.caller is None or not getattr(self.caller, 'is_authenticated', False):
            raise PermissionDenied('You must be signed in to modify records.')

    def _caller_id(self):
        return getattr(self.caller, 'id', None)

    def _publish(self, collection: str) -> None:
        if self.bus is not None:
            self.bus.publish(collection)


class _SystemCaller:
    """Caller identity for maintenance jobs run outside any request."""
    is_authenticated = True
    id = 'system'


SYSTEM_CALLER = _SystemCaller()


def current_store(caller=None) -> EntityStore:
    """Store handle for the running app, bound to ``caller`` or the logged-in user."""
    if caller is None and has_request_context():
        caller = current_user._get_current_object()
    return EntityStore(db.session, current_app.extensions['change_bus'], caller)
