from flask import Blueprint, jsonify, request
from flask_login import login_required

from sportsday.errors import RecordNotFound, ValidationError
from sportsday.services import records as svc_records
from sportsday.services.cascade import delete_event as svc_delete_event
from sportsday.services.cascade import delete_participant as svc_delete_participant
from sportsday.services.cascade import sweep_orphans
from sportsday.services.scores import CREATED, save_event_scores, save_score
from sportsday.services.standings import get_event_ranking, get_standings
from sportsday.store import current_store


records = Blueprint('records', __name__)


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object')
    return data


def _read_or_404(store, collection, record_id):
    record = store.read_one(collection, record_id)
    if record is None:
        raise RecordNotFound(f"No {collection} record with id {record_id}")
    return record


# ---- events ----

@records.route('/events', methods=['GET'])
def list_events():
    return jsonify(current_store().read_all('events'))


@records.route('/events', methods=['POST'])
@login_required
def create_event():
    data = _payload()
    store = current_store()
    event_id = svc_records.create_event(store, data.get('name'), data.get('type'))
    return jsonify(_read_or_404(store, 'events', event_id)), 201


@records.route('/events/<int:event_id>', methods=['GET'])
def get_event(event_id):
    return jsonify(_read_or_404(current_store(), 'events', event_id))


@records.route('/events/<int:event_id>', methods=['PATCH', 'PUT'])
@login_required
def update_event(event_id):
    data = _payload()
    store = current_store()
    svc_records.update_event(store, event_id, name=data.get('name'), type=data.get('type'))
    return jsonify(_read_or_404(store, 'events', event_id))


@records.route('/events/<int:event_id>', methods=['DELETE'])
@login_required
def delete_event(event_id):
    deleted = svc_delete_event(current_store(), event_id)
    return jsonify({'id': event_id, 'scoresDeleted': deleted})


@records.route('/events/<int:event_id>/ranking', methods=['GET'])
def event_ranking(event_id):
    return jsonify(get_event_ranking(current_store(), event_id))


@records.route('/events/<int:event_id>/scores', methods=['GET'])
def event_scores(event_id):
    return jsonify(current_store().read_all('scores', {'eventId': event_id}))


@records.route('/events/<int:event_id>/scores', methods=['PUT'])
@login_required
def save_scores_for_event(event_id):
    values = _payload().get('scores')
    if not isinstance(values, dict):
        raise ValidationError('scores must be an object of participantId -> value')
    outcomes = save_event_scores(current_store(), event_id, values)
    return jsonify({'eventId': event_id, 'outcomes': {str(pid): o for pid, o in outcomes.items()}})


# ---- participants ----

@records.route('/participants', methods=['GET'])
def list_participants():
    return jsonify(current_store().read_all('participants'))


@records.route('/participants', methods=['POST'])
@login_required
def create_participant():
    data = _payload()
    store = current_store()
    participant_id = svc_records.create_participant(store, data.get('name'), data.get('house'))
    return jsonify(_read_or_404(store, 'participants', participant_id)), 201


@records.route('/participants/<int:participant_id>', methods=['GET'])
def get_participant(participant_id):
    return jsonify(_read_or_404(current_store(), 'participants', participant_id))


@records.route('/participants/<int:participant_id>', methods=['PATCH', 'PUT'])
@login_required
def update_participant(participant_id):
    data = _payload()
    store = current_store()
    svc_records.update_participant(store, participant_id, name=data.get('name'), house=data.get('house'))
    return jsonify(_read_or_404(store, 'participants', participant_id))


@records.route('/participants/<int:participant_id>', methods=['DELETE'])
@login_required
def delete_participant(participant_id):
    deleted = svc_delete_participant(current_store(), participant_id)
    return jsonify({'id': participant_id, 'scoresDeleted': deleted})


# ---- scores & standings ----

@records.route('/scores', methods=['GET'])
def list_scores():
    filters = {}
    for field in ('eventId', 'participantId'):
        if request.args.get(field):
            filters[field] = request.args.get(field)
    return jsonify(current_store().read_all('scores', filters or None))


@records.route('/scores', methods=['PUT'])
@login_required
def put_score():
    data = _payload()
    outcome, score_id = save_score(current_store(), data.get('eventId'), data.get('participantId'), data.get('score'))
    return jsonify({'outcome': outcome, 'id': score_id}), 201 if outcome == CREATED else 200


@records.route('/standings', methods=['GET'])
def standings():
    return jsonify(get_standings(current_store()))


@records.route('/maintenance/sweep', methods=['POST'])
@login_required
def sweep():
    return jsonify({'deleted': sweep_orphans(current_store())})
