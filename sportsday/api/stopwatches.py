from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required

from sportsday import socketio
from sportsday.services.scores import CREATED, save_stopwatch_score
from sportsday.services.stopwatch import format_elapsed
from sportsday.store import current_store


stopwatches = Blueprint('stopwatches', __name__)


def _registry():
    return current_app.extensions['stopwatches']


def _room(code: str) -> str:
    return f"stopwatch:{code}"


def _state(code, watch):
    payload = watch.to_dict()
    payload['code'] = code
    return payload


def _broadcast(code, watch):
    socketio.emit('stopwatch_state', _state(code, watch), to=_room(code), namespace='/ws')


def _start_sampler(app, code: str, watch) -> None:
    """Push display ticks for the current run until the watch leaves RUNNING.

    No-ops in TESTING mode unless ENABLE_SAMPLER_IN_TESTS is set.
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SAMPLER_IN_TESTS'):
        return

    def _tick(elapsed_ms):
        socketio.emit('stopwatch_tick', {'code': code, 'elapsedMs': elapsed_ms, 'elapsed': format_elapsed(elapsed_ms)},
                      to=_room(code), namespace='/ws')

    def _worker():
        ticks = watch.run_sampler(_tick)
        app.logger.info(f"[stopwatch-sampler-exit] code={code} ticks={ticks} state={watch.state}")

    socketio.start_background_task(_worker)


@stopwatches.route('', methods=['POST'])
@login_required
def create_stopwatch():
    code, watch = _registry().create()
    current_app.logger.info(f"[stopwatch-create] code={code}")
    return jsonify(_state(code, watch)), 201


@stopwatches.route('/<string:code>', methods=['GET'])
def get_stopwatch(code):
    code = code.upper()
    return jsonify(_state(code, _registry().get(code)))


@stopwatches.route('/<string:code>/start', methods=['POST'])
@login_required
def start_stopwatch(code):
    code = code.upper()
    watch = _registry().get(code)
    if watch.start():
        current_app.logger.info(f"[stopwatch-start] code={code} from_ms={watch.elapsed_ms}")
        _start_sampler(current_app._get_current_object(), code, watch)
        _broadcast(code, watch)
    return jsonify(_state(code, watch))


@stopwatches.route('/<string:code>/stop', methods=['POST'])
@login_required
def stop_stopwatch(code):
    code = code.upper()
    watch = _registry().get(code)
    if watch.stop():
        current_app.logger.info(f"[stopwatch-stop] code={code} elapsed_ms={watch.elapsed_ms}")
        _broadcast(code, watch)
    return jsonify(_state(code, watch))


@stopwatches.route('/<string:code>/lap', methods=['POST'])
@login_required
def lap_stopwatch(code):
    code = code.upper()
    watch = _registry().get(code)
    if watch.lap() is not None:
        _broadcast(code, watch)
    return jsonify(_state(code, watch))


@stopwatches.route('/<string:code>/reset', methods=['POST'])
@login_required
def reset_stopwatch(code):
    code = code.upper()
    watch = _registry().get(code)
    watch.reset()
    _broadcast(code, watch)
    return jsonify(_state(code, watch))


@stopwatches.route('/<string:code>/save', methods=['POST'])
@login_required
def save_stopwatch(code):
    code = code.upper()
    watch = _registry().get(code)
    data = request.get_json(silent=True) or {}
    outcome, score_id = save_stopwatch_score(current_store(), watch, data.get('eventId'), data.get('participantId'))
    return jsonify({'outcome': outcome, 'id': score_id, 'score': watch.elapsed_seconds}), 201 if outcome == CREATED else 200


@stopwatches.route('/<string:code>', methods=['DELETE'])
@login_required
def delete_stopwatch(code):
    code = code.upper()
    return jsonify({'code': code, 'deleted': _registry().discard(code)})
