import pytest

from sportsday.errors import ValidationError
from sportsday.services import scores as scores_svc
from sportsday.services.records import create_event, create_participant
from sportsday.services.scores import (
    CREATED, DELETED, NOOP, UPDATED,
    is_valid_candidate, parse_candidate, save_event_scores, save_score, save_stopwatch_score,
)
from sportsday.services.stopwatch import Stopwatch


@pytest.fixture()
def pair(store):
    event_id = create_event(store, 'Shot Put', 'Field')
    participant_id = create_participant(store, 'Ada', 'Red')
    return event_id, participant_id


def _pair_scores(store, event_id, participant_id):
    return store.read_all('scores', {'eventId': event_id, 'participantId': participant_id})


@pytest.mark.parametrize('raw, expected', [
    ('12.5', 12.5),
    ('0', 0.0),
    ('', None),
    ('  ', None),
    (None, None),
    ('3.', 3.0),
    ('.5', 0.5),
    (7, 7.0),
])
def test_parse_candidate_accepts_unsigned_decimals(raw, expected):
    assert parse_candidate(raw) == expected


@pytest.mark.parametrize('raw', [
    'abc', '1.2.3', '-1', '.', '1e5', '12,5', True, -2.0, float('nan'),
    '9' * 400, 10 ** 400, '\u0661\u0662',
])
def test_parse_candidate_rejects_everything_else(raw):
    with pytest.raises(ValidationError):
        parse_candidate(raw)


def test_edit_filter_matches_partial_input():
    assert is_valid_candidate('')
    assert is_valid_candidate('12.')
    assert not is_valid_candidate('12a')
    assert not is_valid_candidate('1.2.3')
    assert not is_valid_candidate('12\n')
    assert not is_valid_candidate('\u0661\u0662')


def test_save_creates_updates_then_deletes_the_same_record(store, pair):
    event_id, participant_id = pair

    outcome, score_id = save_score(store, event_id, participant_id, '10')
    assert outcome == CREATED
    [record] = _pair_scores(store, event_id, participant_id)
    assert record['id'] == score_id and record['score'] == 10.0

    outcome, same_id = save_score(store, event_id, participant_id, '12.75')
    assert (outcome, same_id) == (UPDATED, score_id)
    [record] = _pair_scores(store, event_id, participant_id)
    assert record['score'] == 12.75

    assert save_score(store, event_id, participant_id, '') == (DELETED, score_id)
    assert _pair_scores(store, event_id, participant_id) == []
    assert save_score(store, event_id, participant_id, '') == (NOOP, None)


def test_never_more_than_one_score_per_pair(store, pair):
    event_id, participant_id = pair
    for value in ('1', '2', '', '3', '4.5', '4.5'):
        save_score(store, event_id, participant_id, value)
        assert len(_pair_scores(store, event_id, participant_id)) <= 1
    assert _pair_scores(store, event_id, participant_id)[0]['score'] == 4.5


def test_invalid_candidate_leaves_existing_score_untouched(store, pair):
    event_id, participant_id = pair
    save_score(store, event_id, participant_id, '9')
    with pytest.raises(ValidationError):
        save_score(store, event_id, participant_id, 'abc')
    assert _pair_scores(store, event_id, participant_id)[0]['score'] == 9.0


def test_save_refuses_to_create_dangling_scores(store, pair):
    event_id, participant_id = pair
    with pytest.raises(ValidationError):
        save_score(store, event_id + 50, participant_id, '3')
    with pytest.raises(ValidationError):
        save_score(store, event_id, participant_id + 50, '3')
    assert store.read_all('scores') == []


def test_losing_a_create_race_falls_back_to_update(store, pair, monkeypatch):
    event_id, participant_id = pair
    # another device got there first
    winner = store.create('scores', {'eventId': event_id, 'participantId': participant_id, 'score': 1.0})

    real_existing = scores_svc._existing
    calls = []

    def stale_lookup(*args):
        calls.append(args)
        return None if len(calls) == 1 else real_existing(*args)

    monkeypatch.setattr(scores_svc, '_existing', stale_lookup)
    assert save_score(store, event_id, participant_id, '2') == (UPDATED, winner)
    [record] = _pair_scores(store, event_id, participant_id)
    assert record['score'] == 2.0


def test_batch_save_for_an_event(store, pair):
    event_id, ada = pair
    ben = create_participant(store, 'Ben', 'Blue')
    save_score(store, event_id, ben, '4')

    outcomes = save_event_scores(store, event_id, {str(ada): '7.5', str(ben): ''})
    assert outcomes == {ada: CREATED, ben: DELETED}
    assert [s['participantId'] for s in store.read_all('scores')] == [ada]


def test_batch_save_is_validated_before_any_write(store, pair):
    event_id, ada = pair
    ben = create_participant(store, 'Ben', 'Blue')
    with pytest.raises(ValidationError):
        save_event_scores(store, event_id, {ada: '5', ben: '1.2.3'})
    assert store.read_all('scores') == []


def test_stopwatch_time_is_saved_in_seconds(store, pair, clock):
    event_id, participant_id = pair
    watch = Stopwatch(clock=clock)
    watch.start()
    clock.advance(12.5)
    watch.stop()

    outcome, score_id = save_stopwatch_score(store, watch, event_id, participant_id)
    assert outcome == CREATED
    assert store.read_one('scores', score_id)['score'] == pytest.approx(12.5)

    watch.start()
    clock.advance(1.25)
    watch.stop()
    assert save_stopwatch_score(store, watch, event_id, participant_id) == (UPDATED, score_id)
    assert store.read_one('scores', score_id)['score'] == pytest.approx(13.75)


def test_stopwatch_at_zero_is_not_saved(store, pair, clock):
    event_id, participant_id = pair
    with pytest.raises(ValidationError):
        save_stopwatch_score(store, Stopwatch(clock=clock), event_id, participant_id)
    assert store.read_all('scores') == []
