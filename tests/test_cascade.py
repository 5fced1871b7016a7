import pytest

from sportsday.errors import PartialCascadeFailure, StoreUnavailable
from sportsday.services.cascade import delete_event, delete_participant, find_orphans, sweep_orphans
from sportsday.services.records import create_event, create_participant
from sportsday.services.scores import save_score


@pytest.fixture()
def meet(store):
    sprint = create_event(store, '100m Sprint', 'Track')
    jump = create_event(store, 'Long Jump', 'Field')
    ada = create_participant(store, 'Ada', 'Red')
    ben = create_participant(store, 'Ben', 'Blue')
    cleo = create_participant(store, 'Cleo', 'Green')
    for event_id in (sprint, jump):
        for pid, value in ((ada, '12.1'), (ben, '13.4'), (cleo, '11.9')):
            save_score(store, event_id, pid, value)
    return {'sprint': sprint, 'jump': jump, 'ada': ada, 'ben': ben, 'cleo': cleo}


def test_delete_event_removes_only_its_scores(store, meet):
    deleted = delete_event(store, meet['sprint'])
    assert len(deleted) == 3
    assert store.read_one('events', meet['sprint']) is None
    assert store.read_all('scores', {'eventId': meet['sprint']}) == []
    assert len(store.read_all('scores', {'eventId': meet['jump']})) == 3


def test_delete_participant_removes_their_scores_everywhere(store, meet):
    deleted = delete_participant(store, meet['ben'])
    assert len(deleted) == 2
    assert store.read_all('scores', {'participantId': meet['ben']}) == []
    assert len(store.read_all('scores')) == 4


def test_deleting_twice_is_a_no_op(store, meet):
    delete_event(store, meet['jump'])
    assert delete_event(store, meet['jump']) == []
    delete_participant(store, meet['ada'])
    assert delete_participant(store, meet['ada']) == []


def test_interrupted_cascade_reports_and_can_be_rerun(store, meet, monkeypatch):
    real_delete = store.delete
    calls = {'scores': 0}

    def flaky_delete(collection, record_id):
        if collection == 'scores':
            calls['scores'] += 1
            if calls['scores'] == 2:
                raise StoreUnavailable('network dropped')
        return real_delete(collection, record_id)

    monkeypatch.setattr(store, 'delete', flaky_delete)
    with pytest.raises(PartialCascadeFailure) as info:
        delete_event(store, meet['sprint'])
    failure = info.value
    assert failure.collection == 'events'
    assert failure.record_id == meet['sprint']
    assert len(failure.deleted) == 1
    assert len(failure.remaining) == 2
    assert isinstance(failure.__cause__, StoreUnavailable)

    # parent is gone, dependents are orphans until the cascade is retried
    assert store.read_one('events', meet['sprint']) is None
    assert len(find_orphans(store)) == 2

    monkeypatch.undo()
    assert sorted(delete_event(store, meet['sprint'])) == sorted(failure.remaining)
    assert store.read_all('scores', {'eventId': meet['sprint']}) == []


def test_sweep_removes_orphans_idempotently(store, meet):
    # parent deleted without its cascade, as if the process died in between
    store.delete('participants', meet['cleo'])
    removed = sweep_orphans(store)
    assert len(removed) == 2
    assert sweep_orphans(store) == []
    assert all(s['participantId'] != meet['cleo'] for s in store.read_all('scores'))


def test_sweep_cli_command(flask_app, store, meet):
    store.delete('events', meet['jump'])
    result = flask_app.test_cli_runner().invoke(args=['sweep-orphans'])
    assert result.exit_code == 0
    assert 'Removed 3 orphaned score(s).' in result.output
    assert find_orphans(store) == []


def test_cascade_counts_deletes_even_when_refresh_fails(store, meet, monkeypatch):
    store.subscribe('scores', lambda records: None)

    def unreachable(collection, filters=None):
        raise StoreUnavailable('connection lost')

    monkeypatch.setattr(store.bus, '_reader', unreachable)
    assert len(delete_event(store, meet['sprint'])) == 3
    monkeypatch.undo()
    assert store.read_all('scores', {'eventId': meet['sprint']}) == []
