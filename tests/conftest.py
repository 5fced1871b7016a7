import os
import sys
import pytest

# Ensure the project root (containing the `sportsday` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from sportsday import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    STOPWATCH_SAMPLE_MS = 10
    ENABLE_SAMPLER_IN_TESTS = False


class FakeClock:
    """Manually advanced stand-in for time.monotonic (seconds)."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    # The app context below is held for the whole test, so Flask reuses it
    # (and its `g`) for every request; drop Flask-Login's per-request user
    # cache so separate test clients don't share a login.
    @application.teardown_request
    def _clear_cached_login_user(exc):
        from flask import g
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import sportsday.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def auth_client(flask_app):
    test_client = flask_app.test_client()
    res = test_client.post('/register', json={'username': 'recorder', 'password': 'password'})
    assert res.status_code == 201
    return test_client


@pytest.fixture()
def user(flask_app):
    from sportsday.models import User
    u = User(username='timekeeper')
    u.set_password('password')
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture()
def store(flask_app, user):
    from sportsday.store import current_store
    return current_store(user)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
