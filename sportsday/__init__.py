from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from sportsday.config import Config

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Process-wide live state: collection channels and shared stopwatches
    from sportsday.pubsub import ChangeBus
    from sportsday.store import read_snapshot
    from sportsday.services.stopwatch import StopwatchRegistry
    flask_app.extensions['change_bus'] = ChangeBus(read_snapshot)
    flask_app.extensions['stopwatches'] = StopwatchRegistry(
        sample_interval=int(flask_app.config.get('STOPWATCH_SAMPLE_MS', 10)) / 1000.0,
        sleep=socketio.sleep,
    )

    from sportsday.errors import SportsdayError

    @flask_app.errorhandler(SportsdayError)
    def handle_sportsday_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    # Import and register blueprints here
    from sportsday.main import main
    flask_app.register_blueprint(main)

    from sportsday.api.records import records
    flask_app.register_blueprint(records, url_prefix='/api')

    from sportsday.api.stopwatches import stopwatches
    flask_app.register_blueprint(stopwatches, url_prefix='/api/stopwatches')

    # Register Socket.IO event handlers
    try:
        from sportsday.socketio_events import register_socketio_handlers
        register_socketio_handlers(flask_app)
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    # Flask-Login user loader
    from sportsday.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from sportsday.models import Event, Participant
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            for name, kind in [('100m Sprint', 'Track'), ('Long Jump', 'Field'), ('Egg and Spoon', 'Fun')]:
                db.session.add(Event(name=name, type=kind))
            for name, house in [('Ada', 'Red'), ('Ben', 'Blue'), ('Cleo', 'Green')]:
                db.session.add(Participant(name=name, house=house))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('sweep-orphans')
    def sweep_orphans_command():
        """Deletes scores whose event or participant no longer exists."""
        from sportsday.services.cascade import sweep_orphans
        from sportsday.store import SYSTEM_CALLER, current_store
        with flask_app.app_context():
            deleted = sweep_orphans(current_store(SYSTEM_CALLER))
            print(f'Removed {len(deleted)} orphaned score(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sweep_orphans_command)

    return flask_app
