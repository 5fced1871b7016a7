from datetime import datetime, timezone

from sportsday import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


def utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    is_guest = db.Column(db.Boolean, default=False, nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'is_guest': self.is_guest,
        }


class Event(db.Model):
    __tablename__ = 'event'
    # external (camelCase) field -> column attribute
    FIELDS = {'name': 'name', 'type': 'type'}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    type = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    FIELDS = {'name': 'name', 'house': 'house'}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    house = db.Column(db.String(64), nullable=False, default='')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'house': self.house,
        }


class Score(db.Model):
    __tablename__ = 'score'
    # No FK constraints: parents are deleted before their scores during a cascade
    __table_args__ = (
        db.UniqueConstraint('event_id', 'participant_id', name='uq_score_event_participant'),
    )
    FIELDS = {
        'eventId': 'event_id',
        'participantId': 'participant_id',
        'score': 'score',
        'timestamp': 'timestamp',
    }

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, nullable=False, index=True)
    participant_id = db.Column(db.Integer, nullable=False, index=True)
    score = db.Column(db.Float, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'eventId': self.event_id,
            'participantId': self.participant_id,
            'score': self.score,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }
