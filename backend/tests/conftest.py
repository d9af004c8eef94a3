import os
import sys
import pytest

# Ensure the backend root (containing the `karotte` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from karotte import create_app, db, socketio
from karotte.services.games.engine import GameSession
from karotte.services.games.stores import InMemoryBestRecordStore, InMemoryHistoryStore
from karotte.services.games.words import Position, WordEntry

M, N, F = Position.MASCULINE, Position.NEUTER, Position.FEMININE


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TIMED_DURATION_SEC = 60
    SURVIVAL_WRONG_PENALTY_BASE = 1.15
    SCORE_PEAK_FREQUENCY = 2000
    TELEMETRY_SINK = 'socket'


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class NoShuffle:
    """Keeps the word order as given so rounds are predictable."""

    def shuffle(self, items):
        pass


class RecordingTelemetry:
    def __init__(self):
        self.events = []

    def track(self, event, properties=None):
        self.events.append((event, properties or {}))

    def names(self):
        return [name for name, _ in self.events]


def word(text, frequency, *genders):
    return WordEntry(text, frequency, frozenset(genders))


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def best_store():
    return InMemoryBestRecordStore()


@pytest.fixture()
def history_store():
    return InMemoryHistoryStore()


@pytest.fixture()
def telemetry():
    return RecordingTelemetry()


@pytest.fixture()
def make_session(clock, best_store, history_store, telemetry):
    def _make(words, **kwargs):
        kwargs.setdefault('best_records', best_store)
        kwargs.setdefault('history', history_store)
        kwargs.setdefault('telemetry', telemetry)
        kwargs.setdefault('clock', clock)
        kwargs.setdefault('rng', NoShuffle())
        return GameSession(words, **kwargs)
    return _make


SAMPLE_WORDS = [
    ('Tisch', 500, True, False, False),
    ('Haus', 300, False, True, False),
    ('Katze', 1200, False, False, True),
    ('Joghurt', 4000, True, True, False),
    ('Wasser', 150, False, True, False),
]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import karotte.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def seeded_app(flask_app):
    from karotte.models import Word
    for text, frequency, m, n, f in SAMPLE_WORDS:
        db.session.add(Word(word=text, frequency=frequency, pos_m=m, pos_n=n, pos_f=f))
    db.session.commit()
    return flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded_client(seeded_app):
    return seeded_app.test_client()


@pytest.fixture()
def sio_client(seeded_app):
    test_client = socketio.test_client(
        seeded_app,
        flask_test_client=seeded_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
