import os
import sys
import pytest

# Ensure the backend root (containing the `foodguess` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from foodguess import create_app, db, socketio
from foodguess.services.games.catalog import DishCard, InMemoryDishCatalog
from foodguess.services.games.engine import GameRules, RoundEngine
from foodguess.services.games.selection import ContentSelector
from foodguess.services.games.sessions import InMemorySessionStore
from foodguess.services.games.timers import ManualScheduler, TimerController


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROUND_LIMIT = 6
    GUESS_DURATION_SEC = 60
    RESULT_DWELL_SEC = 5
    COUNTDOWN_FROM = 3
    RECENT_DISHES_LIMIT = 18
    MAX_RECENT_REPEATS = 2
    IDLE_TIMEOUT_SEC = 120
    FINAL_SCREEN_DURATION_SEC = 20


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import foodguess.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def seeded_app(flask_app):
    from foodguess.seed import seed_dishes
    seed_dishes()
    return flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded_client(seeded_app):
    return seeded_app.test_client()


@pytest.fixture()
def scheduler(flask_app):
    return flask_app.extensions['foodguess_games'].scheduler


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


def make_dishes(count, images=2, start=1):
    """Dishes spread over the globe, each with ``images`` image refs."""
    return [
        DishCard(
            id=i,
            name=f'Dish {i}',
            latitude=float((i * 17) % 160 - 80),
            longitude=float((i * 37) % 340 - 170),
            images=tuple(f'dish-{i}-{n}.jpg' for n in range(images)),
            origin_label=f'Country {i}',
        )
        for i in range(start, start + count)
    ]


class LastPickRng:
    """Deterministic stand-in for random.Random: shuffling moves the last item first."""

    def shuffle(self, items):
        if items:
            items.insert(0, items.pop())


class GameHarness:
    def __init__(self, dishes=None, rules=None, store=None, selector=None):
        self.scheduler = ManualScheduler()
        self.timers = TimerController(self.scheduler)
        self.catalog = InMemoryDishCatalog(make_dishes(10) if dishes is None else dishes)
        self.store = store or InMemorySessionStore()
        self.events = []
        self.rules = rules or GameRules()
        self.engine = RoundEngine(
            catalog=self.catalog,
            session_store=self.store,
            timers=self.timers,
            rules=self.rules,
            selector=selector,
            listener=lambda name, payload: self.events.append((name, payload)),
            game_id='TEST01',
        )

    def advance(self, seconds):
        self.scheduler.advance(seconds)

    def named(self, name):
        return [payload for event, payload in self.events if event == name]

    def play_round(self, lat=None, lng=None):
        """Submit the current round and skip its results."""
        self.engine.submit_guess(lat, lng)
        self.engine.skip()


@pytest.fixture()
def harness():
    return GameHarness()


@pytest.fixture()
def make_harness():
    return GameHarness
