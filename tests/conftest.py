import threading
import time

import pytest
from websockets.protocol import State

from esc50monitor.app import create_app
from esc50monitor.broadcaster import Observer
from esc50monitor.database import Database, init_db
from esc50monitor.ingest import PredictionService


class FakeConnection:
    """Stands in for a websocket connection: records what is sent to it."""

    def __init__(self, state=State.OPEN):
        self.state = state
        self.sent = []
        self.received = threading.Event()

    def send(self, msg):
        self.sent.append(msg)
        self.received.set()


def drain(observer):
    """Everything queued for an observer that has no sender thread running."""
    messages = []
    while not observer.queue.empty():
        messages.append(observer.queue.get_nowait())
    return messages


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'predictions.db'}"


@pytest.fixture
def database(database_url):
    db = Database(database_url)
    with db.connect() as conn:
        init_db(conn)
    return db


@pytest.fixture
def service(database):
    svc = PredictionService(database)
    yield svc
    svc.shutdown()


@pytest.fixture
def observer_factory(service):
    """Registers observers on the service registry without starting their sender."""
    def make(state=State.OPEN, maxsize=100):
        observer = Observer(FakeConnection(state), maxsize=maxsize)
        service.registry.add(observer)
        return observer
    return make


@pytest.fixture
def app(database, database_url):
    app = create_app({"TESTING": True, "DATABASE_URL": database_url})
    yield app
    app.extensions["prediction_service"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


def count_predictions(database):
    with database.connect() as conn:
        return conn.fetch_one("SELECT COUNT(*) AS count FROM predictions")["count"]
