import pytest

from safety_chat.app import create_app, get_hub
from safety_chat.config import DEFAULTS


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, message):
        self.calls.append(message)
        return True


class RecordingEmitter:
    """Stands in for socketio.emit; collects (event, data, to) tuples."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def __call__(self, event, data, to=None):
        if to in self.fail_for:
            raise ConnectionError(f"{to} is gone")
        self.sent.append((event, data, to))

    def to(self, sid):
        return [(event, data) for event, data, dest in self.sent if dest == sid]

    def events(self, name):
        return [(data, dest) for event, data, dest in self.sent if event == name]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def config():
    return dict(DEFAULTS)


@pytest.fixture
def server(config, notifier):
    app, socketio = create_app(config, notifier=notifier)
    app.config["TESTING"] = True
    yield app, socketio
    get_hub(app).stop()


@pytest.fixture
def connect(server):
    app, socketio = server
    clients = []

    def _connect():
        client = socketio.test_client(app)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()
