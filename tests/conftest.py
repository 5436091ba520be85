import mongomock
import pytest
from bson import ObjectId

from beat_server.repository.mongo_helper import MongoRepositorySingleton
from beat_server.security.authentication import AuthSecurity
from server import create_app

TEST_SECRET = 'test-secret'

TEST_SETTINGS = {
    'JWT_SECRET': TEST_SECRET,
    'JWT_ALGORITHM': 'HS256',
    'DEBUG': False,
    'CORS_ORIGINS_LIST': ['*'],
    'SOCKETIO_ASYNC_MODE': 'threading',
    'MESSAGES_DEFAULT_PAGE_SIZE': 50,
    'MESSAGES_MAX_PAGE_SIZE': 100,
}


class RecordingNotifier:
    """Stands in for the gateway's EventEmitter and records every push."""

    def __init__(self):
        self.events = []

    def emit_to_user(self, user_id, event, data):
        self.events.append((user_id, event, data))
        return True

    def for_event(self, event):
        return [(user_id, data) for user_id, e, data in self.events if e == event]


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    return mongomock.MongoClient()['beat_test']


@pytest.fixture
def users(db):
    """Seed alice, bob and carol; returns {name: user id string}."""
    ids = {}
    for name in ('alice', 'bob', 'carol'):
        _id = ObjectId()
        db['users'].insert_one({
            '_id': _id,
            'username': name,
            'first_name': name.title(),
            'last_name': 'Tester',
            'profile_image': None,
            'is_online': False,
            'last_seen': None,
        })
        ids[name] = str(_id)
    return ids


@pytest.fixture
def repos(db):
    return MongoRepositorySingleton.from_db(db)


@pytest.fixture
def auth_configured():
    AuthSecurity.configure(TEST_SECRET, 'HS256', 60)
    yield AuthSecurity
    AuthSecurity.configure(None)


@pytest.fixture
def app(db, users):
    app = create_app(db=db, overrides=TEST_SETTINGS)
    app.config['TESTING'] = True
    yield app
    AuthSecurity.configure(None)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def token_for(app):
    def _token(user_id, claim='userId'):
        return AuthSecurity.encode_token({claim: user_id})
    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user_id):
        return {'Authorization': f'Bearer {token_for(user_id)}'}
    return _headers


@pytest.fixture
def socket_client(app, token_for):
    """Factory for Socket.IO test clients; connects with the user's token by default."""
    clients = []

    def _connect(user_id=None, **kwargs):
        if user_id is not None and 'auth' not in kwargs and 'headers' not in kwargs:
            kwargs['auth'] = {'token': token_for(user_id)}
        sio_client = app.extensions['socketio'].test_client(app, **kwargs)
        clients.append(sio_client)
        return sio_client

    yield _connect
    for sio_client in clients:
        if sio_client.is_connected():
            sio_client.disconnect()


def events_named(received, name):
    """Payloads of the events called name in a get_received() list."""
    return [pkt['args'][0] for pkt in received if pkt['name'] == name]
