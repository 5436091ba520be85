import argparse
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from beat_server.messaging.presence import PresenceTracker
from beat_server.messaging.service import MessagingService
from beat_server.repository.mongo_helper import MongoRepositorySingleton
from beat_server.routes.chat import chat_bp
from beat_server.security.authentication import AuthSecurity
from beat_server.websocket.hub import WebSocketHub
from config import config


def configure_auth(settings):
    """Configure AuthSecurity from settings (JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES)."""
    secret = settings('JWT_SECRET')
    if not secret:
        raise RuntimeError('JWT_SECRET is required')
    AuthSecurity.configure(
        secret_key=secret,
        algorithm=settings('JWT_ALGORITHM'),
        access_token_expire_minutes=settings('ACCESS_TOKEN_EXPIRE_MINUTES'),
    )


def create_app(db=None, overrides=None) -> Flask:
    """Application factory used by server.py and tests.

    db: an existing database handle (tests pass a mongomock one); when None
    the shared MongoDB connection from MONGO_URI/MONGO_DB is used.
    overrides: {setting name: value} taking precedence over config.
    """
    overrides = overrides or {}

    def settings(name):
        return overrides[name] if name in overrides else getattr(config, name)

    configure_auth(settings)

    if db is not None:
        repos = MongoRepositorySingleton.from_db(db)
    else:
        repos = MongoRepositorySingleton.get_instance(settings('MONGO_URI'), settings('MONGO_DB'))

    app = Flask(__name__)
    app.config['DEBUG'] = settings('DEBUG')
    cors_origins = settings('CORS_ORIGINS_LIST')
    CORS(app, origins=cors_origins)

    socketio = SocketIO(
        app,
        async_mode=settings('SOCKETIO_ASYNC_MODE'),
        cors_allowed_origins='*' if cors_origins == ['*'] else cors_origins,
        ping_timeout=settings('SOCKETIO_PING_TIMEOUT'),
        ping_interval=settings('SOCKETIO_PING_INTERVAL'),
    )
    presence = PresenceTracker(repos.user)
    hub = WebSocketHub(socketio, repos, presence)
    service = MessagingService(
        repos,
        notifier=hub.emitter,
        default_page_size=settings('MESSAGES_DEFAULT_PAGE_SIZE'),
        max_page_size=settings('MESSAGES_MAX_PAGE_SIZE'),
    )

    app.extensions['repos'] = repos
    app.extensions['presence'] = presence
    app.extensions['websocket_hub'] = hub
    app.extensions['messaging'] = service

    app.register_blueprint(chat_bp)

    @app.route('/health')
    def health():
        return {'status': 'ok', 'name': settings('APP_NAME')}

    return app


def parse_args():
    """Parse simple CLI arguments for running the server."""
    parser = argparse.ArgumentParser(description='Run beat_engine messaging server')
    parser.add_argument('--port', type=int, default=config.PORT, help='TCP port to bind (default: 5000 or PORT env)')
    parser.add_argument('--host', default='0.0.0.0', help='Interface to bind (default: 0.0.0.0)')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    config.validate_required()
    app = create_app()
    logging.info('Starting server with Socket.IO on port %s', args.port)
    app.extensions['socketio'].run(app, host=args.host, port=args.port, debug=config.DEBUG,
                                   allow_unsafe_werkzeug=True)
