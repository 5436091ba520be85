"""Realtime gateway over Flask-SocketIO.

Authenticates each connection during the handshake, keeps the connection
registry and presence in step with connects and disconnects, and registers
the chat event handlers. Rooms: user_<id> for every session of a user,
conversation_<id> for sessions that joined a conversation.
"""
import logging
from typing import Dict, Any, Optional, Tuple

from flask import request
from flask_socketio import SocketIO, join_room
from socketio.exceptions import ConnectionRefusedError

from beat_server.exception.MessagingError import AuthFailed
from beat_server.security.authentication import AuthSecurity, extract_bearer
from beat_server.websocket.event_emitter import EventEmitter
from beat_server.websocket.handlers.chat_handler import ChatHandler
from beat_server.websocket.registry import ConnectionRegistry, user_room

logger = logging.getLogger(__name__)


class WebSocketHub:
    """Centralized WebSocket Hub for real-time chat."""

    def __init__(self, socketio: SocketIO, repos, presence, registry: Optional[ConnectionRegistry] = None):
        self.socketio = socketio
        self.users = repos.user
        self.presence = presence
        self.registry = registry or ConnectionRegistry()
        self.emitter = EventEmitter(socketio)
        self.chat_handler = ChatHandler(socketio, repos.conversation, self.registry, self.emitter)
        self._register_handlers()
        self.chat_handler.register_handlers()
        logger.debug(f"WS_HUB: initialized, mode={getattr(socketio, 'async_mode', '?')}")

    def _register_handlers(self):
        """Register connection lifecycle handlers."""

        @self.socketio.on_error_default
        def default_error_handler(e):
            logger.exception(f"WS error: sid={getattr(request, 'sid', None)}: {e}")

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            socket_id = request.sid
            try:
                user_id, username = self._authenticate(auth)
            except AuthFailed as e:
                logger.warning(f"WS auth failed: sid={socket_id}, reason={e.message}")
                raise ConnectionRefusedError(e.message)

            sessions = self.registry.register(socket_id, user_id, username)
            join_room(user_room(user_id))
            self._update_presence(self.presence.mark_online, user_id)
            logger.info(f"WS connected: user={user_id}, sid={socket_id}, sessions={sessions}")

        @self.socketio.on('disconnect')
        def handle_disconnect(reason=None):
            socket_id = request.sid
            info, remaining = self.registry.unregister(socket_id)
            if info is None:
                return
            user_id = info['user_id']
            logger.info(f"WS disconnected: user={user_id}, sid={socket_id}, remaining={remaining}")
            if remaining:
                self._update_presence(self.presence.touch, user_id)
            else:
                self._update_presence(self.presence.mark_offline, user_id)

    def _authenticate(self, auth) -> Tuple[str, Optional[str]]:
        """Resolve the connecting user from the handshake, or raise AuthFailed."""
        token = self._token_from_handshake(auth)
        if not token:
            raise AuthFailed('Authentication token required')
        payload = AuthSecurity.decode_token(token)
        user_id = AuthSecurity.user_id_from_payload(payload)
        user = self.users.get(user_id)
        if not user:
            raise AuthFailed('User not found')
        return str(user['_id']), user.get('username')

    @staticmethod
    def _token_from_handshake(auth) -> Optional[str]:
        if isinstance(auth, dict) and isinstance(auth.get('token'), str) and auth['token'].strip():
            return auth['token'].strip()
        token = extract_bearer(request.headers.get('Authorization'))
        if token:
            return token
        return request.headers.get('X-Access-Token') or None

    @staticmethod
    def _update_presence(update, user_id: str):
        try:
            update(user_id)
        except Exception as e:
            logger.error(f"WS presence update failed for user={user_id}: {e}")

    # =========================================================================
    # Public API
    # =========================================================================

    def emit_to_user(self, user_id: str, event: str, data: Dict[str, Any]) -> bool:
        return self.emitter.emit_to_user(user_id, event, data)

    def is_online(self, user_id: str) -> bool:
        return self.registry.is_online(user_id)
