"""WebSocket Chat Handler.

Conversation room membership and ephemeral events. Messages themselves are
sent over REST; this handler only relays:
- join / leave of conversation rooms
- typing indicators
- read receipts

Relayed events are never persisted. A malformed payload, an event from a
connection the registry does not know, or an event for a conversation the
connection has not joined is logged and dropped.
"""
import logging
from typing import Dict, Any, Optional

from flask import request
from flask_socketio import emit, join_room, leave_room

from beat_server.websocket.event_emitter import EventEmitter
from beat_server.websocket.registry import ConnectionRegistry, conversation_room

logger = logging.getLogger(__name__)


def _conversation_id(data) -> Optional[str]:
    """Accept either a bare conversation id or {conversationId: ...}."""
    if isinstance(data, dict):
        data = data.get('conversationId')
    if isinstance(data, str) and data.strip():
        return data.strip()
    return None


class ChatHandler:
    """Handler for WebSocket chat events."""

    def __init__(self, socketio, conversation_repo, registry: ConnectionRegistry, emitter: EventEmitter):
        self.socketio = socketio
        self.conversations = conversation_repo
        self.registry = registry
        self.emitter = emitter

    def _session(self, event: str) -> Optional[Dict[str, Any]]:
        user_info = self.registry.user_for(request.sid)
        if not user_info:
            logger.warning(f"WS {event}: unknown sid={request.sid}, dropped")
        return user_info

    def _joined(self, event: str, data) -> Optional[str]:
        """Conversation id of an ephemeral event if the sender has joined it."""
        conversation_id = _conversation_id(data)
        if not conversation_id:
            logger.debug(f"WS {event}: malformed payload from sid={request.sid}, dropped")
            return None
        if not self.registry.is_joined(request.sid, conversation_id):
            logger.debug(f"WS {event}: sid={request.sid} not in conversation {conversation_id}, dropped")
            return None
        return conversation_id

    def register_handlers(self):
        """Register all chat WebSocket event handlers."""

        @self.socketio.on('join_conversation')
        def handle_join_conversation(data=None):
            user_info = self._session('join_conversation')
            if not user_info:
                return
            conversation_id = _conversation_id(data)
            if not conversation_id:
                logger.debug(f"WS join_conversation: malformed payload from sid={request.sid}, dropped")
                return
            if not self.conversations.is_participant(conversation_id, user_info['user_id']):
                logger.warning(f"WS join_conversation: user={user_info['user_id']} "
                               f"is not a participant of {conversation_id}, dropped")
                return

            room = conversation_room(conversation_id)
            join_room(room)
            self.registry.join(request.sid, conversation_id)
            emit(EventEmitter.USER_JOINED, {
                'userId': user_info['user_id'],
                'username': user_info['username'],
                'conversationId': conversation_id
            }, to=room, include_self=False)
            logger.debug(f"WS user={user_info['user_id']} joined conversation {conversation_id}")

        @self.socketio.on('leave_conversation')
        def handle_leave_conversation(data=None):
            user_info = self._session('leave_conversation')
            conversation_id = _conversation_id(data)
            if not user_info or not conversation_id:
                return
            leave_room(conversation_room(conversation_id))
            self.registry.leave(request.sid, conversation_id)

        @self.socketio.on('typing_start')
        def handle_typing_start(data=None):
            user_info = self._session('typing_start')
            conversation_id = user_info and self._joined('typing_start', data)
            if not conversation_id:
                return
            emit(EventEmitter.USER_TYPING, {
                'userId': user_info['user_id'],
                'username': user_info['username'],
                'conversationId': conversation_id
            }, to=conversation_room(conversation_id), include_self=False)

        @self.socketio.on('typing_stop')
        def handle_typing_stop(data=None):
            user_info = self._session('typing_stop')
            conversation_id = user_info and self._joined('typing_stop', data)
            if not conversation_id:
                return
            emit(EventEmitter.USER_STOP_TYPING, {
                'userId': user_info['user_id'],
                'conversationId': conversation_id
            }, to=conversation_room(conversation_id), include_self=False)

        @self.socketio.on('message_read')
        def handle_message_read(data=None):
            user_info = self._session('message_read')
            conversation_id = user_info and self._joined('message_read', data)
            if not conversation_id:
                return
            message_id = data.get('messageId') if isinstance(data, dict) else None
            if not isinstance(message_id, str) or not message_id:
                logger.debug(f"WS message_read: missing messageId from sid={request.sid}, dropped")
                return
            emit(EventEmitter.MESSAGE_READ_RECEIPT, {
                'messageId': message_id,
                'readBy': user_info['user_id'],
                'conversationId': conversation_id
            }, to=conversation_room(conversation_id), include_self=False)
