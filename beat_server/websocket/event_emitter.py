"""Event emitter for pushing chat events to connected Socket.IO clients.

The hub creates one EventEmitter around its SocketIO instance and the
messaging service receives it as its notifier:

    emitter = EventEmitter(socketio)
    emitter.emit_to_user(recipient_id, EventEmitter.NEW_MESSAGE, data)

Delivery is best effort. A failed emit is logged and reported as False,
never raised into the request that caused it.
"""
import logging
from typing import Any, Dict, Optional, Union, List

from beat_server.websocket.registry import user_room

logger = logging.getLogger(__name__)


class EventEmitter:
    """Emits chat events to user and conversation rooms."""

    # =========================================================================
    # Event Type Constants
    # =========================================================================

    # Server pushes
    NEW_MESSAGE = 'new_message'
    MESSAGE_DELETED = 'message_deleted'
    MESSAGE_EDITED = 'message_edited'
    MESSAGES_READ = 'messages_read'

    # Relayed to the other members of a conversation room
    USER_JOINED = 'user_joined_conversation'
    USER_TYPING = 'user_typing'
    USER_STOP_TYPING = 'user_stop_typing'
    MESSAGE_READ_RECEIPT = 'message_read_receipt'

    def __init__(self, socketio):
        self.socketio = socketio

    def emit_to_user(self, user_id: str, event: str, data: Dict[str, Any]) -> bool:
        """Emit event to every connected session of a user."""
        return self.emit_to_room(user_room(user_id), event, data)

    def emit_to_room(
        self,
        room: str,
        event: str,
        data: Dict[str, Any],
        skip_sid: Optional[Union[str, List[str]]] = None
    ) -> bool:
        try:
            self.socketio.emit(event, data, to=room, skip_sid=skip_sid)
            logger.debug(f"EVENT_EMITTER: Emitted '{event}' to room {room}")
            return True
        except Exception as e:
            logger.error(f"EVENT_EMITTER: Error emitting {event} to room {room}: {e}")
            return False
