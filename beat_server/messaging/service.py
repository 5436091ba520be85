"""Messaging service layer for business logic.

Coordinates the conversation and message repositories, enforces who may do
what, and hands realtime pushes to the notifier (the gateway's EventEmitter).
All checks run before the first write, so a rejected request changes nothing.
"""
import logging
from typing import Optional, Dict, Any, List, Tuple

from bson import ObjectId

from beat_server.exception.MessagingError import NotFound, Forbidden, InvalidInput, Internal, Conflict
from beat_server.messaging.models import Message, Conversation, MessageType, parse_body, validate_user_id
from beat_server.utils.time_utils import utc_now
from beat_server.websocket.event_emitter import EventEmitter

logger = logging.getLogger(__name__)

SEARCH_MAX_LIMIT = 50


class MessagingService:
    """High-level messaging service."""

    def __init__(self, repos, notifier: Optional[EventEmitter] = None,
                 default_page_size: int = 50, max_page_size: int = 100):
        self.users = repos.user
        self.conversations = repos.conversation
        self.messages = repos.chat_message
        self.notifier = notifier
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _notify(self, user_id: str, event: str, data: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        self.notifier.emit_to_user(user_id, event, data)

    def _participant_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise NotFound('Conversation not found')
        if not conversation.has_participant(user_id):
            raise Forbidden('You are not a participant in this conversation')
        return conversation

    def _decorate(self, conversations: List[Conversation], viewer_id: str) -> List[Dict[str, Any]]:
        """Attach the other participant's profile and the last message, in two batched reads."""
        profiles = self.users.get_public_profiles(c.other_participant(viewer_id) for c in conversations)
        last_messages = self.messages.get_many(c.last_message_id for c in conversations)
        result = []
        for conversation in conversations:
            last = last_messages.get(conversation.last_message_id)
            result.append(conversation.to_dict(
                viewer_id=viewer_id,
                other_participant=profiles.get(conversation.other_participant(viewer_id)),
                last_message=last.to_dict() if last else None
            ))
        return result

    # =========================================================================
    # Conversation Operations
    # =========================================================================

    def start_conversation(self, user_id: str, receiver_id) -> Tuple[Dict[str, Any], bool]:
        """Get or create the conversation between user_id and receiver_id."""
        receiver_id = validate_user_id(receiver_id, 'receiverId')
        if receiver_id == str(user_id):
            raise InvalidInput('Cannot start a conversation with yourself')
        if not self.users.exists(receiver_id) or not self.users.exists(user_id):
            raise NotFound('User not found')
        conversation, created = self.conversations.find_or_create(user_id, receiver_id)
        return self._decorate([conversation], user_id)[0], created

    def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        return self._decorate(self.conversations.list_for_user(user_id), user_id)

    def get_conversation(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        conversation = self._participant_conversation(conversation_id, user_id)
        return self._decorate([conversation], user_id)[0]

    # =========================================================================
    # Message Operations
    # =========================================================================

    def send_message(self, conversation_id: str, sender_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a message, bump the recipient's unread counter and push it live.

        The message insert and the conversation update are two writes. If the
        second one fails the message exists but the conversation does not
        point at it yet; that is logged and reported as an internal error.
        """
        if not isinstance(payload, dict):
            raise InvalidInput('Request body must be a JSON object')
        conversation = self._participant_conversation(conversation_id, sender_id)
        body = parse_body(
            payload.get('messageType'),
            content=payload.get('content'),
            media=payload.get('media'),
            listing_id=payload.get('listingId')
        )
        reply_to = payload.get('replyTo')
        if reply_to is not None:
            target = self.messages.get(reply_to) if isinstance(reply_to, str) else None
            if target is None or target.conversation_id != conversation.conversation_id:
                raise InvalidInput('replyTo must reference a message in this conversation')

        message = Message(
            message_id=str(ObjectId()),
            conversation_id=conversation.conversation_id,
            sender_id=str(sender_id),
            recipient_id=conversation.other_participant(sender_id),
            body=body,
            reply_to=reply_to
        )
        self.messages.insert(message)
        try:
            updated = self.conversations.record_new_message(conversation.conversation_id, message)
        except Exception:
            logger.exception(f"Message {message.message_id} stored but conversation "
                             f"{conversation.conversation_id} was not updated")
            raise Internal('Failed to update conversation')
        if not updated:
            logger.error(f"Message {message.message_id} stored but conversation "
                         f"{conversation.conversation_id} was not updated")
            raise Internal('Failed to update conversation')

        sender = self.users.get_public_profiles([message.sender_id]).get(message.sender_id)
        data = message.to_dict(sender=sender)
        self._notify(message.recipient_id, EventEmitter.NEW_MESSAGE, {
            'message': data,
            'conversationId': message.conversation_id
        })
        logger.info(f"Message {message.message_id} sent in conversation {message.conversation_id}")
        return data

    def list_messages(self, conversation_id: str, user_id: str, page: int = 1,
                      limit: Optional[int] = None) -> Dict[str, Any]:
        """One page of messages, oldest first; reading a page marks it read for the caller."""
        conversation = self._participant_conversation(conversation_id, user_id)
        limit = limit or self.default_page_size
        if page < 1 or limit < 1 or limit > self.max_page_size:
            raise InvalidInput(f'page must be >= 1 and limit between 1 and {self.max_page_size}')

        messages, has_more = self.messages.list_page(conversation.conversation_id, (page - 1) * limit, limit)
        messages.reverse()

        now = utc_now()
        self._mark_read(conversation, user_id, now)
        for message in messages:
            if message.recipient_id == str(user_id) and not message.is_read:
                message.is_read = True
                message.read_at = now

        profiles = self.users.get_public_profiles(conversation.participants)
        return {
            'messages': [m.to_dict(sender=profiles.get(m.sender_id)) for m in messages],
            'pagination': {'page': page, 'limit': limit, 'hasMore': has_more}
        }

    def mark_read(self, conversation_id: str, user_id: str) -> int:
        """Mark every message addressed to user_id read; returns how many changed."""
        conversation = self._participant_conversation(conversation_id, user_id)
        return self._mark_read(conversation, user_id, utc_now())

    def _mark_read(self, conversation: Conversation, user_id: str, now) -> int:
        # A message that lands between these two writes is counted as read
        # by the reset while still flagged unread; the next read fixes it.
        count = self.messages.mark_read_for_recipient(conversation.conversation_id, user_id, now)
        self.conversations.reset_unread(conversation.conversation_id, user_id)
        if count:
            self._notify(conversation.other_participant(user_id), EventEmitter.MESSAGES_READ, {
                'conversationId': conversation.conversation_id,
                'readBy': str(user_id),
                'count': count
            })
        return count

    def soft_delete(self, message_id: str, user_id: str) -> Dict[str, Any]:
        message = self.messages.get(message_id)
        if message is None:
            raise NotFound('Message not found')
        if message.sender_id != str(user_id):
            raise Forbidden('You can only delete your own messages')
        result = {'messageId': message.message_id, 'conversationId': message.conversation_id}
        if message.is_deleted:
            return result

        before = self.messages.soft_delete(message.message_id, user_id, utc_now())
        if before is None:
            # Deleted by a concurrent request
            return result
        if not before.is_read:
            self.conversations.decrement_unread(before.conversation_id, before.recipient_id)
        self._notify(before.recipient_id, EventEmitter.MESSAGE_DELETED, result)
        logger.info(f"Message {message.message_id} deleted")
        return result

    def edit_message(self, message_id: str, user_id: str, content) -> Dict[str, Any]:
        message = self.messages.get(message_id)
        if message is None:
            raise NotFound('Message not found')
        if message.sender_id != str(user_id):
            raise Forbidden('You can only edit your own messages')
        if message.is_deleted:
            raise InvalidInput('Cannot edit a deleted message')
        if message.message_type != MessageType.TEXT:
            raise InvalidInput('Only text messages can be edited')

        updated = self.messages.edit_text(message, content, utc_now())
        if updated is None:
            raise Conflict('Message changed while editing, retry the request')
        data = updated.to_dict()
        self._notify(updated.recipient_id, EventEmitter.MESSAGE_EDITED, {
            'message': data,
            'conversationId': updated.conversation_id
        })
        return data

    def unread_total(self, user_id: str) -> int:
        return self.conversations.unread_total(user_id)

    def search(self, user_id: str, term, limit=20) -> List[Dict[str, Any]]:
        if not isinstance(term, str) or not term.strip():
            raise InvalidInput('Search query is required')
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise InvalidInput('limit must be a number')
        limit = max(1, min(limit, SEARCH_MAX_LIMIT))
        conversation_ids = [c.conversation_id for c in self.conversations.list_for_user(user_id)]
        return [m.to_dict() for m in self.messages.search_text(conversation_ids, term.strip(), limit)]
