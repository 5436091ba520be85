"""Chat message repository for chat feature.

Handles storage of chat messages. Delete and edit are conditional updates
keyed on the sender.
"""
import logging
import re
from typing import Optional, Dict, Any, List, Tuple, Iterable
from datetime import datetime

from pymongo import ReturnDocument, DESCENDING, ASCENDING

from beat_server.messaging.models import Message, MessageType, TextBody
from beat_server.repository.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ChatMessageRepository(BaseRepository):
    """Repository for chat messages."""
    collection_name = 'chat_messages'

    def ensure_indexes(self):
        self.collection.create_index([('conversation_id', ASCENDING), ('created_at', DESCENDING)],
                                     name='chat_messages_conversation_created_at')
        self.collection.create_index([('recipient_id', ASCENDING), ('is_read', ASCENDING)],
                                     name='chat_messages_recipient_is_read')
        self.collection.create_index([('sender_id', ASCENDING)], name='chat_messages_sender')

    def insert(self, message: Message) -> Message:
        self.collection.insert_one(message.to_db_doc())
        return message

    def get(self, message_id: str) -> Optional[Message]:
        if not message_id:
            return None
        doc = self.collection.find_one({'_id': str(message_id)})
        return Message.from_doc(doc) if doc else None

    def get_many(self, message_ids: Iterable[str]) -> Dict[str, Message]:
        ids = [str(m) for m in message_ids if m]
        if not ids:
            return {}
        return {str(doc['_id']): Message.from_doc(doc) for doc in self.collection.find({'_id': {'$in': ids}})}

    def list_page(self, conversation_id: str, skip: int, limit: int) -> Tuple[List[Message], bool]:
        """Return (messages newest first, has_more) for one page of a conversation."""
        cursor = self.collection.find(
            {'conversation_id': str(conversation_id), 'is_deleted': False}
        ).sort([('created_at', DESCENDING), ('_id', DESCENDING)]).skip(skip).limit(limit + 1)
        docs = list(cursor)
        has_more = len(docs) > limit
        return [Message.from_doc(doc) for doc in docs[:limit]], has_more

    def mark_read_for_recipient(self, conversation_id: str, user_id: str, now: datetime) -> int:
        result = self.collection.update_many(
            {'conversation_id': str(conversation_id), 'recipient_id': str(user_id),
             'is_read': False, 'is_deleted': False},
            {'$set': {'is_read': True, 'read_at': now}}
        )
        return result.modified_count

    def soft_delete(self, message_id: str, sender_id: str, now: datetime) -> Optional[Message]:
        """Flag the message deleted and return its state from before the update.

        Returns None when nothing changed: the message is missing, belongs to
        another sender, or was already deleted.
        """
        doc = self.collection.find_one_and_update(
            {'_id': str(message_id), 'sender_id': str(sender_id), 'is_deleted': False},
            {'$set': {'is_deleted': True, 'deleted_at': now, 'deleted_by': str(sender_id), 'updated_at': now}},
            return_document=ReturnDocument.BEFORE
        )
        return Message.from_doc(doc) if doc else None

    def edit_text(self, current: Message, new_text: str, now: datetime) -> Optional[Message]:
        """Replace the text of a live text message, keeping the first original.

        The filter pins the text that was read; of two concurrent edits only
        one applies. Returns None if current is stale (edited, deleted, or
        gone in the meantime).
        """
        body = TextBody(new_text)
        doc = self.collection.find_one_and_update(
            {
                '_id': current.message_id,
                'sender_id': current.sender_id,
                'message_type': MessageType.TEXT.value,
                'is_deleted': False,
                'body.text': current.body.text,
            },
            {'$set': {
                'body': body.to_db_doc(),
                'is_edited': True,
                'edited_at': now,
                'original_text': current.original_text if current.is_edited else current.body.text,
                'updated_at': now,
            }},
            return_document=ReturnDocument.AFTER
        )
        return Message.from_doc(doc) if doc else None

    def search_text(self, conversation_ids: List[str], term: str, limit: int) -> List[Message]:
        """Case-insensitive literal match over live text messages, newest first."""
        if not conversation_ids:
            return []
        query: Dict[str, Any] = {
            'conversation_id': {'$in': [str(c) for c in conversation_ids]},
            'message_type': MessageType.TEXT.value,
            'is_deleted': False,
            'body.text': {'$regex': re.escape(term), '$options': 'i'},
        }
        cursor = self.collection.find(query).sort([('created_at', DESCENDING), ('_id', DESCENDING)]).limit(limit)
        return [Message.from_doc(doc) for doc in cursor]
