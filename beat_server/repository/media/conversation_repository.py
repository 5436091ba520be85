"""Conversation repository for two-party chat.

All mutations are single atomic MongoDB operations: the one-conversation-per-pair
rule is a unique index on participant_key, unread counters move with $inc/$set
on unread_counts.<user_id>. Nothing here reads a document and writes it back.
"""
import logging
from typing import Optional, List, Tuple

from bson import ObjectId
from pymongo import DESCENDING, ASCENDING
from pymongo.errors import DuplicateKeyError

from beat_server.exception.MessagingError import Conflict
from beat_server.messaging.models import Conversation, Message, validate_user_id
from beat_server.repository.base_repository import BaseRepository
from beat_server.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository):
    """Repository for chat conversations."""
    collection_name = 'conversations'

    def ensure_indexes(self):
        self.collection.create_index([('participant_key', ASCENDING)], unique=True, name='conversations_participant_key')
        self.collection.create_index([('participants', ASCENDING), ('last_message_time', DESCENDING)],
                                     name='conversations_participants_last_message_time')

    def find_or_create(self, user_a: str, user_b: str) -> Tuple[Conversation, bool]:
        """Return (conversation, created) for the pair, creating it on first use.

        Callers check that the users differ and exist. Concurrent calls for the
        same pair converge on one document: the insert is guarded by the unique
        participant_key index, and the loser of an insert race re-reads the winner.
        """
        user_a = validate_user_id(user_a)
        user_b = validate_user_id(user_b)
        existing = self.find_between(user_a, user_b)
        if existing is not None:
            return existing, False

        conversation = Conversation(conversation_id=str(ObjectId()), participants=[user_a, user_b])
        key = Conversation.pair_key(user_a, user_b)
        try:
            self.collection.insert_one(conversation.to_db_doc())
        except DuplicateKeyError:
            logger.info(f"Conversation for pair {key} created concurrently, re-reading")
            doc = self.collection.find_one({'participant_key': key})
            if doc is None:
                raise Conflict('Conversation already exists, retry the request')
            return Conversation.from_doc(doc), False
        logger.info(f"Created conversation {conversation.conversation_id}")
        return conversation, True

    def find_between(self, user_a: str, user_b: str) -> Optional[Conversation]:
        doc = self.collection.find_one({'participant_key': Conversation.pair_key(user_a, user_b)})
        return Conversation.from_doc(doc) if doc else None

    def get(self, conversation_id: str) -> Optional[Conversation]:
        if not conversation_id:
            return None
        doc = self.collection.find_one({'_id': str(conversation_id)})
        return Conversation.from_doc(doc) if doc else None

    def is_participant(self, conversation_id: str, user_id: str) -> bool:
        if not conversation_id or not user_id:
            return False
        doc = self.collection.find_one(
            {'_id': str(conversation_id), 'participants': str(user_id)}, {'_id': 1}
        )
        return doc is not None

    def list_for_user(self, user_id: str, include_inactive: bool = False) -> List[Conversation]:
        """Conversations of a user, most recent activity first."""
        query = {'participants': str(user_id)}
        if not include_inactive:
            query['is_active'] = True
        cursor = self.collection.find(query).sort([('last_message_time', DESCENDING), ('_id', DESCENDING)])
        return [Conversation.from_doc(doc) for doc in cursor]

    def record_new_message(self, conversation_id: str, message: Message) -> bool:
        """Point the conversation at message and bump every other participant's counter.

        Concurrent sends each apply their own $inc, so no increment is lost;
        the last write decides last_message_id.
        """
        # Two-party conversations: the only participant besides the sender is the recipient
        result = self.collection.update_one(
            {'_id': str(conversation_id), 'participants': {'$all': [message.sender_id, message.recipient_id]}},
            {
                '$set': {
                    'last_message_id': message.message_id,
                    'last_message_time': message.created_at,
                    'updated_at': utc_now()
                },
                '$inc': {f'unread_counts.{validate_user_id(message.recipient_id)}': 1}
            }
        )
        return result.matched_count > 0

    def reset_unread(self, conversation_id: str, user_id: str) -> bool:
        """Set the user's unread counter to 0. Safe to repeat."""
        user_id = validate_user_id(user_id)
        result = self.collection.update_one(
            {'_id': str(conversation_id), 'participants': user_id},
            {'$set': {f'unread_counts.{user_id}': 0}}
        )
        return result.matched_count > 0

    def decrement_unread(self, conversation_id: str, user_id: str) -> bool:
        """Take one unread message off the user's counter, never going below 0."""
        user_id = validate_user_id(user_id)
        field = f'unread_counts.{user_id}'
        result = self.collection.update_one(
            {'_id': str(conversation_id), field: {'$gt': 0}},
            {'$inc': {field: -1}}
        )
        return result.modified_count > 0

    def unread_total(self, user_id: str) -> int:
        total = 0
        for conversation in self.list_for_user(user_id):
            total += conversation.unread_for(user_id)
        return total
