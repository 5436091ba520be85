"""Messaging data models for two-party conversations.

Collections:
- conversations: one document per unordered pair of users
- chat_messages: individual messages (text, media, or shared listing)

Field names are snake_case in MongoDB and camelCase in API payloads
(to_db_doc vs to_dict).
"""
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum

from beat_server.exception.MessagingError import InvalidInput
from beat_server.utils.time_utils import utc_now, to_iso

MAX_TEXT_LENGTH = 1000


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    FILE = "file"
    LISTING = "listing"


MEDIA_TYPES = (MessageType.IMAGE, MessageType.AUDIO, MessageType.FILE)


def validate_user_id(value, field='userId') -> str:
    """Return value as a string id usable as a MongoDB map key, or raise InvalidInput."""
    if value is None or isinstance(value, (dict, list, bool)):
        raise InvalidInput(f'{field} is required')
    value = str(value).strip()
    if not value or '.' in value or value.startswith('$'):
        raise InvalidInput(f'{field} is not a valid id')
    return value


def parse_message_type(value) -> MessageType:
    if value is None or value == '':
        return MessageType.TEXT
    try:
        return MessageType(value)
    except ValueError:
        allowed = ', '.join(t.value for t in MessageType)
        raise InvalidInput(f'messageType must be one of: {allowed}')


# =============================================================================
# Message body variants
# =============================================================================

class MessageBody:
    """One variant of a message payload.

    A message holds exactly one MessageBody; the subclass decides which
    payload fields exist, so a text message cannot also carry media.
    """
    message_type: MessageType = None

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_db_doc(self) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def from_doc(message_type, doc: Dict[str, Any]) -> 'MessageBody':
        message_type = MessageType(message_type)
        doc = doc or {}
        if message_type == MessageType.TEXT:
            return TextBody(doc.get('text'))
        if message_type == MessageType.LISTING:
            return ListingBody(doc.get('listing_id'))
        return MediaBody(
            message_type,
            url=doc.get('url'),
            filename=doc.get('filename'),
            original_name=doc.get('original_name'),
            mime_type=doc.get('mime_type'),
            size=doc.get('size'),
        )


class TextBody(MessageBody):
    message_type = MessageType.TEXT

    def __init__(self, text):
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput('Message content cannot be empty')
        text = text.strip()
        if len(text) > MAX_TEXT_LENGTH:
            raise InvalidInput(f'Message content cannot exceed {MAX_TEXT_LENGTH} characters')
        self.text = text

    def to_dict(self) -> Dict[str, Any]:
        return {'content': self.text}

    def to_db_doc(self) -> Dict[str, Any]:
        return {'text': self.text}


class MediaBody(MessageBody):
    """Descriptor of an already uploaded image, audio clip, or file."""

    def __init__(self, message_type, url, filename=None, original_name=None, mime_type=None, size=None):
        message_type = MessageType(message_type)
        if message_type not in MEDIA_TYPES:
            raise InvalidInput(f'{message_type.value} is not a media message type')
        if not isinstance(url, str) or not url.strip():
            raise InvalidInput('media.url is required')
        if size is not None:
            if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                raise InvalidInput('media.size must be a non-negative integer')
        for name, value in (('filename', filename), ('originalName', original_name), ('mimeType', mime_type)):
            if value is not None and not isinstance(value, str):
                raise InvalidInput(f'media.{name} must be a string')
        self.message_type = message_type
        self.url = url.strip()
        self.filename = filename
        self.original_name = original_name
        self.mime_type = mime_type
        self.size = size

    def to_dict(self) -> Dict[str, Any]:
        return {
            'media': {
                'filename': self.filename,
                'originalName': self.original_name,
                'mimeType': self.mime_type,
                'size': self.size,
                'url': self.url,
            }
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'original_name': self.original_name,
            'mime_type': self.mime_type,
            'size': self.size,
            'url': self.url,
        }


class ListingBody(MessageBody):
    """Reference to a marketplace listing shared into the conversation."""
    message_type = MessageType.LISTING

    def __init__(self, listing_id):
        if listing_id is None or isinstance(listing_id, (dict, list, bool)) or not str(listing_id).strip():
            raise InvalidInput('listingId is required for listing messages')
        self.listing_id = str(listing_id).strip()

    def to_dict(self) -> Dict[str, Any]:
        return {'listingId': self.listing_id}

    def to_db_doc(self) -> Dict[str, Any]:
        return {'listing_id': self.listing_id}


def parse_body(message_type, content=None, media=None, listing_id=None) -> MessageBody:
    """Build the body for an incoming send request.

    Exactly one payload shape is accepted per type: text takes content,
    media types take a media object, listing takes listingId (or the id in
    content, as older clients send it). Any extra payload is rejected.
    """
    message_type = parse_message_type(message_type)

    if message_type == MessageType.TEXT:
        if media is not None or listing_id is not None:
            raise InvalidInput('Text messages carry only content')
        return TextBody(content)

    if message_type == MessageType.LISTING:
        if media is not None:
            raise InvalidInput('Listing messages cannot carry media')
        if listing_id is not None and content is not None:
            raise InvalidInput('Send either listingId or content for a listing message, not both')
        return ListingBody(listing_id if listing_id is not None else content)

    if content is not None or listing_id is not None:
        raise InvalidInput(f'{message_type.value} messages carry only a media descriptor')
    if not isinstance(media, dict):
        raise InvalidInput(f'media is required for {message_type.value} messages')
    return MediaBody(
        message_type,
        url=media.get('url'),
        filename=media.get('filename'),
        original_name=media.get('originalName', media.get('original_name')),
        mime_type=media.get('mimeType', media.get('mime_type')),
        size=media.get('size'),
    )


# =============================================================================
# Documents
# =============================================================================

class Message:
    """Message document structure."""

    def __init__(
        self,
        message_id: str,
        conversation_id: str,
        sender_id: str,
        recipient_id: str,
        body: MessageBody,
        reply_to: Optional[str] = None,
        is_read: bool = False,
        read_at: Optional[datetime] = None,
        is_deleted: bool = False,
        deleted_at: Optional[datetime] = None,
        deleted_by: Optional[str] = None,
        is_edited: bool = False,
        edited_at: Optional[datetime] = None,
        original_text: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.message_id = message_id
        self.conversation_id = conversation_id
        self.sender_id = sender_id
        self.recipient_id = recipient_id
        self.body = body
        self.reply_to = reply_to
        self.is_read = is_read
        self.read_at = read_at
        self.is_deleted = is_deleted
        self.deleted_at = deleted_at
        self.deleted_by = deleted_by
        self.is_edited = is_edited
        self.edited_at = edited_at
        self.original_text = original_text
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or self.created_at

    @property
    def message_type(self) -> MessageType:
        return self.body.message_type

    def to_dict(self, sender: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = {
            'id': self.message_id,
            'conversationId': self.conversation_id,
            'senderId': self.sender_id,
            'recipientId': self.recipient_id,
            'messageType': self.message_type.value,
            'replyTo': self.reply_to,
            'isRead': self.is_read,
            'readAt': to_iso(self.read_at),
            'isEdited': self.is_edited,
            'editedAt': to_iso(self.edited_at),
            'isDeleted': self.is_deleted,
            'deletedAt': to_iso(self.deleted_at),
            'createdAt': to_iso(self.created_at),
            'updatedAt': to_iso(self.updated_at),
        }
        # Deleted messages keep their payload in storage only
        if not self.is_deleted:
            data.update(self.body.to_dict())
            if self.is_edited:
                data['originalContent'] = self.original_text
        if sender is not None:
            data['sender'] = sender
        return data

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.message_id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'recipient_id': self.recipient_id,
            'message_type': self.message_type.value,
            'body': self.body.to_db_doc(),
            'reply_to': self.reply_to,
            'is_read': self.is_read,
            'read_at': self.read_at,
            'is_deleted': self.is_deleted,
            'deleted_at': self.deleted_at,
            'deleted_by': self.deleted_by,
            'is_edited': self.is_edited,
            'edited_at': self.edited_at,
            'original_text': self.original_text,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Message':
        return cls(
            message_id=str(doc.get('_id')),
            conversation_id=doc.get('conversation_id'),
            sender_id=doc.get('sender_id'),
            recipient_id=doc.get('recipient_id'),
            body=MessageBody.from_doc(doc.get('message_type', MessageType.TEXT), doc.get('body')),
            reply_to=doc.get('reply_to'),
            is_read=doc.get('is_read', False),
            read_at=doc.get('read_at'),
            is_deleted=doc.get('is_deleted', False),
            deleted_at=doc.get('deleted_at'),
            deleted_by=doc.get('deleted_by'),
            is_edited=doc.get('is_edited', False),
            edited_at=doc.get('edited_at'),
            original_text=doc.get('original_text'),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at')
        )


class Conversation:
    """Conversation document structure."""

    def __init__(
        self,
        conversation_id: str,
        participants: List[str],
        last_message_id: Optional[str] = None,
        last_message_time: Optional[datetime] = None,
        unread_counts: Optional[Dict[str, int]] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        self.conversation_id = conversation_id
        self.participants = list(participants)
        self.last_message_id = last_message_id
        self.created_at = created_at or utc_now()
        self.last_message_time = last_message_time or self.created_at
        # {user_id: count}; a participant without an entry has 0 unread
        self.unread_counts = dict(unread_counts or {})
        self.is_active = is_active
        self.updated_at = updated_at or self.created_at

    @staticmethod
    def pair_key(user_a: str, user_b: str) -> str:
        """Canonical key of an unordered participant pair."""
        first, second = sorted((str(user_a), str(user_b)))
        return f'{first}|{second}'

    def has_participant(self, user_id: str) -> bool:
        return str(user_id) in self.participants

    def other_participant(self, user_id: str) -> Optional[str]:
        for participant in self.participants:
            if participant != str(user_id):
                return participant
        return None

    def unread_for(self, user_id: str) -> int:
        return int(self.unread_counts.get(str(user_id), 0))

    def to_dict(
        self,
        viewer_id: Optional[str] = None,
        other_participant: Optional[Dict[str, Any]] = None,
        last_message: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        data = {
            'id': self.conversation_id,
            'participants': self.participants,
            'lastMessageId': self.last_message_id,
            'lastMessageTime': to_iso(self.last_message_time),
            'isActive': self.is_active,
            'createdAt': to_iso(self.created_at),
            'updatedAt': to_iso(self.updated_at),
        }
        if viewer_id is not None:
            data['unreadCount'] = self.unread_for(viewer_id)
            data['otherParticipantId'] = self.other_participant(viewer_id)
            data['otherParticipant'] = other_participant
            data['lastMessage'] = last_message
        else:
            data['unreadCounts'] = {p: self.unread_for(p) for p in self.participants}
        return data

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.conversation_id,
            'participants': self.participants,
            'participant_key': self.pair_key(*self.participants),
            'last_message_id': self.last_message_id,
            'last_message_time': self.last_message_time,
            'unread_counts': {p: self.unread_for(p) for p in self.participants},
            'is_active': self.is_active,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Conversation':
        return cls(
            conversation_id=str(doc.get('_id')),
            participants=doc.get('participants', []),
            last_message_id=doc.get('last_message_id'),
            last_message_time=doc.get('last_message_time'),
            unread_counts=doc.get('unread_counts', {}),
            is_active=doc.get('is_active', True),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at')
        )
