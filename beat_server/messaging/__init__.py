"""Messaging module for two-party chat.

This module provides:
- Conversations between pairs of users, with per-participant unread counters
- Text, media and shared-listing messages with soft delete and edit
- User presence (online flag and last seen)
"""

from beat_server.messaging.models import (
    Message, Conversation, MessageType, MessageBody, TextBody, MediaBody, ListingBody
)
from beat_server.messaging.presence import PresenceTracker
from beat_server.messaging.service import MessagingService

__all__ = [
    # Models
    'Message', 'Conversation', 'MessageType', 'MessageBody', 'TextBody', 'MediaBody', 'ListingBody',
    # Presence
    'PresenceTracker',
    # Service
    'MessagingService'
]
