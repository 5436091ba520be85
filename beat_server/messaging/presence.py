"""User presence (online flag and last seen time).

Presence is stored on the user document. Only this tracker writes
is_online/last_seen; the realtime gateway decides when to call it based on
how many sessions a user still has open.
"""
import logging
from typing import Dict, Any

from beat_server.exception.MessagingError import NotFound
from beat_server.utils.time_utils import utc_now, to_iso

logger = logging.getLogger(__name__)


class PresenceTracker:

    def __init__(self, user_repo):
        self.user_repo = user_repo

    def mark_online(self, user_id: str) -> bool:
        logger.debug(f"User {user_id} online")
        return self.user_repo.set_presence(user_id, True, utc_now())

    def mark_offline(self, user_id: str) -> bool:
        logger.debug(f"User {user_id} offline")
        return self.user_repo.set_presence(user_id, False, utc_now())

    def touch(self, user_id: str) -> bool:
        """Refresh last_seen without changing the online flag."""
        return self.user_repo.set_presence(user_id, None, utc_now())

    def get(self, user_id: str) -> Dict[str, Any]:
        doc = self.user_repo.get(user_id)
        if not doc:
            raise NotFound('User not found')
        return {
            'userId': str(doc['_id']),
            'isOnline': bool(doc.get('is_online', False)),
            'lastSeen': to_iso(doc.get('last_seen')),
        }
