"""In-memory registry of live Socket.IO connections.

Maps session ids to the authenticated user and the conversation rooms the
session joined, and users to their open sessions. Shared by every handler
thread, so all access goes through one lock. Nothing under the lock does I/O.
"""
import logging
import threading
from typing import Dict, Any, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


def user_room(user_id: str) -> str:
    return f'user_{user_id}'


def conversation_room(conversation_id: str) -> str:
    return f'conversation_{conversation_id}'


class ConnectionRegistry:

    def __init__(self):
        self._lock = threading.Lock()
        # sid -> {'user_id', 'username', 'conversations': set}
        self._sessions: Dict[str, Dict[str, Any]] = {}
        # user_id -> set of sids
        self._user_sessions: Dict[str, Set[str]] = {}

    def register(self, sid: str, user_id: str, username: Optional[str] = None) -> int:
        """Record a new authenticated session; returns the user's session count."""
        with self._lock:
            self._sessions[sid] = {'user_id': user_id, 'username': username, 'conversations': set()}
            sids = self._user_sessions.setdefault(user_id, set())
            sids.add(sid)
            return len(sids)

    def unregister(self, sid: str) -> Tuple[Optional[Dict[str, Any]], int]:
        """Forget a session.

        Returns (session info or None if unknown, sessions the user still has).
        """
        with self._lock:
            info = self._sessions.pop(sid, None)
            if info is None:
                return None, 0
            sids = self._user_sessions.get(info['user_id'], set())
            sids.discard(sid)
            if not sids:
                self._user_sessions.pop(info['user_id'], None)
            return info, len(sids)

    def user_for(self, sid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            info = self._sessions.get(sid)
            if info is None:
                return None
            return {'user_id': info['user_id'], 'username': info['username']}

    def sessions_for(self, user_id: str) -> List[str]:
        with self._lock:
            return sorted(self._user_sessions.get(user_id, ()))

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._user_sessions.get(user_id))

    def join(self, sid: str, conversation_id: str) -> bool:
        with self._lock:
            info = self._sessions.get(sid)
            if info is None:
                return False
            info['conversations'].add(conversation_id)
            return True

    def leave(self, sid: str, conversation_id: str) -> bool:
        with self._lock:
            info = self._sessions.get(sid)
            if info is None or conversation_id not in info['conversations']:
                return False
            info['conversations'].discard(conversation_id)
            return True

    def is_joined(self, sid: str, conversation_id: str) -> bool:
        with self._lock:
            info = self._sessions.get(sid)
            return info is not None and conversation_id in info['conversations']

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)
