import logging
from typing import Dict, Iterable, Optional

from beat_server.repository.base_repository import BaseRepository
from beat_server.utils.helpers import id_query, id_values
from beat_server.utils.time_utils import to_iso

logger = logging.getLogger(__name__)

PUBLIC_PROFILE_FIELDS = {
    'username': 1,
    'first_name': 1,
    'last_name': 1,
    'profile_image': 1,
    'is_online': 1,
    'last_seen': 1,
}


def public_profile(doc: Optional[Dict]) -> Optional[Dict]:
    """Shape a user document into the public profile sent to other users."""
    if not doc:
        return None
    return {
        'id': str(doc['_id']),
        'username': doc.get('username'),
        'firstName': doc.get('first_name'),
        'lastName': doc.get('last_name'),
        'profileImage': doc.get('profile_image'),
        'isOnline': bool(doc.get('is_online', False)),
        'lastSeen': to_iso(doc.get('last_seen')),
    }


class UserRepository(BaseRepository):
    """Read access to the users collection plus the presence fields.

    Users are owned by the account part of the application; the messaging core
    only checks existence, reads public profiles, and writes is_online/last_seen.
    """
    collection_name = 'users'

    def get(self, user_id) -> Optional[Dict]:
        if not user_id:
            return None
        return self.collection.find_one(id_query(user_id), PUBLIC_PROFILE_FIELDS)

    def exists(self, user_id) -> bool:
        return self.get(user_id) is not None

    def get_public_profiles(self, user_ids: Iterable[str]) -> Dict[str, Dict]:
        """Return {user_id: public profile} for every id that exists."""
        ids = {str(u) for u in user_ids if u}
        if not ids:
            return {}
        values = [v for u in ids for v in id_values(u)]
        docs = self.collection.find({'_id': {'$in': values}}, PUBLIC_PROFILE_FIELDS)
        return {str(doc['_id']): public_profile(doc) for doc in docs}

    def set_presence(self, user_id, is_online: Optional[bool], last_seen) -> bool:
        """Write presence fields; is_online=None only refreshes last_seen."""
        fields = {'last_seen': last_seen}
        if is_online is not None:
            fields['is_online'] = is_online
        result = self.collection.update_one(id_query(user_id), {'$set': fields})
        return result.matched_count > 0
