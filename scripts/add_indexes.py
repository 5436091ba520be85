"""Migration script: create the messaging indexes.

This script creates:
1. Unique index on conversations.participant_key (one conversation per pair)
2. Conversation listing index (participants, last_message_time)
3. chat_messages indexes for history paging, unread lookups and sender queries

It first backfills participant_key on conversations written before the field
existed, since the unique index cannot be built over them otherwise.

Usage:
    python scripts/add_indexes.py

Ensure MONGO_URI and MONGO_DB environment variables (or config files) are set.
"""
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from beat_server.messaging.models import Conversation
from beat_server.repository.mongo_helper import MongoRepositorySingleton
from config import config

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def backfill_participant_keys(db) -> int:
    """Set participant_key on conversations missing it; returns how many were updated."""
    updated = 0
    for doc in db['conversations'].find({'participant_key': {'$exists': False}}, {'participants': 1}):
        participants = doc.get('participants') or []
        if len(participants) != 2:
            logger.warning(f"  Conversation {doc['_id']} has {len(participants)} participants, skipped")
            continue
        db['conversations'].update_one(
            {'_id': doc['_id']},
            {'$set': {'participant_key': Conversation.pair_key(*participants)}}
        )
        updated += 1
    return updated


def main():
    logger.info('=' * 60)
    logger.info(f'Adding messaging indexes on {config.MONGO_DB}')
    logger.info('=' * 60)

    db = MongoRepositorySingleton.get_db(config.MONGO_URI, config.MONGO_DB)
    count = backfill_participant_keys(db)
    logger.info(f'Backfilled participant_key on {count} conversation(s)')

    MongoRepositorySingleton.get_instance(config.MONGO_URI, config.MONGO_DB)
    for name in ('conversations', 'chat_messages'):
        logger.info(f'{name}: {sorted(db[name].index_information())}')

    logger.info('Index migration complete!')


if __name__ == '__main__':
    main()
