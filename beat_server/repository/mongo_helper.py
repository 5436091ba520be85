import logging

from pymongo import MongoClient

logger = logging.getLogger(__name__)


class MongoRepositorySingleton:
    """Process-wide MongoDB client plus the repositories built on top of it.

    The application factory calls get_instance() once and hands the
    repositories to the services that need them; tests build their own
    instance over an in-memory database with from_db().
    """
    _instance = None
    _db_instance = None

    @classmethod
    def get_db(cls, mongo_uri, db_name):
        """Return the shared database object, connecting on first use."""
        if cls._db_instance is not None:
            return cls._db_instance
        logger.info(f"[MongoRepositorySingleton] Connecting to MongoDB DB: {db_name}")
        client = MongoClient(mongo_uri, tz_aware=False)
        cls._db_instance = client[db_name]
        return cls._db_instance

    @classmethod
    def get_instance(cls, mongo_uri, db_name):
        if cls._instance is None:
            cls._instance = cls.from_db(cls.get_db(mongo_uri, db_name))
        return cls._instance

    @classmethod
    def from_db(cls, db):
        """Build an instance over an existing database handle (no singleton caching)."""
        instance = super().__new__(cls)
        instance._init_repositories(db)
        return instance

    @classmethod
    def reset(cls):
        cls._instance = None
        cls._db_instance = None

    def _init_repositories(self, db):
        from beat_server.repository.user_repository import UserRepository
        from beat_server.repository.media.conversation_repository import ConversationRepository
        from beat_server.repository.media.chat_message_repository import ChatMessageRepository

        self.db = db
        self.user = UserRepository(db)
        self.conversation = ConversationRepository(db)
        self.chat_message = ChatMessageRepository(db)
        try:
            self._ensure_indexes()
        except Exception as e:
            # Pair uniqueness depends on the participant_key index
            logger.exception(f'Failed to ensure DB indexes: {e}')
            raise

    def _ensure_indexes(self):
        """Create recommended indexes used by query paths (idempotent)."""
        for repo in (self.user, self.conversation, self.chat_message):
            repo.ensure_indexes()
        logger.info('Ensured messaging DB indexes')
