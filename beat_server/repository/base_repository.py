from abc import ABC


class BaseRepository(ABC):
    """Common wiring for repositories that own one MongoDB collection."""

    collection_name = None

    def __init__(self, db, collection_name=None):
        self.collection_name = collection_name or self.collection_name
        self.db = db
        self.collection = db[self.collection_name]

    def ensure_indexes(self):
        """Create the indexes this repository's queries and invariants rely on."""
        pass

    def find_one(self, query):
        return self.collection.find_one(query)
