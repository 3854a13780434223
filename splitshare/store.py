"""
MongoDB-backed session store. Sessions are read and replaced whole;
the last write wins.
"""

import logging

from pymongo import ASCENDING, DESCENDING, MongoClient

from splitshare.config import MONGO_COLLECTION, MONGO_DB, MONGO_URI
from splitshare.errors import SessionNotFoundError
from splitshare.models import session_from_doc, session_to_doc

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, collection):
        self.collection = collection

    def get(self, session_id):
        doc = self.collection.find_one({"_id": session_id})
        return session_from_doc(doc) if doc else None

    def require(self, session_id):
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def put(self, session):
        self.collection.replace_one({"_id": session.id}, session_to_doc(session), upsert=True)

    def list(self):
        return [session_from_doc(doc) for doc in self.collection.find({})]

    def delete(self, session_id):
        result = self.collection.delete_one({"_id": session_id})
        return result.deleted_count > 0

    def active_for_chat(self, chat_id):
        doc = self.collection.find_one(
            {"chat_id": chat_id, "locked": False},
            sort=[("created", DESCENDING)],
        )
        return session_from_doc(doc) if doc else None

    def open_sessions(self):
        return [session_from_doc(doc) for doc in self.collection.find({"locked": False})]

    def history_for_chat(self, chat_id, limit=5):
        cursor = (
            self.collection.find({"chat_id": chat_id, "locked": True})
            .sort("created", DESCENDING)
            .limit(limit)
        )
        return [session_from_doc(doc) for doc in cursor]

    def ensure_indexes(self):
        self.collection.create_index("chat_id")
        self.collection.create_index([("chat_id", ASCENDING), ("locked", ASCENDING)])


def connect_store(uri=MONGO_URI, db_name=MONGO_DB, collection_name=MONGO_COLLECTION):
    client = MongoClient(uri, tz_aware=True)
    store = SessionStore(client[db_name][collection_name])
    store.ensure_indexes()
    logger.info("Session store ready (MongoDB: %s/%s)", uri, db_name)
    return store
