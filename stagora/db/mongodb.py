"""
MongoDB Connection Utility

Every Stagora entity lives in MongoDB:
- users, companies, students (accounts and profiles)
- posts, applications (the marketplace)
- topics, messages, reports (the forum and its moderation)
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from stagora.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """Get a specific collection (use the COLLECTIONS constants)."""
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "companies": "companies",
    "students": "students",
    "posts": "posts",
    "applications": "applications",
    "topics": "topics",
    "messages": "messages",
    "reports": "reports",
    "notifications": "notifications",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)
    db[COLLECTIONS["students"]].create_index("email", unique=True)
    db[COLLECTIONS["students"]].create_index("student_number", unique=True, sparse=True)

    db[COLLECTIONS["posts"]].create_index([("company", ASCENDING), ("created_at", DESCENDING)])
    db[COLLECTIONS["applications"]].create_index([("post", ASCENDING), ("student", ASCENDING)])

    db[COLLECTIONS["messages"]].create_index([("topic_id", ASCENDING), ("created_at", ASCENDING)])

    # One report per (message, reporter)
    db[COLLECTIONS["reports"]].create_index(
        [("message_id", ASCENDING), ("reporter_id", ASCENDING)],
        unique=True
    )
    db[COLLECTIONS["reports"]].create_index("status")

    db[COLLECTIONS["notifications"]].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    logger.info("MongoDB indexes created successfully")
