"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Collection names
DEFINITIONS = "workflow_definitions"
INSTANCES = "workflow_instances"
VOTES = "workflow_votes"
AUDIT_EVENTS = "audit_events"
NOTIFICATION_OUTBOX = "notification_outbox"
USER_PERMISSIONS = "user_permissions"
COMMITTEES = "committees"

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        # Test connection
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
    _client = None
    _database = None
    logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Workflow definitions (long-lived, never expire)
    definitions = db[DEFINITIONS]
    definitions.create_index("definition_id", unique=True)
    definitions.create_index([("lineage_id", ASCENDING), ("version", DESCENDING)])
    definitions.create_index([("is_active", ASCENDING), ("category", ASCENDING)])
    definitions.create_index("created_at")

    # Workflow instances (retention via TTL on expires_at)
    instances = db[INSTANCES]
    instances.create_index("instance_id", unique=True)
    instances.create_index([("definition_id", ASCENDING), ("status", ASCENDING)])
    instances.create_index("doc_ref")
    instances.create_index([("assigned_committee", ASCENDING), ("status", ASCENDING)])
    instances.create_index("status")
    instances.create_index("expires_at", expireAfterSeconds=0)

    # Ballot boxes
    votes = db[VOTES]
    votes.create_index("vote_id", unique=True)
    votes.create_index([("instance_id", ASCENDING), ("transition_id", ASCENDING)], unique=True)
    votes.create_index("expires_at", expireAfterSeconds=0)

    # Audit events (append-only, idempotent)
    audit_events = db[AUDIT_EVENTS]
    audit_events.create_index("event_id", unique=True)
    audit_events.create_index("idempotency_key", unique=True)
    audit_events.create_index([("namespace", ASCENDING), ("timestamp", DESCENDING)])
    audit_events.create_index("payload.instance_id")
    audit_events.create_index("correlation_id")

    # Notification outbox
    notification_outbox = db[NOTIFICATION_OUTBOX]
    notification_outbox.create_index("notification_id", unique=True)
    notification_outbox.create_index([("status", ASCENDING), ("created_at", ASCENDING)])

    # Access control source data
    db[USER_PERMISSIONS].create_index("user_id", unique=True)
    db[COMMITTEES].create_index("committee_id", unique=True)

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        get_database().command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
