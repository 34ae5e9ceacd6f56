"""
MongoDB database connection and utilities
"""
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from typing import Optional
from corridor.config import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager"""

    client: Optional[AsyncIOMotorClient] = None
    database = None


# Process-wide connection; collaborators receive the database handle explicitly
db = Database()


async def connect_to_mongo(uri: Optional[str] = None, db_name: Optional[str] = None):
    """Connect to MongoDB (optional - API will still start if connection fails)"""
    try:
        db.client = AsyncIOMotorClient(
            uri or settings.mongodb_uri,
            serverSelectionTimeoutMS=10000
        )
        db.database = db.client[db_name or settings.mongodb_db_name]

        # Test connection
        await db.client.admin.command('ping')
        logger.info(f"Connected to MongoDB: {db_name or settings.mongodb_db_name}")

        await create_indexes()

    except Exception as e:
        error_msg = str(e)
        if "authentication" in error_msg.lower():
            logger.warning("MongoDB authentication failed. Check username/password in connection string.")
        else:
            logger.warning(f"Failed to connect to MongoDB: {e}")
        logger.warning("API will continue without database. Worker runs will fail until it is reachable.")
        db.client = None
        db.database = None


async def close_mongo_connection():
    """Close MongoDB connection"""
    if db.client:
        db.client.close()
        db.client = None
        db.database = None
        logger.info("MongoDB connection closed")


async def create_indexes():
    """Create database indexes; the unique live index enforces one row per segment"""
    if db.database is None:
        logger.warning("Database not connected, skipping index creation")
        return

    try:
        await db.database.live_dashboard.create_index([("segment_id", ASCENDING)], unique=True)
        await db.database.live_dashboard.create_index([("updated_at", DESCENDING)])

        await db.database.status_buffer.create_index([("segment_id", ASCENDING), ("timestamp", DESCENDING)])
        await db.database.status_buffer.create_index([("timestamp", ASCENDING)])

        await db.database.incident_cache.create_index([("message_hash", ASCENDING)], unique=True)
        await db.database.narrative_cache.create_index([("input_hash", ASCENDING)], unique=True)

        await db.database.worker_run.create_index([("started_at", DESCENDING)])
        await db.database.feed_snapshot.create_index([("worker_run_id", ASCENDING)], unique=True)
        await db.database.vibe_score_history.create_index([("segment_id", ASCENDING), ("timestamp", DESCENDING)])
        await db.database.vibe_score_history.create_index([("worker_run_id", ASCENDING)])
        await db.database.incident_history.create_index([("worker_run_id", ASCENDING)])
        await db.database.incident_history.create_index([("cdot_incident_id", ASCENDING)])

        logger.info("Database indexes created successfully")

    except Exception as e:
        logger.warning(f"Failed to create some indexes: {e}")


def get_database():
    """Get database instance"""
    return db.database
