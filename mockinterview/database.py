"""Database connection and document store."""
import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from mockinterview.config import settings
from mockinterview.exceptions import PersistenceError

logger = logging.getLogger(__name__)

INTERVIEWS = "interviews"
FEEDBACK = "feedback"

DESCENDING = -1


def as_object_id(doc_id: Any) -> Any:
    """Convert a string id to ObjectId when it is a valid one."""
    if isinstance(doc_id, ObjectId):
        return doc_id
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        return ObjectId(doc_id)
    return doc_id


class DocumentStore:
    """Collection-style create/get/query/update over a Mongo database.

    Every operation is a single-document read or write. Driver failures are
    re-raised as PersistenceError so callers never depend on pymongo types.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def create(self, collection: str, document: Dict[str, Any]) -> str:
        """Insert a new document and return its id."""
        try:
            result = await self.db[collection].insert_one(dict(document))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create document in {collection}: {e}") from e
        return str(result.inserted_id)

    async def set(self, collection: str, doc_id: str, document: Dict[str, Any]) -> str:
        """Create or overwrite the document stored under doc_id."""
        key = as_object_id(doc_id)
        body = {k: v for k, v in document.items() if k != "_id"}
        try:
            await self.db[collection].replace_one({"_id": key}, body, upsert=True)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to write {collection}/{doc_id}: {e}") from e
        return str(key)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.db[collection].find_one({"_id": as_object_id(doc_id)})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read {collection}/{doc_id}: {e}") from e

    async def query(
        self,
        collection: str,
        filters: Dict[str, Any],
        order_by: Optional[Tuple[str, int]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Find documents matching equality (or $ne) filters."""
        try:
            cursor = self.db[collection].find(filters)
            if order_by:
                cursor = cursor.sort(order_by[0], order_by[1])
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to query {collection}: {e}") from e

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """Apply a partial update. Returns False when no document matched."""
        try:
            result = await self.db[collection].update_one(
                {"_id": as_object_id(doc_id)},
                {"$set": fields}
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to update {collection}/{doc_id}: {e}") from e
        return result.matched_count > 0


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        cls.client = AsyncIOMotorClient(settings.mongodb_url)
        cls.db = cls.client[settings.mongodb_db_name]
        logger.info(f"Connected to MongoDB: {settings.mongodb_db_name}")

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return cls.db


# Dependency for FastAPI routes
async def get_store() -> DocumentStore:
    """Get document store dependency for routes."""
    return DocumentStore(Database.get_database())
