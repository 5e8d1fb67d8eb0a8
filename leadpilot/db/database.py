"""
LeadPilot Database - Shared MongoDB client manager.

A single Database instance is created per application and shared across
all repositories and the query gateway. Any MongoDB-compatible deployment
works (Atlas, self-hosted, DocumentDB); just provide a connection URI.

Usage:
    db = Database(uri="mongodb://localhost:27017", name="leadpilot")
    await db.initialize()

    # Pass to repositories
    usage = UsageLedger(db)
    settings = ProviderSettingsStore(db, cipher)

    await db.close()
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class Database:
    """
    Manages a shared pymongo async client.

    One instance per application. All Repository instances share this client.
    Implements DocumentStoreProtocol.
    """

    def __init__(
        self,
        uri: str,
        name: str,
        max_pool_size: int = 10,
    ):
        self._uri = uri
        self._name = name
        self._max_pool_size = max_pool_size
        self._client = None
        self._db = None
        self._initialized = False

    @property
    def db(self):
        """Access the raw pymongo database handle. Raises if not initialized."""
        if self._db is None:
            raise RuntimeError(
                "Database not initialized. Call await db.initialize() first."
            )
        return self._db

    async def initialize(self) -> None:
        """Create the client and verify connectivity."""
        if self._initialized:
            return
        try:
            from pymongo import AsyncMongoClient
        except ImportError:
            raise ImportError(
                "pymongo>=4.9 is required for Database. "
                "Install with: pip install pymongo"
            )
        self._client = AsyncMongoClient(
            self._uri,
            maxPoolSize=self._max_pool_size,
            tz_aware=True,
        )
        self._db = self._client[self._name]
        await self._client.admin.command("ping")
        self._initialized = True
        logger.info(f"Database client initialized (db={self._name})")

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            self._db = None
        self._initialized = False
        logger.info("Database client closed")

    def collection(self, name: str):
        return self.db[name]

    # -- DocumentStoreProtocol --

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
        sort: Optional[Mapping[str, int]] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self.collection(collection).find(dict(filter), projection)
        if sort:
            cursor = cursor.sort(list(sort.items()))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list()

    async def find_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        return await self.collection(collection).find_one(dict(filter), projection)

    async def count(self, collection: str, filter: Mapping[str, Any]) -> int:
        return await self.collection(collection).count_documents(dict(filter))

    async def aggregate(
        self, collection: str, pipeline: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        cursor = await self.collection(collection).aggregate(pipeline)
        return await cursor.to_list()

    async def distinct(
        self, collection: str, field: str, filter: Mapping[str, Any]
    ) -> List[Any]:
        return await self.collection(collection).distinct(field, dict(filter))

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        result = await self.collection(collection).insert_one(document)
        return result.inserted_id

    async def upsert_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> Dict[str, Any]:
        from pymongo import ReturnDocument

        return await self.collection(collection).find_one_and_update(
            dict(filter),
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def update_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> int:
        result = await self.collection(collection).update_one(dict(filter), update)
        return result.matched_count

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        result = await self.collection(collection).delete_one(dict(filter))
        return result.deleted_count

    async def create_index(
        self, collection: str, keys: List[tuple], unique: bool = False
    ) -> None:
        await self.collection(collection).create_index(keys, unique=unique)
