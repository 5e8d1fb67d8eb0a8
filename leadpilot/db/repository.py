"""
LeadPilot Repository - Base class for domain-specific data access.

Each domain creates a subclass that defines:
- COLLECTION_NAME: the collection it owns
- INDEXES: index specs created once at startup
- Domain-specific query methods

Adding a new domain = one new Repository subclass file.

Usage:
    class LeadRepository(Repository):
        COLLECTION_NAME = "leads"
        INDEXES = [
            ([("tenant_id", 1), ("person_id", 1)], True),
        ]

        async def find_by_person(self, tenant_id: str, person_id: str):
            return await self.store.find_one(
                self.COLLECTION_NAME, {"tenant_id": tenant_id, "person_id": person_id}
            )
"""

import logging
from typing import List, Tuple

from ..protocols import DocumentStoreProtocol

logger = logging.getLogger(__name__)


class Repository:
    """
    Base class for domain data access.

    Subclasses define COLLECTION_NAME, INDEXES, and domain methods.
    """

    COLLECTION_NAME: str = ""
    INDEXES: List[Tuple[List[tuple], bool]] = []
    """(keys, unique) pairs."""

    def __init__(self, store: DocumentStoreProtocol):
        self._store = store

    @property
    def store(self) -> DocumentStoreProtocol:
        return self._store

    async def ensure_indexes(self) -> None:
        """Create the collection indexes if they do not exist. Call once at startup."""
        for keys, unique in self.INDEXES:
            await self._store.create_index(self.COLLECTION_NAME, keys, unique=unique)
        if self.INDEXES:
            logger.debug(f"Ensured indexes: {self.COLLECTION_NAME}")
