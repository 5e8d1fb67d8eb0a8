"""
LeadPilot Protocols - Abstract interfaces for dependency injection

These protocols define the contracts that external collaborators must fulfill:
the language model, the shared document store, and the observability sink.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Abstract interface for LLM clients

    Given an OpenAI-style message list and a tool catalog, return the next
    step: either a text answer or a set of tool calls. The response must expose
    ``content``, ``tool_calls`` (items with ``id``, ``name``, ``arguments``)
    and optionally ``usage``.
    """

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> Any:
        ...


@runtime_checkable
class DocumentStoreProtocol(Protocol):
    """
    Abstract interface for the shared multi-tenant document store.

    Filters, projections, sorts and pipelines use MongoDB query syntax.
    Implementations: ``leadpilot.db.Database`` (MongoDB) and
    ``leadpilot.db.MemoryDocumentStore`` (tests / local development).
    """

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
        sort: Optional[Mapping[str, int]] = None,
        limit: int = 0,
        skip: int = 0,
    ) -> List[Dict[str, Any]]:
        ...

    async def find_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        ...

    async def count(self, collection: str, filter: Mapping[str, Any]) -> int:
        ...

    async def aggregate(
        self, collection: str, pipeline: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        ...

    async def distinct(
        self, collection: str, field: str, filter: Mapping[str, Any]
    ) -> List[Any]:
        ...

    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        ...

    async def upsert_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Apply ``update`` (``$set`` / ``$setOnInsert`` / ``$inc``) to the
        matching document, inserting it if absent. Returns the document after
        the update."""
        ...

    async def update_one(
        self,
        collection: str,
        filter: Mapping[str, Any],
        update: Dict[str, Any],
    ) -> int:
        """Returns the number of matched documents (0 or 1)."""
        ...

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        ...

    async def create_index(
        self, collection: str, keys: List[tuple], unique: bool = False
    ) -> None:
        ...


@runtime_checkable
class EventSinkProtocol(Protocol):
    """Receives orchestrator events. Diagnostic only; never drives control flow."""

    def emit(self, event: Any) -> None:
        ...
