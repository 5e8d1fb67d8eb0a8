"""ScopedQuery - the agent-facing description of one read against the store."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Operation(str, Enum):
    FIND = "find"
    FIND_ONE = "findOne"
    COUNT = "count"
    AGGREGATE = "aggregate"
    DISTINCT = "distinct"


class ScopedQuery(BaseModel):
    """
    A read request before scoping.

    ``operation`` stays a plain string so the gateway can reject unsupported
    values with its own error instead of a validation error.
    """

    collection: str
    operation: str = Operation.FIND.value
    filter: Dict[str, Any] = Field(default_factory=dict)
    projection: Optional[Dict[str, Any]] = None
    sort: Optional[Dict[str, int]] = None
    limit: Optional[int] = None
    skip: Optional[int] = None
    field: Optional[str] = None
    pipeline: Optional[List[Dict[str, Any]]] = None
