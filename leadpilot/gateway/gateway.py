"""
LeadPilot QueryGateway - Tenant-scoped ad-hoc reads for the agent.

The agent describes a read as a ScopedQuery. The gateway validates it,
rewrites its filter or pipeline with the caller's tenant (and user) predicate
and only then touches the store. The caller's own ``tenant_id`` / ``user_id``
keys are overwritten, so a query can never reach another tenant's data.

Usage:
    gateway = QueryGateway(db)
    leads = await gateway.execute("org_1", "u_1", ScopedQuery(
        collection="leads", operation="find", filter={"company": "Acme"}, limit=20,
    ))
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_RESULTS
from ..errors import GatewayError, InvalidArgument, OperationFailed
from ..protocols import DocumentStoreProtocol
from .query import Operation, ScopedQuery
from .scoping import Scope, apply_scope, scope_for, scope_predicate

logger = logging.getLogger(__name__)

ALLOWED_STAGES = frozenset({
    "$match", "$group", "$sort", "$limit", "$skip", "$project",
    "$addFields", "$set", "$unset", "$count", "$unwind", "$sortByCount", "$facet",
})

# Operators that read other collections or write; rejected at any depth.
FORBIDDEN_OPERATORS = frozenset({
    "$out", "$merge", "$lookup", "$graphLookup", "$unionWith", "$documents",
    "$function", "$accumulator", "$where",
})


def _clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit <= 0:
        return DEFAULT_QUERY_LIMIT
    return min(limit, MAX_QUERY_RESULTS)


def _find_forbidden(node: Any) -> Optional[str]:
    if isinstance(node, Mapping):
        for key, value in node.items():
            if key in FORBIDDEN_OPERATORS:
                return key
            found = _find_forbidden(value)
            if found:
                return found
    elif isinstance(node, list):
        for item in node:
            found = _find_forbidden(item)
            if found:
                return found
    return None


def _check_pipeline(pipeline: List[Any]) -> None:
    """Every stage must be a single allowed stage; ``$facet`` branches are checked the same way."""
    for stage in pipeline:
        if not isinstance(stage, Mapping) or len(stage) != 1:
            raise InvalidArgument("Each pipeline stage must be an object with exactly one stage operator")
        name, body = next(iter(stage.items()))
        if name not in ALLOWED_STAGES:
            raise InvalidArgument(
                f"Pipeline stage {name} is not allowed. Use one of: {', '.join(sorted(ALLOWED_STAGES))}"
            )
        if name == "$facet":
            if not isinstance(body, Mapping):
                raise InvalidArgument("$facet requires an object of sub-pipelines")
            for branch in body.values():
                if not isinstance(branch, list):
                    raise InvalidArgument("$facet branches must be pipeline lists")
                _check_pipeline(branch)
    forbidden = _find_forbidden(pipeline)
    if forbidden:
        raise InvalidArgument(f"Pipeline operator {forbidden} is not allowed")


class QueryGateway:

    def __init__(self, store: DocumentStoreProtocol):
        self._store = store

    async def execute(
        self,
        tenant_id: str,
        user_id: Optional[str],
        query: Union[ScopedQuery, Dict[str, Any]],
    ) -> Any:
        """
        Run ``query`` confined to the caller.

        Returns a list for find/aggregate/distinct, a document or None for
        findOne, and an int for count.

        Raises:
            UnknownCollection: collection is not registered.
            InvalidArgument: unsupported operation or missing/unsafe arguments.
            OperationFailed: the store rejected the query.
        """
        if isinstance(query, dict):
            try:
                query = ScopedQuery(**query)
            except ValidationError as e:
                raise InvalidArgument(f"Invalid query: {e.error_count()} invalid field(s)") from e

        scope = scope_for(query.collection)
        try:
            operation = Operation(query.operation)
        except ValueError:
            raise InvalidArgument(
                f"Unsupported operation: {query.operation}. "
                f"Use one of: {', '.join(op.value for op in Operation)}"
            ) from None

        if operation is Operation.DISTINCT and not query.field:
            raise InvalidArgument("distinct requires 'field'")
        if operation is Operation.AGGREGATE:
            if not isinstance(query.pipeline, list) or not query.pipeline:
                raise InvalidArgument("aggregate requires a non-empty 'pipeline' list")
            _check_pipeline(query.pipeline)

        scoped_filter = apply_scope(query.filter, scope, tenant_id, user_id)
        logger.debug(
            f"Gateway {operation.value} on {query.collection} "
            f"(scope={scope.value}, tenant={tenant_id})"
        )

        try:
            return await self._run(operation, query, scope, scoped_filter, tenant_id, user_id)
        except GatewayError:
            raise
        except Exception as e:
            logger.warning(f"Gateway {operation.value} on {query.collection} failed: {e}")
            raise OperationFailed(str(e)) from e

    async def _run(
        self,
        operation: Operation,
        query: ScopedQuery,
        scope: Scope,
        scoped_filter: Dict[str, Any],
        tenant_id: str,
        user_id: Optional[str],
    ) -> Any:
        collection = query.collection

        if operation is Operation.FIND:
            return await self._store.find(
                collection,
                scoped_filter,
                projection=query.projection,
                sort=query.sort,
                limit=_clamp_limit(query.limit),
                skip=max(query.skip or 0, 0),
            )
        if operation is Operation.FIND_ONE:
            return await self._store.find_one(collection, scoped_filter, projection=query.projection)
        if operation is Operation.COUNT:
            return await self._store.count(collection, scoped_filter)
        if operation is Operation.DISTINCT:
            values = await self._store.distinct(collection, query.field, scoped_filter)
            return values[:MAX_QUERY_RESULTS]

        pipeline: List[Dict[str, Any]] = list(query.pipeline)
        if scope is not Scope.SYSTEM:
            pipeline.insert(0, {"$match": scope_predicate(scope, tenant_id, user_id)})
        rows = await self._store.aggregate(collection, pipeline)
        return rows[:MAX_QUERY_RESULTS]
