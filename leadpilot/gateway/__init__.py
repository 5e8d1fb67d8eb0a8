"""Tenant-scoped query gateway."""

from .gateway import QueryGateway
from .query import Operation, ScopedQuery
from .scoping import COLLECTION_SCOPES, Scope, apply_scope, scope_for

__all__ = [
    "COLLECTION_SCOPES",
    "Operation",
    "QueryGateway",
    "Scope",
    "ScopedQuery",
    "apply_scope",
    "scope_for",
]
