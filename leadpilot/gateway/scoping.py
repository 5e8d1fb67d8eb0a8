"""
Collection scoping for the query gateway.

Every collection the agent can name is registered here with the predicate
the gateway must enforce. A collection missing from the registry cannot be
queried at all. Credential stores (provider settings, email and AI provider
keys) are not registered.
"""

from enum import Enum
from typing import Any, Dict, Optional

from ..constants import (
    COLLECTION_API_USAGE,
    COLLECTION_AUDIT_LOGS,
    COLLECTION_CONVERSATIONS,
    COLLECTION_EMAIL_CAMPAIGNS,
    COLLECTION_LEAD_LISTS,
    COLLECTION_LEAD_SEARCHES,
    COLLECTION_LEADS,
    COLLECTION_ORGANIZATIONS,
    COLLECTION_TEMP_FILES,
    COLLECTION_USERS,
)
from ..errors import UnknownCollection


class Scope(str, Enum):
    """How a collection is partitioned."""

    SYSTEM = "system"
    """Not tenant-partitioned; queried without an injected predicate."""
    TENANT = "tenant"
    """Every document carries ``tenant_id``."""
    TENANT_USER = "tenant_user"
    """Every document carries ``tenant_id`` and ``user_id``."""


COLLECTION_SCOPES: Dict[str, Scope] = {
    COLLECTION_USERS: Scope.SYSTEM,
    COLLECTION_ORGANIZATIONS: Scope.SYSTEM,
    COLLECTION_LEADS: Scope.TENANT,
    COLLECTION_LEAD_LISTS: Scope.TENANT,
    COLLECTION_LEAD_SEARCHES: Scope.TENANT,
    COLLECTION_EMAIL_CAMPAIGNS: Scope.TENANT,
    COLLECTION_TEMP_FILES: Scope.TENANT,
    COLLECTION_CONVERSATIONS: Scope.TENANT_USER,
    COLLECTION_API_USAGE: Scope.TENANT_USER,
    COLLECTION_AUDIT_LOGS: Scope.TENANT_USER,
}


def scope_for(collection: str) -> Scope:
    try:
        return COLLECTION_SCOPES[collection]
    except KeyError:
        raise UnknownCollection(f"Unknown collection: {collection}") from None


def scope_predicate(scope: Scope, tenant_id: str, user_id: Optional[str]) -> Dict[str, Any]:
    """The equality predicate that confines a query to the caller's data."""
    if scope is Scope.SYSTEM:
        return {}
    predicate: Dict[str, Any] = {"tenant_id": tenant_id}
    if scope is Scope.TENANT_USER:
        predicate["user_id"] = user_id
    return predicate


def apply_scope(
    filter: Optional[Dict[str, Any]],
    scope: Scope,
    tenant_id: str,
    user_id: Optional[str],
) -> Dict[str, Any]:
    """Merge the scope predicate into ``filter``. Scope keys always win."""
    return {**(filter or {}), **scope_predicate(scope, tenant_id, user_id)}
