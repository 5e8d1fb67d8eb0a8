"""
Data tools: ad-hoc queries and analytics over the tenant's own records.

Every read goes through the QueryGateway with the caller's ids from the
ToolContext, so none of these tools can see another tenant's data.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from ..constants import (
    COLLECTION_API_USAGE,
    COLLECTION_CONVERSATIONS,
    COLLECTION_LEAD_SEARCHES,
    COLLECTION_LEADS,
)
from ..errors import GatewayError
from ..gateway import ScopedQuery
from .inputs import (
    AdvancedLeadSearchInput,
    LeadStatisticsInput,
    QueryDatabaseInput,
    RecentActivityInput,
    SearchConversationsInput,
)
from .models import ToolContext, ToolDefinition, ToolServices, error_result

logger = logging.getLogger(__name__)

GROUP_LIMIT = 20
LAST_MESSAGE_PREVIEW = 100
_NON_EMPTY = {"$exists": True, "$ne": []}


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _missing_or_empty(field: str) -> Dict[str, Any]:
    return {"$or": [{field: {"$exists": False}}, {field: []}]}


def _contains_any(values: List[str]) -> Dict[str, Any]:
    return {"$in": [re.compile(re.escape(v), re.IGNORECASE) for v in values]}


async def _run(services: ToolServices, context: ToolContext, **query) -> Any:
    return await services.gateway.execute(context.tenant_id, context.user_id, ScopedQuery(**query))


async def query_database(args: QueryDatabaseInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    try:
        result = await services.gateway.execute(
            context.tenant_id,
            context.user_id,
            ScopedQuery(**args.model_dump()),
        )
    except GatewayError as e:
        return error_result(e, f"Failed to query {args.collection}: {e}")

    if isinstance(result, list):
        count = len(result)
    elif isinstance(result, int):
        count = result
    else:
        count = 0 if result is None else 1
    return {
        "success": True,
        "collection": args.collection,
        "operation": args.operation,
        "result_count": count,
        "data": result,
        "message": f"Found {count} result(s) from {args.collection}",
    }


async def lead_statistics(args: LeadStatisticsInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    base: Dict[str, Any] = {}
    if args.date_range and args.date_range.to_filter():
        base["created_at"] = args.date_range.to_filter()

    total = await _run(services, context, collection=COLLECTION_LEADS, operation="count", filter=base)
    with_email = await _run(
        services, context, collection=COLLECTION_LEADS, operation="count",
        filter={**base, "emails": _NON_EMPTY},
    )
    with_phone = await _run(
        services, context, collection=COLLECTION_LEADS, operation="count",
        filter={**base, "phones": _NON_EMPTY},
    )
    by_source = await _run(
        services, context, collection=COLLECTION_LEADS, operation="aggregate",
        pipeline=[
            {"$match": base},
            {"$group": {"_id": "$source", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ],
    )

    grouped = None
    if args.group_by:
        grouped = await _run(
            services, context, collection=COLLECTION_LEADS, operation="aggregate",
            pipeline=[
                {"$match": base},
                {"$group": {"_id": f"${args.group_by}", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
                {"$limit": GROUP_LIMIT},
            ],
        )

    email_coverage = _percent(with_email, total)
    phone_coverage = _percent(with_phone, total)
    return {
        "success": True,
        "statistics": {
            "total": total,
            "with_email": with_email,
            "with_phone": with_phone,
            "email_coverage": email_coverage,
            "phone_coverage": phone_coverage,
            "by_source": by_source,
            "grouped": grouped,
        },
        "message": (
            f"Total leads: {total}; with email: {with_email} ({email_coverage}%); "
            f"with phone: {with_phone} ({phone_coverage}%)"
        ),
    }


async def recent_activity(args: RecentActivityInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    since = datetime.now(timezone.utc) - timedelta(hours=args.hours)
    wanted = set(args.activity_types or ("leads", "searches", "conversations", "api_calls"))
    activities: Dict[str, Any] = {}

    if "leads" in wanted:
        activities["new_leads"] = await _run(
            services, context, collection=COLLECTION_LEADS, operation="count",
            filter={"created_at": {"$gte": since}},
        )
    if "searches" in wanted:
        activities["searches"] = await _run(
            services, context, collection=COLLECTION_LEAD_SEARCHES, operation="count",
            filter={"created_at": {"$gte": since}},
        )
    if "conversations" in wanted:
        activities["conversations"] = await _run(
            services, context, collection=COLLECTION_CONVERSATIONS, operation="count",
            filter={"created_at": {"$gte": since}, "deleted_at": {"$exists": False}},
        )
    if "api_calls" in wanted:
        activities["api_calls"] = await _run(
            services, context, collection=COLLECTION_API_USAGE, operation="aggregate",
            pipeline=[
                {"$match": {"timestamp": {"$gte": since}}},
                {"$group": {"_id": "$status", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
            ],
        )

    lines = [f"- {key}: {value}" for key, value in activities.items()]
    return {
        "success": True,
        "time_range": f"Last {args.hours} hours",
        "activities": activities,
        "message": f"Recent activity ({args.hours}h):\n" + "\n".join(lines),
    }


def build_lead_filter(args: AdvancedLeadSearchInput) -> Dict[str, Any]:
    """Translate the advanced search criteria into a store filter (scope not included)."""
    filter: Dict[str, Any] = {}
    clauses: List[Dict[str, Any]] = []

    if args.companies:
        filter["company"] = _contains_any(args.companies)
    if args.titles:
        filter["title"] = _contains_any(args.titles)
    if args.locations:
        filter["location"] = _contains_any(args.locations)
    if args.email_domains:
        domains = "|".join(re.escape(d.lstrip("@")) for d in args.email_domains)
        filter["emails"] = {"$regex": f"@({domains})$", "$options": "i"}

    if args.has_email is True:
        if "emails" in filter:
            clauses.append({"emails": _NON_EMPTY})
        else:
            filter["emails"] = dict(_NON_EMPTY)
    elif args.has_email is False:
        clauses.append(_missing_or_empty("emails"))

    if args.has_phone is True:
        filter["phones"] = dict(_NON_EMPTY)
    elif args.has_phone is False:
        clauses.append(_missing_or_empty("phones"))

    if args.tags:
        filter["tags"] = {"$in": list(args.tags)}
    if args.date_added and args.date_added.to_filter():
        filter["created_at"] = args.date_added.to_filter()

    if clauses:
        filter["$and"] = clauses
    return filter


async def advanced_lead_search(
    args: AdvancedLeadSearchInput, context: ToolContext, services: ToolServices
) -> Dict[str, Any]:
    leads = await _run(
        services, context,
        collection=COLLECTION_LEADS,
        operation="find",
        filter=build_lead_filter(args),
        projection={"raw": 0},
        sort={"created_at": -1},
        limit=args.limit,
    )
    return {
        "success": True,
        "leads": leads,
        "count": len(leads),
        "filters": args.model_dump(exclude_none=True, mode="json"),
        "message": f"Found {len(leads)} lead(s) matching your advanced search criteria",
    }


async def search_conversations(
    args: SearchConversationsInput, context: ToolContext, services: ToolServices
) -> Dict[str, Any]:
    filter: Dict[str, Any] = {"deleted_at": {"$exists": False}}
    if args.query:
        pattern = re.escape(args.query)
        filter["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"messages.content": {"$regex": pattern, "$options": "i"}},
        ]

    results = await _run(
        services, context,
        collection=COLLECTION_CONVERSATIONS,
        operation="find",
        filter=filter,
        sort={"created_at": -1 if args.sort_by == "recent" else 1},
        limit=args.limit,
    )

    conversations = []
    for conv in results:
        messages = conv.get("messages") or []
        last = (messages[-1].get("content") or "")[:LAST_MESSAGE_PREVIEW] if messages else None
        conversations.append({
            "id": conv.get("id"),
            "title": conv.get("title"),
            "message_count": len(messages),
            "created_at": conv.get("created_at"),
            "last_message": last,
        })

    suffix = f' matching "{args.query}"' if args.query else ""
    return {
        "success": True,
        "conversations": conversations,
        "total": len(conversations),
        "message": f"Found {len(conversations)} conversation(s){suffix}",
    }


DATA_TOOLS = [
    ToolDefinition(
        name="query_database",
        description=(
            "Query a collection with MongoDB syntax (find, findOne, count, aggregate, distinct). "
            "Results are automatically limited to your organization. Useful collections: "
            "leads, lead_lists, lead_searches, email_campaigns, conversations, api_usage, audit_logs."
        ),
        input_model=QueryDatabaseInput,
        executor=query_database,
        category="data",
    ),
    ToolDefinition(
        name="lead_statistics",
        description=(
            "Statistics about saved leads: total count, email/phone coverage, counts by source, "
            "and optionally the top companies, locations, titles or sources."
        ),
        input_model=LeadStatisticsInput,
        executor=lead_statistics,
        category="analytics",
    ),
    ToolDefinition(
        name="recent_activity",
        description="Recent activity: new leads, searches, conversations and API calls in the last N hours.",
        input_model=RecentActivityInput,
        executor=recent_activity,
        category="analytics",
    ),
    ToolDefinition(
        name="advanced_lead_search",
        description=(
            "Search saved leads with multi-value filters: companies, titles, locations, "
            "email domains, email/phone presence, tags and date added."
        ),
        input_model=AdvancedLeadSearchInput,
        executor=advanced_lead_search,
        category="analytics",
    ),
    ToolDefinition(
        name="search_conversations",
        description="Search your past conversations by title or message text.",
        input_model=SearchConversationsInput,
        executor=search_conversations,
        category="analytics",
    ),
]
