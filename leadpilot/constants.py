"""
Shared constants for LeadPilot.

Centralizes defaults that are needed by the provider client, the query
gateway and the tool layer to avoid circular imports and duplication.
"""

from typing import Tuple

# ── Provider ──

PROVIDER_ROCKETREACH = "rocketreach"
DEFAULT_PROVIDER_BASE_URL = "https://api.rocketreach.co"
PROVIDER_API_KEY_HEADER = "Api-Key"

DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 0.5
"""Seconds."""
DEFAULT_MAX_DELAY = 30.0
"""Seconds."""
DEFAULT_MAX_CONCURRENCY = 2
MAX_JITTER = 0.25
"""Upper bound (exclusive) of the random jitter added to every backoff, in seconds."""

TRANSIENT_STATUS_CODES: Tuple[int, ...] = (429, 503)

POLICY_CACHE_TTL = 60.0
"""Seconds a resolved provider policy stays cached."""

# ── Query gateway ──

MAX_QUERY_RESULTS = 200
DEFAULT_QUERY_LIMIT = 100

# ── Tools ──

MAX_SEARCH_PAGE_SIZE = 25
MAX_ENRICH_BATCH = 25
DEFAULT_EXPORT_TTL_HOURS = 24

# ── Orchestrator ──

DEFAULT_MAX_STEPS = 10
MIN_MAX_STEPS = 5

# ── Collections ──

COLLECTION_USERS = "users"
COLLECTION_ORGANIZATIONS = "organizations"
COLLECTION_PROVIDER_SETTINGS = "provider_settings"
COLLECTION_EMAIL_PROVIDERS = "email_providers"
COLLECTION_LEADS = "leads"
COLLECTION_LEAD_LISTS = "lead_lists"
COLLECTION_LEAD_SEARCHES = "lead_searches"
COLLECTION_EMAIL_CAMPAIGNS = "email_campaigns"
COLLECTION_TEMP_FILES = "temp_files"
COLLECTION_CONVERSATIONS = "conversations"
COLLECTION_API_USAGE = "api_usage"
COLLECTION_AUDIT_LOGS = "audit_logs"
