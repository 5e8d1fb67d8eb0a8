"""
Typed tool inputs.

Each model validates one tool's arguments and doubles as the JSON schema
advertised to the model. Field names are snake_case; descriptions are
written for the model, not for developers.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_RESULTS, MAX_SEARCH_PAGE_SIZE


class DateRange(BaseModel):
    start: Optional[datetime] = Field(None, description="ISO-8601 start (inclusive)")
    end: Optional[datetime] = Field(None, description="ISO-8601 end (inclusive)")

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_filter(self) -> Dict[str, Any]:
        bounds: Dict[str, Any] = {}
        if self.start:
            bounds["$gte"] = self.start
        if self.end:
            bounds["$lte"] = self.end
        return bounds


class LeadInput(BaseModel):
    """A lead as returned by search_leads / lookup_profile."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Provider person id")
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# ── Provider ──


class SearchLeadsInput(BaseModel):
    company: Optional[str] = Field(None, description="Company or employer name to filter by")
    title: Optional[str] = Field(None, description="Job title or role keywords")
    location: Optional[str] = Field(None, description="City, region, or country")
    domain: Optional[str] = Field(None, description="Company email domain")
    name: Optional[str] = Field(None, description="Person's name if known")
    limit: int = Field(10, ge=1, le=MAX_SEARCH_PAGE_SIZE, description="Maximum number of leads to return")


class LookupProfileInput(BaseModel):
    person_id: str = Field(..., min_length=1, description="RocketReach person ID")


class SaveLeadsInput(BaseModel):
    leads: List[LeadInput] = Field(..., min_length=1, description="Leads to save")
    tags: Optional[List[str]] = Field(None, description="Tags to attach to every saved lead")


class BulkEnrichInput(BaseModel):
    lead_ids: List[str] = Field(
        ..., min_length=1,
        description="Person IDs to enrich. At most 25 are processed per call.",
    )


# ── Data ──


class QueryDatabaseInput(BaseModel):
    collection: str = Field(..., description="Collection name (e.g. 'leads', 'conversations', 'email_campaigns')")
    operation: str = Field(
        "find",
        description="One of: find, findOne, count, aggregate, distinct",
    )
    filter: Dict[str, Any] = Field(default_factory=dict, description="MongoDB filter, e.g. {\"company\": \"Acme\"}")
    projection: Optional[Dict[str, Any]] = Field(None, description="Fields to return, e.g. {\"name\": 1}")
    sort: Optional[Dict[str, int]] = Field(None, description="Sort order, e.g. {\"created_at\": -1}")
    limit: int = Field(DEFAULT_QUERY_LIMIT, description=f"Maximum results (capped at {MAX_QUERY_RESULTS})")
    skip: Optional[int] = Field(None, ge=0)
    field: Optional[str] = Field(None, description="Field name for distinct")
    pipeline: Optional[List[Dict[str, Any]]] = Field(None, description="Aggregation pipeline for aggregate")


class LeadStatisticsInput(BaseModel):
    group_by: Optional[Literal["company", "location", "title", "source"]] = Field(
        None, description="Also return the top groups by this field"
    )
    date_range: Optional[DateRange] = Field(None, description="Only count leads added in this range")


class RecentActivityInput(BaseModel):
    hours: int = Field(24, ge=1, le=24 * 90, description="Look back this many hours")
    activity_types: Optional[List[Literal["leads", "searches", "conversations", "api_calls"]]] = None


class AdvancedLeadSearchInput(BaseModel):
    companies: Optional[List[str]] = Field(None, description="Company names (partial match)")
    titles: Optional[List[str]] = Field(None, description="Job titles (partial match)")
    locations: Optional[List[str]] = Field(None, description="Locations (partial match)")
    email_domains: Optional[List[str]] = Field(None, description="Email domains, e.g. ['acme.com']")
    has_email: Optional[bool] = None
    has_phone: Optional[bool] = None
    tags: Optional[List[str]] = None
    date_added: Optional[DateRange] = None
    limit: int = Field(50, ge=1, le=MAX_QUERY_RESULTS)


class SearchConversationsInput(BaseModel):
    query: Optional[str] = Field(None, description="Text to search for in titles and messages")
    limit: int = Field(10, ge=1, le=50)
    sort_by: Literal["recent", "oldest"] = "recent"


# ── Export / messaging ──


class ExportLeadsCsvInput(BaseModel):
    leads: Optional[List[LeadInput]] = Field(
        None, description="Leads to export. Omit to export the organization's saved leads."
    )
    person_ids: Optional[List[str]] = Field(
        None, description="Restrict a saved-leads export to these person IDs"
    )
    filename: Optional[str] = Field(None, description="File name without path")


class CheckChannelConfigurationInput(BaseModel):
    pass


class SendEmailInput(BaseModel):
    to: List[str] = Field(..., min_length=1, max_length=50, description="Recipient email addresses")
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, description="Email body (HTML allowed)")
