"""
Normalization of provider person profiles.

Provider profiles are loosely shaped: the same fact may appear under several
keys (``current_title`` / ``title``), emails and phones may be lists of
objects or flat strings, and the identifier field varies by endpoint.
"""

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

SUMMARY_FALLBACK = "Lead details fetched from RocketReach"

_ID_KEYS = (
    "id",
    "profile_id",
    "rocketreach_id",
    "linkedin_url",
    "public_profile_url",
)


@dataclass
class NormalizedLead:
    id: str
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    linkedin_url: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    confidence: Optional[str] = None
    summary: str = SUMMARY_FALLBACK
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if not include_raw:
            data.pop("raw")
        return data


def _first(profile: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        value = profile.get(key)
        if value is not None:
            return value
    return None


def _first_entry(entries: Any, key: str) -> Optional[str]:
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get(key), str):
            return entry[key]
    return None


def normalize_lead(profile: Dict[str, Any]) -> NormalizedLead:
    """Map a raw provider profile to a NormalizedLead."""
    email = _first_entry(profile.get("emails"), "email") or profile.get("email")
    phone = _first_entry(profile.get("phones"), "number") or profile.get("phone")
    first_name = _first(profile, "first_name", "firstname")
    last_name = _first(profile, "last_name", "lastname")
    fallback_name = " ".join(p for p in (first_name, last_name) if p)
    name = profile.get("name") or fallback_name or None
    title = _first(profile, "current_title", "title")
    company = _first(profile, "current_employer", "company")
    location = _first(profile, "location", "geo", "city_state", "linkedin_city")

    lead_id = next((profile[k] for k in _ID_KEYS if profile.get(k)), None) or name
    if not lead_id:
        lead_id = str(uuid.uuid4())

    confidence = None
    emails = profile.get("emails")
    if isinstance(emails, list) and emails and isinstance(emails[0], dict):
        if emails[0].get("confidence"):
            confidence = str(emails[0]["confidence"])

    parts = []
    if title:
        parts.append(f"{title} @ {company or 'Unknown org'}")
    if location:
        parts.append(location)

    return NormalizedLead(
        id=str(lead_id),
        full_name=name,
        first_name=first_name,
        last_name=last_name,
        title=title,
        company=company,
        location=location,
        linkedin_url=_first(profile, "linkedin_url", "public_profile_url"),
        email=email,
        phone=phone,
        confidence=confidence,
        summary=" · ".join(parts) or SUMMARY_FALLBACK,
        raw=profile,
    )
