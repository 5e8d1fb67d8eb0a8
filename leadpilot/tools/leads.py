"""
Provider-backed lead tools: search, single lookup, save and bulk enrichment.
"""

import dataclasses
import logging
from typing import Any, Dict, List

from ..constants import MAX_ENRICH_BATCH, PROVIDER_ROCKETREACH
from ..errors import IntegrationDisabled, LeadPilotError
from ..provider import NormalizedLead, normalize_lead
from .inputs import (
    BulkEnrichInput,
    LeadInput,
    LookupProfileInput,
    SaveLeadsInput,
    SearchLeadsInput,
)
from .models import ToolContext, ToolDefinition, ToolServices, error_result

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Lead search is not set up for this organization. "
    "An administrator needs to add a RocketReach API key in settings."
)


def _provider_failure(e: LeadPilotError) -> Dict[str, Any]:
    if isinstance(e, IntegrationDisabled):
        return error_result(e, NOT_CONFIGURED_MESSAGE)
    return error_result(e, "The lead provider could not complete the request. Try again shortly.")


def _lead_from_input(lead: LeadInput) -> NormalizedLead:
    return NormalizedLead(
        id=lead.id,
        full_name=lead.full_name,
        first_name=lead.first_name,
        last_name=lead.last_name,
        title=lead.title,
        company=lead.company,
        location=lead.location,
        linkedin_url=lead.linkedin_url,
        email=lead.email,
        phone=lead.phone,
        raw=lead.model_dump(exclude_none=True),
    )


async def search_leads(args: SearchLeadsInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    criteria = args.model_dump(exclude={"limit"}, exclude_none=True)
    try:
        data = await services.provider.search_people(
            context.tenant_id,
            page_size=args.limit,
            user_id=context.user_id,
            **criteria,
        )
    except LeadPilotError as e:
        return _provider_failure(e)

    profiles = data.get("profiles") if isinstance(data.get("profiles"), list) else []
    leads = [normalize_lead(p) for p in profiles[: args.limit]]

    try:
        await services.leads.record_search(context.tenant_id, context.user_id, criteria, len(leads))
    except Exception as e:
        logger.warning(f"Failed to record lead search for tenant={context.tenant_id}: {e}")

    total = (data.get("pagination") or {}).get("total", len(leads))
    return {
        "success": True,
        "source": PROVIDER_ROCKETREACH,
        "total": total,
        "returned": len(leads),
        "leads": [lead.to_dict() for lead in leads],
    }


async def lookup_profile(args: LookupProfileInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    try:
        profile = await services.provider.lookup_profile(
            context.tenant_id, args.person_id, user_id=context.user_id
        )
    except LeadPilotError as e:
        return _provider_failure(e)
    return {
        "success": True,
        "source": PROVIDER_ROCKETREACH,
        "lead": normalize_lead(profile).to_dict(),
    }


async def save_leads(args: SaveLeadsInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    saved: List[str] = []
    failed: List[Dict[str, str]] = []
    for lead in args.leads:
        try:
            await services.leads.upsert(context.tenant_id, _lead_from_input(lead), tags=args.tags)
            saved.append(lead.id)
        except Exception as e:
            logger.warning(f"Failed to save lead {lead.id} for tenant={context.tenant_id}: {e}")
            failed.append({"person_id": lead.id, "error": str(e)})

    total = len(args.leads)
    message = f"Saved {len(saved)} of {total} lead(s)"
    if failed:
        message += f", {len(failed)} failed"
    return {
        "success": not failed or bool(saved),
        "saved": len(saved),
        "failed": len(failed),
        "total": total,
        "errors": failed or None,
        "message": message,
    }


async def bulk_enrich_leads(args: BulkEnrichInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    attempted = args.lead_ids[:MAX_ENRICH_BATCH]
    not_attempted = args.lead_ids[MAX_ENRICH_BATCH:]
    enriched: List[Dict[str, Any]] = []
    errors: List[Dict[str, str]] = []

    for person_id in attempted:
        try:
            profile = await services.provider.lookup_profile(
                context.tenant_id, person_id, user_id=context.user_id
            )
            lead = dataclasses.replace(normalize_lead(profile), id=person_id)
            await services.leads.upsert(context.tenant_id, lead)
            enriched.append(lead.to_dict())
        except IntegrationDisabled as e:
            return _provider_failure(e)
        except Exception as e:
            logger.warning(f"Enrichment failed for {person_id} (tenant={context.tenant_id}): {e}")
            errors.append({"person_id": person_id, "error": str(e)})

    message = f"Enriched {len(enriched)} of {len(attempted)} lead(s)"
    if errors:
        message += f" ({len(errors)} failed)"
    if not_attempted:
        message += f"; {len(not_attempted)} not attempted (max {MAX_ENRICH_BATCH} per call)"
    return {
        "success": True,
        "attempted": len(attempted),
        "enriched": len(enriched),
        "failed": len(errors),
        "total": len(args.lead_ids),
        "leads": enriched,
        "errors": errors or None,
        "not_attempted": not_attempted,
        "message": message,
    }


LEAD_TOOLS = [
    ToolDefinition(
        name="search_leads",
        description=(
            "Search RocketReach for leads. Provide filters like company, title, "
            "location, domain, or name to fetch live contacts."
        ),
        input_model=SearchLeadsInput,
        executor=search_leads,
        category="provider",
    ),
    ToolDefinition(
        name="lookup_profile",
        description="Fetch a specific RocketReach profile by person ID for richer contact info.",
        input_model=LookupProfileInput,
        executor=lookup_profile,
        category="provider",
    ),
    ToolDefinition(
        name="save_leads",
        description=(
            "Save leads to the organization's lead database. Saving the same person "
            "again updates the existing record."
        ),
        input_model=SaveLeadsInput,
        executor=save_leads,
        category="persistence",
    ),
    ToolDefinition(
        name="bulk_enrich_leads",
        description=(
            "Enrich up to 25 leads at once with emails and phones, saving the results. "
            "IDs beyond the first 25 are reported as not attempted."
        ),
        input_model=BulkEnrichInput,
        executor=bulk_enrich_leads,
        category="provider",
    ),
]
