"""CSV export of leads as a short-lived signed download."""

import csv
import io
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .inputs import ExportLeadsCsvInput
from .models import ToolContext, ToolDefinition, ToolServices

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["Name", "Title", "Company", "Email", "Phone", "LinkedIn", "Location"]
MAX_EXPORT_ROWS = 1000


def _first(values: Optional[List[str]]) -> str:
    return values[0] if values else ""


def _row_from_saved(doc: Dict[str, Any]) -> List[str]:
    name = doc.get("name") or " ".join(
        p for p in (doc.get("first_name"), doc.get("last_name")) if p
    )
    return [
        name or "",
        doc.get("title") or "",
        doc.get("company") or "",
        _first(doc.get("emails")),
        _first(doc.get("phones")),
        doc.get("linkedin") or "",
        doc.get("location") or "",
    ]


def render_csv(rows: List[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    writer.writerows(rows)
    return buffer.getvalue()


def _safe_filename(name: Optional[str]) -> str:
    if not name:
        return f"leads-{datetime.now(timezone.utc):%Y%m%d-%H%M%S}.csv"
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip(".-") or "leads"
    return cleaned if cleaned.lower().endswith(".csv") else f"{cleaned}.csv"


async def export_leads_csv(args: ExportLeadsCsvInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    if args.leads:
        rows = [
            [
                lead.full_name or " ".join(p for p in (lead.first_name, lead.last_name) if p),
                lead.title or "",
                lead.company or "",
                lead.email or "",
                lead.phone or "",
                lead.linkedin_url or "",
                lead.location or "",
            ]
            for lead in args.leads[:MAX_EXPORT_ROWS]
        ]
    else:
        saved = await services.leads.list(
            context.tenant_id, person_ids=args.person_ids, limit=MAX_EXPORT_ROWS
        )
        rows = [_row_from_saved(doc) for doc in saved]

    if not rows:
        return {"success": False, "error": "No leads to export", "error_type": "empty_export"}

    handle = await services.exports.create(
        context.tenant_id,
        context.user_id,
        _safe_filename(args.filename),
        render_csv(rows),
    )
    return {
        "success": True,
        "rows": len(rows),
        **handle.to_dict(),
        "message": f"Exported {len(rows)} lead(s) to {handle.filename}. Link expires {handle.expires_at:%Y-%m-%d %H:%M} UTC.",
    }


EXPORT_TOOLS = [
    ToolDefinition(
        name="export_leads_csv",
        description=(
            "Export leads to a CSV file and return a download link valid for 24 hours. "
            "Pass leads from a search, or omit them to export saved leads."
        ),
        input_model=ExportLeadsCsvInput,
        executor=export_leads_csv,
        category="export",
    ),
]
