"""Provider settings and usage routes (internal)."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..app import caller_identity, require_app, verify_service_key
from ..models import ProviderSettingsRequest

router = APIRouter()


@router.put("/settings/provider", dependencies=[Depends(verify_service_key)])
async def save_provider_settings(req: ProviderSettingsRequest, request: Request):
    tenant_id, user_id = caller_identity(request)
    app = require_app()
    doc = await app.save_provider_settings(
        tenant_id, updated_by=user_id, **req.model_dump()
    )
    return {"success": True, "version": doc.get("version")}


@router.get("/usage", dependencies=[Depends(verify_service_key)])
async def usage(request: Request, days: int = 30, end: Optional[datetime] = None):
    tenant_id, _ = caller_identity(request)
    app = require_app()
    end = end or datetime.now(timezone.utc)
    start = end - timedelta(days=max(days, 1))
    return await app.usage_stats(tenant_id, start, end)
