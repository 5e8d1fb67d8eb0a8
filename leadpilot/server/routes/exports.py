"""Signed export download route."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from ...errors import ExportExpired, ExportNotFound
from ..app import require_app

router = APIRouter()


@router.get("/exports/{file_id}")
async def download_export(file_id: str, expires: int, signature: str):
    app = require_app()
    try:
        doc = await app.fetch_export(file_id, expires, signature)
    except ExportNotFound as e:
        raise HTTPException(404, str(e))
    except ExportExpired as e:
        raise HTTPException(410, str(e))
    return Response(
        content=doc["content"],
        media_type=doc.get("content_type", "text/csv"),
        headers={"Content-Disposition": f'attachment; filename="{doc["filename"]}"'},
    )
