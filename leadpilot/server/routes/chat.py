"""Chat, conversation, and health routes."""

from fastapi import APIRouter, Depends, HTTPException, Request

from ..app import caller_identity, require_app, verify_service_key
from ..models import ChatRequest, ChatResponse

router = APIRouter()


@router.post("/chat", response_model=ChatResponse, dependencies=[Depends(verify_service_key)])
async def chat(req: ChatRequest, request: Request):
    tenant_id, user_id = caller_identity(request)
    app = require_app()
    messages = [m.model_dump(exclude_none=True) for m in req.messages]
    result = await app.chat(
        tenant_id=tenant_id,
        user_id=user_id,
        messages=messages,
        conversation_id=req.conversation_id,
    )
    return ChatResponse(**result.to_dict())


@router.get("/conversations", dependencies=[Depends(verify_service_key)])
async def list_conversations(request: Request, limit: int = 50):
    tenant_id, user_id = caller_identity(request)
    app = require_app()
    conversations = await app.list_conversations(tenant_id, user_id, limit=min(max(limit, 1), 100))
    return [{k: v for k, v in c.items() if k != "_id"} for c in conversations]


@router.delete("/conversations/{conversation_id}", dependencies=[Depends(verify_service_key)])
async def delete_conversation(conversation_id: str, request: Request):
    _, user_id = caller_identity(request)
    app = require_app()
    if not await app.delete_conversation(conversation_id, user_id):
        raise HTTPException(404, "Conversation not found")
    return {"success": True}


@router.get("/health")
async def health():
    return {"status": "ok"}
