"""Pydantic request/response models for the LeadPilot API."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    id: Optional[str] = None
    role: str
    content: str = ""
    parts: Optional[List[dict]] = None


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)
    conversation_id: Optional[str] = None


class ChatResponse(BaseModel):
    conversation_id: str
    response: str
    status: str
    abort_reason: Optional[str] = None
    steps: int = 0
    tools_used: List[str] = []
    total_tokens: int = 0


class ProviderSettingsRequest(BaseModel):
    api_key: Optional[str] = None
    enabled: bool = True
    base_url: Optional[str] = None
    max_retries: Optional[int] = Field(default=None, ge=0, le=10)
    base_delay_ms: Optional[int] = Field(default=None, ge=0)
    max_delay_ms: Optional[int] = Field(default=None, ge=0)
    concurrency: Optional[int] = Field(default=None, ge=1, le=10)
    daily_limit: Optional[int] = Field(default=None, ge=0)
