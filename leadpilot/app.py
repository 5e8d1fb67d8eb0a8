"""
LeadPilot Application - Single entry point for the lead assistant core.

Usage:
    from leadpilot import LeadPilot

    app = LeadPilot("config.yaml")
    result = await app.chat(
        tenant_id="org_1",
        user_id="u_1",
        messages=[{"id": "m1", "role": "user", "content": "Find CTOs at Acme"}],
        conversation_id="c_1",
    )
    print(result.response)

Config (YAML, ``${VAR}`` is replaced from the environment):

    database:
      uri: ${MONGODB_URI}          # or "memory://" for a process-local store
      name: leadpilot
    llm:
      model: gpt-4o-mini
      api_key: ${OPENAI_API_KEY}
    security:
      secret_key: ${LEADPILOT_SECRET_KEY}     # Fernet key for stored API keys
      signing_key: ${LEADPILOT_SIGNING_KEY}   # HMAC key for export links
    orchestrator:
      max_steps: 10
    exports:
      ttl_hours: 24
      base_url: https://app.example.com
"""

import asyncio
import logging
import os
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_EXPORT_TTL_HOURS, DEFAULT_MAX_STEPS, PROVIDER_ROCKETREACH
from .protocols import DocumentStoreProtocol, LLMClientProtocol

logger = logging.getLogger(__name__)

MEMORY_URI = "memory://"


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "pyyaml is required for config file loading. "
            "Install with: pip install pyyaml"
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


@dataclass
class ChatResult:
    conversation_id: str
    response: str
    status: str
    abort_reason: Optional[str] = None
    steps: int = 0
    tools_used: List[str] = field(default_factory=list)
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "response": self.response,
            "status": self.status,
            "abort_reason": self.abort_reason,
            "steps": self.steps,
            "tools_used": self.tools_used,
            "total_tokens": self.total_tokens,
        }


class LeadPilot:
    """
    LeadPilot Application entry point.

    Sync constructor reads config; async initialization is deferred
    to the first call that needs services.

    Args:
        config: Path to YAML configuration file.
        store: Optional document store to use instead of ``database.uri``.
        llm_client: Optional LLM client to use instead of ``llm``.
        http_client: Optional httpx.AsyncClient shared by the provider and channels.
    """

    def __init__(
        self,
        config: str,
        store: Optional[DocumentStoreProtocol] = None,
        llm_client: Optional[LLMClientProtocol] = None,
        http_client: Any = None,
    ):
        self._config = _load_config(config)
        self._initialized = False
        self._init_lock = asyncio.Lock()

        db_cfg = self._config.get("database") or {}
        if store is None and not db_cfg.get("uri"):
            raise ValueError("Missing required config field: 'database.uri'")
        if llm_client is None and not (self._config.get("llm") or {}).get("model"):
            raise ValueError("Missing required config field: 'llm.model'")
        security = self._config.get("security") or {}
        for key in ("secret_key", "signing_key"):
            if not security.get(key):
                raise ValueError(f"Missing required config field: 'security.{key}'")

        self._store = store
        self._llm_client = llm_client
        self._http_client = http_client

        # Will be set during lazy initialization
        self._database = None
        self._cipher = None
        self._settings = None
        self._policy_cache = None
        self._ledger = None
        self._provider_client = None
        self._leads = None
        self._conversations = None
        self._exports = None
        self._gateway = None
        self._channels = None
        self._registry = None
        self._orchestrator = None

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            await self._initialize()
            self._initialized = True

    async def _initialize(self) -> None:
        cfg = self._config

        # 1. Document store
        if self._store is None:
            db_cfg = cfg["database"]
            if db_cfg["uri"] == MEMORY_URI:
                from .db import MemoryDocumentStore
                self._store = MemoryDocumentStore()
                logger.warning("Using in-memory document store; data is not persisted")
            else:
                from .db import Database
                self._database = Database(
                    uri=db_cfg["uri"],
                    name=db_cfg.get("name", "leadpilot"),
                    max_pool_size=db_cfg.get("max_pool_size", 10),
                )
                await self._database.initialize()
                self._store = self._database

        # 2. LLM client
        if self._llm_client is None:
            from .llm import LLMConfig, OpenAIClient
            llm_cfg = cfg["llm"]
            self._llm_client = OpenAIClient(config=LLMConfig(
                model=llm_cfg["model"],
                api_key=llm_cfg.get("api_key") or os.environ.get("OPENAI_API_KEY"),
                base_url=llm_cfg.get("base_url"),
                temperature=llm_cfg.get("temperature", 0.3),
            ))
            logger.info(f"LLM client: model={llm_cfg['model']}")

        # 3. Credentials, usage, provider
        from .credentials import PolicyCache, ProviderSettingsStore, SecretCipher
        from .provider import ProviderClient, RocketReachAPI
        from .usage import UsageLedger

        security = cfg["security"]
        self._cipher = SecretCipher(security["secret_key"])
        self._settings = ProviderSettingsStore(self._store, self._cipher)
        self._policy_cache = PolicyCache(self._settings)
        self._ledger = UsageLedger(self._store)
        self._provider_client = ProviderClient(
            self._policy_cache, self._ledger, http_client=self._http_client
        )

        # 4. Repositories and gateway
        from .channels import ChannelResolver
        from .conversations import ConversationStore
        from .exports import ExportStore
        from .gateway import QueryGateway
        from .leads import LeadRepository

        exports_cfg = cfg.get("exports") or {}
        self._leads = LeadRepository(self._store)
        self._conversations = ConversationStore(self._store)
        self._exports = ExportStore(
            self._store,
            signing_key=security["signing_key"],
            base_url=exports_cfg.get("base_url", ""),
            ttl_hours=exports_cfg.get("ttl_hours", DEFAULT_EXPORT_TTL_HOURS),
        )
        self._gateway = QueryGateway(self._store)
        self._channels = ChannelResolver(self._store, self._cipher, http_client=self._http_client)

        for repo in (self._settings, self._ledger, self._leads, self._conversations, self._exports):
            await repo.ensure_indexes()

        # 5. Tools and orchestrator
        from .orchestrator import AuditLogger, Orchestrator, TurnConfig
        from .tools import ToolServices, build_default_registry

        self._registry = build_default_registry(ToolServices(
            provider=RocketReachAPI(self._provider_client),
            leads=self._leads,
            gateway=self._gateway,
            exports=self._exports,
            channels=self._channels,
        ))
        orch_cfg = cfg.get("orchestrator") or {}
        self._orchestrator = Orchestrator(
            self._llm_client,
            self._registry,
            TurnConfig(max_steps=orch_cfg.get("max_steps", DEFAULT_MAX_STEPS)),
            event_sink=AuditLogger(),
        )
        logger.info(f"LeadPilot initialized with {len(self._registry.names())} tools")

    def config(self) -> dict:
        """Return a copy of the raw configuration dict."""
        return dict(self._config)

    async def shutdown(self) -> None:
        """Shut down the application, closing all connections."""
        if not self._initialized:
            return
        try:
            if self._provider_client:
                await self._provider_client.close()
            if self._database:
                await self._database.close()
        finally:
            self._initialized = False
            logger.info("LeadPilot shut down")

    # ── Chat ──

    async def chat(
        self,
        tenant_id: str,
        user_id: str,
        messages: List[Dict[str, Any]],
        conversation_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatResult:
        """
        Run one assistant turn and persist the resulting transcript.

        ``messages`` is the client's view of the conversation in stored
        format (``{id, role, content | parts}``); the persisted transcript
        takes precedence over it.
        """
        from .conversations import title_from_text
        from .orchestrator import message_text, reconcile, to_model_messages, to_stored_message
        from .tools import ToolContext
        from .usage import UsageRecord

        await self._ensure_initialized()
        if not messages:
            raise ValueError("No messages provided")

        started = time.monotonic()
        client_messages = [self._stamp(m) for m in messages]
        persisted = None
        if conversation_id:
            persisted = await self._conversations.get(conversation_id, user_id)
            if persisted is None and await self._conversations.exists(conversation_id, user_id):
                logger.info(f"Conversation {conversation_id} was deleted; starting a new one")
                conversation_id = None

        effective = reconcile(persisted, client_messages)
        context = ToolContext(tenant_id=tenant_id, user_id=user_id, conversation_id=conversation_id)
        result = await self._orchestrator.run_turn(context, to_model_messages(effective), cancel_event)

        transcript = effective + [to_stored_message(result.messages, result.response)]
        tools_used = sorted({record.name for record in result.tool_calls})
        metadata = dict((persisted or {}).get("metadata") or {})
        metadata["total_tokens"] = metadata.get("total_tokens", 0) + result.token_usage.total
        metadata["tools_used"] = sorted(set(metadata.get("tools_used", [])) | set(tools_used))

        if persisted:
            await self._conversations.save_messages(persisted["id"], user_id, transcript, metadata=metadata)
            conversation_id = persisted["id"]
        else:
            first_user = next((m for m in transcript if m.get("role") == "user"), None)
            doc = await self._conversations.create(
                tenant_id,
                user_id,
                conversation_id=conversation_id,
                title=title_from_text(message_text(first_user) if first_user else ""),
                messages=transcript,
                metadata=metadata,
            )
            conversation_id = doc["id"]

        await self._ledger.record(UsageRecord(
            tenant_id=tenant_id,
            user_id=user_id,
            provider="assistant",
            endpoint="chat",
            method="POST",
            units_consumed=result.token_usage.total,
            status="error" if result.status.value == "error" else "success",
            duration_ms=int((time.monotonic() - started) * 1000),
            error=result.error,
        ))

        return ChatResult(
            conversation_id=conversation_id,
            response=result.response,
            status=result.status.value,
            abort_reason=result.abort_reason.value if result.abort_reason else None,
            steps=result.steps,
            tools_used=tools_used,
            total_tokens=result.token_usage.total,
        )

    @staticmethod
    def _stamp(message: Dict[str, Any]) -> Dict[str, Any]:
        stamped = dict(message)
        stamped.setdefault("id", uuid.uuid4().hex)
        stamped.setdefault("content", "")
        if not stamped.get("parts"):
            stamped["parts"] = [{"type": "text", "text": stamped["content"]}]
        stamped.setdefault("created_at", datetime.now(timezone.utc))
        return stamped

    # ── Conversations ──

    async def list_conversations(self, tenant_id: str, user_id: str, limit: int = 50) -> List[dict]:
        await self._ensure_initialized()
        return await self._conversations.list(tenant_id, user_id, limit=limit)

    async def get_conversation(self, conversation_id: str, user_id: str) -> Optional[dict]:
        await self._ensure_initialized()
        return await self._conversations.get(conversation_id, user_id)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        await self._ensure_initialized()
        return await self._conversations.delete(conversation_id, user_id)

    # ── Provider settings / usage ──

    async def save_provider_settings(self, tenant_id: str, **settings) -> dict:
        """Upsert the tenant's provider settings and drop its cached policy."""
        await self._ensure_initialized()
        doc = await self._settings.save(tenant_id, PROVIDER_ROCKETREACH, **settings)
        self._policy_cache.invalidate(tenant_id)
        doc.pop("api_key_encrypted", None)
        return doc

    async def usage_stats(self, tenant_id: str, start: datetime, end: datetime) -> List[dict]:
        await self._ensure_initialized()
        return await self._ledger.stats(tenant_id, start, end)

    # ── Exports ──

    async def fetch_export(self, file_id: str, expires: int, signature: str) -> dict:
        await self._ensure_initialized()
        return await self._exports.fetch(file_id, expires, signature)
