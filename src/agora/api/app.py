"""
Core API backend for Agora.

It exposes the following endpoints:
- **GET /health**          - liveness probe for health checks.
- **POST /webhook-agent**  - public agent webhook: {"message": "...", "api_key": "...",
  "conversation_history": [...]}
- **POST /telegram-agent** - internal agent call made by the Telegram bot pipeline.

Every response is JSON.  Caller and authorization problems are answered with 4xx and an ``error``
field; gateway failures, an exhausted iteration cap and unexpected errors with 500.
"""

import logging
from datetime import (
    datetime,
    timezone,
)
from functools import lru_cache
from typing import Any

import httpx
from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agora.agent.agent_loop import (
    AgentRun,
    build_messages,
    build_system_prompt,
)
from agora.agent.model_gateway import (
    BaseModelGateway,
    load_gateway,
)
from agora.api.models import (
    TelegramAgentRequest,
    TelegramAgentResponse,
    WebhookAgentMetadata,
    WebhookAgentRequest,
    WebhookAgentResponse,
)
from agora.common import (
    AnsiColors,
    colored_print,
)
from agora.config import settings
from agora.core.errors import (
    AgoraError,
    MaxIterationsError,
)
from agora.core.schema import (
    AgentResult,
    AgentToolFlags,
)
from agora.memory.memory_store import (
    ChatSessionRecord,
    CommunityStore,
    SupabaseStore,
)
from agora.memory.vector_memory import (
    Embedder,
    load_embedder,
)
from agora.telegram import TelegramNotifier
from agora.tools import ToolContext

logger = logging.getLogger(__name__)

WEBHOOK_WORKFLOW = "webhook_agent"
TELEGRAM_SOURCE = "telegram_agent"
EMPTY_REPLY_FALLBACK = "I apologize, but I could not generate a response."
MAX_ITERATIONS_REPLY = "I tried to help but needed too many steps. Can you rephrase your question?"

app = FastAPI(title="Agora API", version="0.1.0", description="Community AI agent API")

# Edge-function style CORS: any origin may call the webhook
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


# ---------------------------------------------------------------------------
# Dependencies (overridable in tests via app.dependency_overrides)
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_http_client() -> httpx.Client:
    """Shared outbound HTTP client for tools and notifications."""
    return httpx.Client(timeout=settings.HTTP_TIMEOUT)


@lru_cache(maxsize=1)
def _supabase_store() -> SupabaseStore:
    return SupabaseStore(client=get_http_client())


def get_store() -> CommunityStore:
    return _supabase_store()


@lru_cache(maxsize=1)
def get_embedder() -> Embedder:
    return load_embedder(_supabase_store())


@lru_cache(maxsize=1)
def get_gateway() -> BaseModelGateway:
    return load_gateway()


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(HTTPException)
async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400, content={"error": "Invalid request body", "message": str(exc.errors())}
    )


def _internal_error(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500, content={"error": "Internal server error", "message": str(exc)}
    )


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def log_usage(
    store: CommunityStore,
    community_id: str,
    result: AgentResult,
    started_at: datetime,
    user_id: str | None = None,
) -> None:
    """Record one ``ai_chat_sessions`` row.  Failures are logged and ignored."""
    record = ChatSessionRecord(
        community_id=community_id,
        user_id=user_id,
        chat_type=WEBHOOK_WORKFLOW,
        model_used=result.model,
        tokens_used=result.tokens_used,
        session_start_at=started_at,
        session_end_at=datetime.now(timezone.utc),
        metadata={
            "source": "webhook_agent_api",
            "tool_calls": [call.model_dump() for call in result.tool_calls],
        },
    )
    try:
        store.log_chat_session(record)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Failed to log chat session for %s: %s", community_id, exc)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/", summary="API root")
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": "Welcome to the Agora API! Use /docs for API documentation."}


@app.post("/webhook-agent", response_model=WebhookAgentResponse, summary="Webhook agent")
def webhook_agent(
    req: WebhookAgentRequest,
    store: CommunityStore = Depends(get_store),
    gateway: BaseModelGateway = Depends(get_gateway),
    embedder: Embedder = Depends(get_embedder),
    http: httpx.Client = Depends(get_http_client),
) -> Any:
    """Authenticate the community by API key and run its agent on one message."""
    if not req.message:
        raise HTTPException(status_code=400, detail='Missing "message" field')
    if not req.api_key:
        raise HTTPException(status_code=401, detail='Missing "api_key" field')

    started_at = datetime.now(timezone.utc)
    try:
        logger.info("🔐 Validating API key...")
        community = store.find_community_by_api_key(req.api_key)
        if community is None:
            raise HTTPException(status_code=401, detail="Invalid API key")

        workflow = store.get_workflow(community.id, WEBHOOK_WORKFLOW)
        if workflow is None or not workflow.is_enabled:
            raise HTTPException(
                status_code=403, detail="Webhook agent not enabled for this community"
            )
        logger.info("✅ Valid API key for community: %s", community.name)

        flags = AgentToolFlags.from_config(workflow.configuration.get("agent_tools"))
        context = ToolContext(
            community_id=community.id,
            store=store,
            http=http,
            embedder=embedder,
            source=WEBHOOK_WORKFLOW,
            tavily_api_key=settings.TAVILY_API_KEY,
        )
        messages = build_messages(
            build_system_prompt(community), req.conversation_history, req.message
        )
        result = AgentRun(gateway, context, flags).run(messages)
    except HTTPException:
        raise
    except AgoraError as exc:
        logger.error("❌ Webhook agent error: %s", exc)
        return _internal_error(exc)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("❌ Webhook agent error")
        return _internal_error(exc)

    log_usage(store, community.id, result, started_at)

    return WebhookAgentResponse(
        response=result.response,
        tool_calls=result.tool_calls,
        metadata=WebhookAgentMetadata(
            community=community.name,
            model=result.model,
            tokens_used=result.tokens_used,
            tools_used=len(result.tool_calls),
        ),
    )


@app.post("/telegram-agent", summary="Telegram agent")
def telegram_agent(
    req: TelegramAgentRequest,
    store: CommunityStore = Depends(get_store),
    gateway: BaseModelGateway = Depends(get_gateway),
    embedder: Embedder = Depends(get_embedder),
    http: httpx.Client = Depends(get_http_client),
) -> JSONResponse:
    """Run the agent for a Telegram message, announcing each tool in the chat."""
    logger.info(
        "🤖 Agent request: %r (image=%s, history=%d, community=%s)",
        req.user_message[:50],
        bool(req.image_url),
        len(req.conversation_history),
        req.community_id,
    )

    context = ToolContext(
        community_id=req.community_id,
        user_id=req.user_id,
        store=store,
        http=http,
        embedder=embedder,
        source=TELEGRAM_SOURCE,
        tavily_api_key=settings.TAVILY_API_KEY,
    )
    notifier = TelegramNotifier(req.bot_token, req.telegram_chat_id, http)
    run = AgentRun(
        gateway, context, AgentToolFlags.from_config(req.enabled_tools), on_tool_call=notifier
    )
    messages = build_messages(
        req.system_prompt, req.conversation_history, req.user_message, req.image_url
    )

    try:
        result = run.run(messages)
    except MaxIterationsError as exc:
        body = TelegramAgentResponse(
            response=MAX_ITERATIONS_REPLY,
            tools_used=run.status_messages,
            iterations=exc.iterations,
            max_reached=True,
        )
        return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))
    except AgoraError as exc:
        logger.error("❌ Agent error: %s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("❌ Agent error")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    logger.info(
        "✅ Agent completed: iterations=%d tools=%d length=%d",
        result.iterations,
        len(result.status_messages),
        len(result.response),
    )
    body = TelegramAgentResponse(
        response=result.response or EMPTY_REPLY_FALLBACK,
        tools_used=result.status_messages,
        iterations=result.iterations,
        usage={"total_tokens": result.tokens_used},
    )
    return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in dev docker-compose).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Agora API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("SUPABASE_SERVICE_ROLE_KEY is not set; store requests will be rejected")

    colored_print(f"🔮 Agora API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(
        f"Visit http://localhost:{port}/docs for API documentation.",
        AnsiColors.BLUE,
    )
    uvicorn.run(
        "agora.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m agora.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
