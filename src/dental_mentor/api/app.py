"""
FastAPI Application Module

HTTP surface of the dental mentor chat service. A chat turn picks an agent
mode, rebuilds the conversation context from storage, starts the agent and
relays its output to the client as server-sent events while the turn is
persisted in the background of the stream.

Key Features:
- Server-sent-event chat streaming with citation enrichment
- Conversation CRUD and title generation
- Rate limiting, structured logging and Prometheus metrics
- CORS and OpenTelemetry support
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import generate_latest
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from ..agents.base import AgentRuntime
from ..agents.registry import AgentRegistry
from ..agents.retriever import KnowledgeBaseRetriever
from ..agents.runtime import GeminiAgentRuntime
from ..config import Settings, get_settings
from ..domain.models import ChatRequest, Conversation, new_conversation_id
from ..domain.modes import AgentMode
from ..log_config import configure_logging
from ..metrics import CHAT_TURNS, CUSTOM_REGISTRY, ERRORS, REQUESTS
from ..repositories.base import Repository
from ..repositories.memory import InMemoryRepository
from ..repositories.supabase import SupabaseRepository
from ..services.classifier import select_mode
from ..services.history import HistoryLoader
from ..services.llm import LLMService
from ..services.stream import SSE_HEADERS, StreamAssembler, Turn
from ..services.titles import NotEnoughMessages, TitleGenerator
from .auth import AuthUser, SupabaseAuth
from .rate_limiter import RateLimiter, enforce_rate_limit

logger = get_logger()


class ConversationCreate(BaseModel):
    title: Optional[str] = None


class ConversationRename(BaseModel):
    title: Optional[str] = None


@lru_cache()
def get_repository() -> Repository:
    """Returns the conversation storage instance"""
    settings = get_settings()
    if settings.supabase_enabled:
        return SupabaseRepository(
            settings.supabase_url,
            settings.supabase_service_role_key or settings.supabase_anon_key,
            timeout=settings.storage_timeout,
        )
    logger.warning("supabase_not_configured", backend="memory")
    return InMemoryRepository()


@lru_cache()
def get_llm_service() -> LLMService:
    """Returns the language model service"""
    settings = get_settings()
    return LLMService(settings.gemini_api_key, settings.embedding_model)


@lru_cache()
def get_agent_runtime() -> AgentRuntime:
    """Returns the agent runtime shared by all chat turns"""
    settings = get_settings()
    llm = get_llm_service()
    retriever = KnowledgeBaseRetriever(
        get_repository(),
        llm,
        threshold=settings.retrieval_match_threshold,
        count=settings.retrieval_match_count,
    )
    return GeminiAgentRuntime(AgentRegistry(settings), llm, retriever, settings.max_tool_rounds)


@lru_cache()
def get_title_generator() -> TitleGenerator:
    return TitleGenerator(get_llm_service(), get_settings().title_model)


@lru_cache()
def get_authenticator() -> SupabaseAuth:
    settings = get_settings()
    return SupabaseAuth(settings.supabase_url, settings.supabase_anon_key)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Returns the rate limiting service"""
    settings = get_settings()
    return RateLimiter(rate_limit=settings.rate_limit, time_window=settings.rate_limit_window)


async def get_current_user(request: Request, authenticator: SupabaseAuth = Depends(get_authenticator)) -> AuthUser:
    """Resolves the calling user or fails with 401"""
    return await authenticator.authenticate(request)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles app startup/shutdown and resource management"""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    rate_limiter = get_rate_limiter()
    await rate_limiter.start()
    logger.info("application_startup_complete")

    yield

    await rate_limiter.stop()
    if get_agent_runtime.cache_info().currsize:
        await get_agent_runtime().close()
    if get_repository.cache_info().currsize:
        await get_repository().close()
    if get_authenticator.cache_info().currsize:
        await get_authenticator().close()
    logger.info("application_shutdown_complete")


app = FastAPI(
    title="Dental Mentor Chat API",
    description="Streaming chat API for dental school admissions mentoring",
    version="0.1.0",
    lifespan=lifespan,
)

# Enable cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Conversation-Id"],
)

# Set up request tracing
FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Tracks requests and enforces rate limits"""
    logger.info("request_started", method=request.method, path=request.url.path)
    limited = await enforce_rate_limit(request, get_rate_limiter())
    if limited is not None:
        return limited
    try:
        response = await call_next(request)
    except Exception as e:
        ERRORS.labels(path=request.url.path).inc()
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    REQUESTS.labels(path=path).inc()
    if response.status_code >= 500:
        ERRORS.labels(path=path).inc()
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.post("/api/chat")
async def chat(
    body: ChatRequest,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
    runtime: AgentRuntime = Depends(get_agent_runtime),
    settings: Settings = Depends(get_settings),
):
    """
    Runs one chat turn and streams the agent's answer as server-sent events.
    The conversation id is echoed in the X-Conversation-Id header.
    """
    conversation_id = body.conversation_id or new_conversation_id()
    if body.conversation_id:
        try:
            existing = await repository.get_conversation(conversation_id)
        except Exception as e:
            logger.error("conversation_lookup_failed", conversation_id=conversation_id, error=str(e))
            return JSONResponse(status_code=500, content={"error": "Failed to generate response", "details": str(e)})
        # Unknown ids are created lazily; ids owned by someone else are hidden
        if existing is not None and existing.user_id != user.id:
            logger.warning("conversation_owner_mismatch", conversation_id=conversation_id, user_id=user.id)
            raise HTTPException(status_code=404, detail="Conversation not found")

    mode = AgentMode.resolve(select_mode(body.agent_mode, body.messages))
    CHAT_TURNS.labels(mode=mode.value).inc()
    logger.info(
        "chat_turn_started",
        conversation_id=conversation_id,
        user_id=user.id,
        mode=mode.value,
        explicit_mode=body.agent_mode,
        messages=len(body.messages),
    )

    messages = await HistoryLoader(repository).load(conversation_id, mode, body.messages)
    turn = Turn(user_id=user.id, conversation_id=conversation_id, mode=mode, new_messages=body.messages)

    run = None
    try:
        run = await runtime.invoke(mode, messages, user.id, conversation_id)
        assembler = StreamAssembler(
            repository,
            run,
            turn,
            sources_patch_enabled=settings.sources_patch_enabled,
            sources_patch_delay=settings.sources_patch_delay,
        )
        await assembler.start()
    except Exception as e:
        logger.error("chat_generation_failed", conversation_id=conversation_id, mode=mode.value, error=str(e))
        if run is not None:
            await run.aclose()
        return JSONResponse(status_code=500, content={"error": "Failed to generate response", "details": str(e)})

    return StreamingResponse(
        assembler.events(),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Conversation-Id": conversation_id},
    )


@app.get("/api/conversations")
async def list_conversations(
    limit: int = 100,
    offset: int = 0,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    """Gets the user's conversations, most recently updated first"""
    try:
        conversations = await repository.list_conversations(user.id, limit=limit, offset=offset)
    except Exception as e:
        logger.error("list_conversations_error", user_id=user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch conversations")
    return {
        "conversations": [
            c.model_dump(mode="json", include={"id", "title", "updated_at"}) for c in conversations
        ]
    }


@app.post("/api/conversations", status_code=201)
async def create_conversation(
    body: ConversationCreate,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """Starts a new conversation thread"""
    conversation = Conversation(user_id=user.id, resource_id=settings.supabase_resource_id, title=body.title)
    try:
        conversation = await repository.create_conversation(conversation)
    except Exception as e:
        logger.error("create_conversation_error", user_id=user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to create conversation")
    logger.info("conversation_created", conversation_id=conversation.id)
    return {"conversation": conversation.model_dump(mode="json")}


@app.get("/api/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    """Retrieves a conversation and its messages"""
    try:
        conversation = await repository.get_conversation(conversation_id, user.id)
        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found")
        messages = await repository.list_messages(conversation_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("get_conversation_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="An error occurred")
    return {
        "conversation": conversation.model_dump(mode="json"),
        "messages": [m.model_dump(mode="json") for m in messages],
    }


@app.patch("/api/conversations/{conversation_id}")
async def rename_conversation(
    conversation_id: str,
    body: ConversationRename,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    """Renames a conversation"""
    title = (body.title or "").strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")
    try:
        conversation = await repository.rename_conversation(conversation_id, user.id, title)
    except Exception as e:
        logger.error("rename_conversation_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update conversation")
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"conversation": conversation.model_dump(mode="json")}


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
):
    """Deletes a conversation together with its messages"""
    try:
        await repository.delete_conversation(conversation_id, user.id)
    except Exception as e:
        logger.error("delete_conversation_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to delete conversation")
    return {"success": True}


@app.post("/api/conversations/{conversation_id}/generate-title")
async def generate_title(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    repository: Repository = Depends(get_repository),
    titles: TitleGenerator = Depends(get_title_generator),
):
    """Names a conversation after its first user messages"""
    try:
        conversation = await repository.get_conversation(conversation_id, user.id)
    except Exception as e:
        logger.error("generate_title_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    try:
        messages = await repository.list_user_messages(conversation_id, limit=3)
        title = await titles.generate(messages)
    except NotEnoughMessages:
        raise HTTPException(status_code=400, detail="Not enough messages")
    except Exception as e:
        logger.error("generate_title_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if not title:
        raise HTTPException(status_code=500, detail="Failed to update title")
    try:
        conversation = await repository.rename_conversation(conversation_id, user.id, title)
    except Exception as e:
        logger.error("title_update_error", conversation_id=conversation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to update title")
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"title": title}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")
