"""FastAPI backend for Fliza."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fliza import __version__
from fliza.chat import ChatService
from fliza.chat.router import router as chat_router
from fliza.config import Settings, configure_logging, get_settings
from fliza.errors import FlizaError
from fliza.gateway import AgentGatewayClient
from fliza.http import create_async_client
from fliza.persistence import MemoryMessageStore, MessageStore, PersistenceAdapter
from fliza.sessions import SessionStore, create_session_store
from fliza.vision import DesignClient, VisionClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Middleware and handlers
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with timing and a short request id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())[:8]
        method = request.method
        path = request.url.path

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"[{request_id}] {method} {path} - 500 ERROR in {duration_ms:.1f}ms - {e}",
                extra={
                    "request_id": request_id,
                    "status_code": 500,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code
        log_level = logging.WARNING if status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            f"[{request_id}] {method} {path} - {status_code} in {duration_ms:.1f}ms",
            extra={
                "request_id": request_id,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response


async def fliza_exception_handler(request: Request, exc: FlizaError) -> JSONResponse:
    """Turn any FlizaError into ``{"error", "details"}`` with status 500."""
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=500, content=exc.to_dict())


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


async def _open_message_stores(
    settings: Settings, stack: AsyncExitStack
) -> tuple[MessageStore, MessageStore]:
    """Return (reader, writer) stores.

    The writer uses the service-role key when one is configured, since
    assistant replies are stored on the user's behalf.
    """
    if not settings.has_persistence:
        logger.warning("Message store not configured, using in-process storage")
        store = MemoryMessageStore()
        return store, store

    from fliza.persistence.supabase_store import SupabaseMessageStore

    reader = await SupabaseMessageStore.from_settings(settings)
    stack.push_async_callback(reader.aclose)
    if not settings.supabase_service_role_key:
        return reader, reader

    writer = await SupabaseMessageStore.from_settings(settings, privileged=True)
    stack.push_async_callback(writer.aclose)
    return reader, writer


def create_app(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    session_store: SessionStore | None = None,
    message_store: MessageStore | None = None,
    vision_client: VisionClient | None = None,
    design_client: DesignClient | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Every collaborator can be injected; whatever is omitted is built from
    settings when the app starts.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(
            level=settings.log_level,
            format=settings.log_format,
            sanitize_logs=settings.sanitize_logs,
        )

        async with AsyncExitStack() as stack:
            client = http_client
            if client is None:
                client = create_async_client(settings.agent_timeout_seconds)
                stack.push_async_callback(client.aclose)

            sessions = session_store or create_session_store(settings)
            stack.push_async_callback(sessions.aclose)

            if message_store is not None:
                reader = writer = message_store
            else:
                reader, writer = await _open_message_stores(settings, stack)

            gateway = AgentGatewayClient.from_settings(
                settings, session_store=sessions, http_client=client
            )

            app.state.settings = settings
            app.state.gateway = gateway
            app.state.persistence = PersistenceAdapter(reader, settings.guest_prefix)
            app.state.chat_service = ChatService(
                gateway, PersistenceAdapter(writer, settings.guest_prefix)
            )
            app.state.vision_client = vision_client
            app.state.design_client = design_client
            if settings.has_vision:
                app.state.vision_client = vision_client or VisionClient.from_settings(settings)
                app.state.design_client = design_client or DesignClient.from_settings(settings)
            else:
                logger.warning("Gemini API key not set, vision and design are disabled")

            app.state.started_at = datetime.now(timezone.utc)
            logger.info("Fliza API ready (agent: %s)", settings.eliza_url)
            yield
            logger.info("Shutting down Fliza API")

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.web_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(FlizaError, fliza_exception_handler)

    app.include_router(chat_router)

    @app.get("/health")
    async def health(request: Request) -> dict:
        state = request.app.state
        return {
            "status": "ok",
            "version": __version__,
            "persistence": bool(getattr(state, "persistence", None) and state.persistence.enabled),
            "vision": getattr(state, "vision_client", None) is not None,
        }

    return app
