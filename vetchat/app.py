"""FastAPI application: chat and admin HTTP endpoints.

Endpoints:

  POST  /api/chat/message               Send a message, get the assistant reply
  POST  /api/chat/init                  Start a session, get the greeting
  GET   /api/chat/status                Text generation / server status
  GET   /api/appointments               (admin) List appointments + stats
  GET   /api/appointments/stats         (admin) Stats only
  GET   /api/appointments/{id}          (admin) One appointment
  PATCH /api/appointments/{id}          (admin) Update status
  PATCH /api/appointments/{id}/status   (admin) Same, legacy path
  GET   /api/conversations              (admin) Recent conversations
  GET   /api/conversations/{sessionId}  One conversation
  GET   /health                         Health check

Every JSON response has the shape ``{"success": bool, "data"|"error": ...}``.
"""

from __future__ import annotations

# Load .env into os.environ early so SDK clients see their keys.
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, Optional

# Configure root logger early so all vetchat.* loggers have a handler
# when run via `uvicorn vetchat.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from vetchat import __version__
from vetchat.auth import require_admin_token
from vetchat.chat import ChatService
from vetchat.config import Settings, settings
from vetchat.errors import InvalidArgumentError, NotFoundError, VetChatError
from vetchat.generation import TextGenerator, create_generator
from vetchat.models import AppointmentStatus, ConversationContext
from vetchat.stores import AppointmentStore, ConversationStore, create_stores

log = logging.getLogger("vetchat.app")

_START_TIME = time.time()


# ── Request bodies ────────────────────────────────────────────────

class ChatMessageRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: Optional[str] = None
    message: Any = None
    context: Optional[ConversationContext] = None


class ChatInitRequest(BaseModel):
    context: Optional[ConversationContext] = None


class StatusUpdateRequest(BaseModel):
    status: Any = None


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


# ── Dependencies ──────────────────────────────────────────────────

def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_conversation_store(request: Request) -> ConversationStore:
    return request.app.state.conversations


def get_appointment_store(request: Request) -> AppointmentStore:
    return request.app.state.appointments


# ── Routers ───────────────────────────────────────────────────────

chat_router = APIRouter(prefix="/api/chat", tags=["chat"])
appointment_router = APIRouter(
    prefix="/api/appointments",
    tags=["appointments"],
    dependencies=[Depends(require_admin_token)],
)
conversation_router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@chat_router.post("/message")
async def send_message(
    body: ChatMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> dict[str, Any]:
    """Send a user message; the reply comes from the LLM or the booking flow."""
    if not isinstance(body.message, str) or not body.message.strip():
        raise InvalidArgumentError("Message is required")

    reply = await service.handle_message(
        body.message,
        session_id=body.session_id,
        context=body.context,
    )
    return _ok(reply.to_dict())


@chat_router.post("/init")
async def init_session(
    body: Optional[ChatInitRequest] = Body(default=None),
    service: ChatService = Depends(get_chat_service),
) -> dict[str, Any]:
    context = body.context if body else None
    session_id, greeting = await service.init_session(context)
    return _ok({"sessionId": session_id, "message": greeting})


@chat_router.get("/status")
async def chat_status(service: ChatService = Depends(get_chat_service)) -> dict[str, Any]:
    return _ok({"ai": service.generator.status(), "server": "running"})


@appointment_router.get("")
async def list_appointments(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    from_date: Optional[datetime] = Query(default=None, alias="fromDate"),
    store: AppointmentStore = Depends(get_appointment_store),
) -> dict[str, Any]:
    status_filter = None
    if status:
        try:
            status_filter = AppointmentStatus(status)
        except ValueError:
            raise InvalidArgumentError("Invalid status") from None

    appointments = await store.list_appointments(
        status=status_filter, from_date=from_date, limit=limit, skip=skip,
    )
    stats = await store.get_stats()
    return _ok({
        "appointments": [_dump(a) for a in appointments],
        "stats": _dump(stats),
        "pagination": {"limit": limit, "skip": skip, "count": len(appointments)},
    })


@appointment_router.get("/stats")
async def appointment_stats(
    store: AppointmentStore = Depends(get_appointment_store),
) -> dict[str, Any]:
    return _ok(_dump(await store.get_stats()))


@appointment_router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: str,
    store: AppointmentStore = Depends(get_appointment_store),
) -> dict[str, Any]:
    appointment = await store.get_appointment(appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment not found")
    return _ok(_dump(appointment))


@appointment_router.patch("/{appointment_id}")
@appointment_router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: str,
    body: StatusUpdateRequest,
    store: AppointmentStore = Depends(get_appointment_store),
) -> dict[str, Any]:
    """Set status to one of pending, confirmed, cancelled, completed."""
    if body.status not in AppointmentStatus.values():
        raise InvalidArgumentError("Invalid status")
    appointment = await store.update_appointment_status(appointment_id, body.status)
    return _ok(_dump(appointment))


@conversation_router.get("", dependencies=[Depends(require_admin_token)])
async def list_conversations(
    limit: int = Query(default=50, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict[str, Any]:
    conversations = await store.list_conversations(limit=limit, skip=skip)
    return _ok({
        "conversations": [_dump(c) for c in conversations],
        "pagination": {"limit": limit, "skip": skip, "count": len(conversations)},
    })


@conversation_router.get("/{session_id}")
async def get_conversation(
    session_id: str,
    store: ConversationStore = Depends(get_conversation_store),
) -> dict[str, Any]:
    """Fetch one conversation by its (unguessable) session id, e.g. to restore a widget."""
    conversation = await store.get(session_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return _ok(_dump(conversation))


# ── Error handlers ────────────────────────────────────────────────

async def _handle_vetchat_error(request: Request, exc: VetChatError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return _error(exc.status_code, exc.public_message)
    return _error(exc.status_code, str(exc) or exc.public_message)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    ]
    return _error(400, "Validation failed", details=details)


# ── App factory ───────────────────────────────────────────────────

def create_app(
    config: Settings | None = None,
    conversations: ConversationStore | None = None,
    appointments: AppointmentStore | None = None,
    generator: TextGenerator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``config``: stores from
    ``data_dir`` and the text generator from ``llm_provider``. They are
    constructed here, once, and shared by every request.
    """
    config = config or settings

    try:
        for warning in config.validate_startup():
            log.warning(warning)
    except ValueError as e:
        log.error("Configuration error: %s", e)

    if conversations is None or appointments is None:
        default_conversations, default_appointments = create_stores(config.data_dir)
        conversations = conversations or default_conversations
        appointments = appointments or default_appointments
    generator = generator or create_generator(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await generator.aclose()

    app = FastAPI(
        title="VetChat",
        description="Veterinary chat assistant with appointment booking",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.conversations = conversations
    app.state.appointments = appointments
    app.state.chat_service = ChatService(
        conversations,
        appointments,
        generator,
        booking_ttl=timedelta(minutes=config.booking_ttl_minutes),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VetChatError, _handle_vetchat_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check: confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    app.include_router(chat_router)
    app.include_router(appointment_router)
    app.include_router(conversation_router)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    # Fail fast on fatal misconfiguration when launched directly
    settings.validate_startup()

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "vetchat.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
