"""
Main FastAPI application for the call relay service.

The platform gateway posts channel events here; peer shards post
procedures to /internal/invoke.
"""

from fastapi import FastAPI, HTTPException, Request, Depends
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
import uuid

from callrelay.config import settings
from callrelay.utils.logging import get_logger, request_id_var
from callrelay.models.database import init_database, close_database
from callrelay.call.errors import CallError
from callrelay.call.events import CallRequest, InboundMessage, Interaction, MessageDeleted, TypingStarted
from callrelay.call.manager import CallManager
from callrelay.call.services import CallServices
from callrelay.call.state import SYSTEM
from callrelay.shard import ShardInvocationError

logger = get_logger(__name__)


class InvokeRequest(BaseModel):
    procedure: str
    context: Dict[str, Any] = Field(default_factory=dict)


def create_app(services: Optional[CallServices] = None, rebuild: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built collaborators; when omitted they are created from
            settings and the database is initialized on startup
        rebuild: Reload active calls from the store on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting call relay service...", shard_id=settings.shard_id)

        owns_services = services is None
        if owns_services:
            await init_database()
            app.state.services = CallServices.create(settings)
        else:
            app.state.services = services

        await app.state.services.initialize()
        app.state.call_manager = CallManager(app.state.services)
        await app.state.call_manager.start(rebuild=rebuild)

        logger.info("Call relay service started successfully")

        yield

        logger.info("Shutting down call relay service...")
        await app.state.call_manager.stop()
        if owns_services:
            await app.state.services.close()
            await close_database()
        logger.info("Call relay service shut down")

    app = FastAPI(
        title="Call Relay Service",
        description="Cross-shard call session manager for a chat-platform telephone bot",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to context for logging."""
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response

    @app.exception_handler(CallError)
    async def call_error_handler(request: Request, exc: CallError):
        logger.info("Call operation rejected", error=exc.key, call_id=exc.call_id, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def get_manager(request: Request) -> CallManager:
        return request.app.state.call_manager

    def require_internal_key(request: Request):
        expected = settings.internal_api_key
        if expected and request.headers.get(settings.api_key_header) != expected:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.get("/health")
    async def health_check(manager: CallManager = Depends(get_manager)):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "active_sessions": len(manager.active_sessions),
            "shard_id": manager.coordinator.shard_id,
            "shard_count": manager.coordinator.shard_count,
            "environment": settings.environment.value,
        }

    @app.get("/calls")
    async def get_active_calls(manager: CallManager = Depends(get_manager)):
        """Get information about active calls."""
        sessions = await manager.get_active_sessions()
        return {"total": len(sessions), "sessions": sessions}

    @app.get("/calls/{call_id}")
    async def get_call_info(call_id: str, manager: CallManager = Depends(get_manager)):
        """Get information about a specific call, live or from the store."""
        session = await manager.get_session(call_id)
        if not session:
            record = await manager.repository.get_call_record(call_id)
            if record is None:
                raise HTTPException(status_code=404, detail="Call not found")
            record["stored_messages"] = await manager.count_messages(call_id)
            return record

        info = session.get_metrics()
        info["stored_messages"] = await manager.count_messages(call_id)
        return info

    @app.post("/calls", status_code=201)
    async def start_call(request: CallRequest, manager: CallManager = Depends(get_manager)):
        """Place a call from one number to another."""
        session = await manager.start_call(request)
        return session.get_metrics()

    @app.post("/calls/{call_id}/end")
    async def end_call(call_id: str, manager: CallManager = Depends(get_manager)):
        """End a specific call."""
        success = await manager.end_session(call_id, ended_by=SYSTEM)
        if not success:
            raise HTTPException(status_code=404, detail="Call not found")
        return {"message": "Call ended successfully"}

    # Platform events

    @app.post("/events/message", status_code=202)
    async def message_created(message: InboundMessage, manager: CallManager = Depends(get_manager)):
        await manager.on_message(message)
        return {"received": True}

    @app.post("/events/message-update", status_code=202)
    async def message_updated(message: InboundMessage, manager: CallManager = Depends(get_manager)):
        await manager.on_message_update(message)
        return {"received": True}

    @app.post("/events/message-delete", status_code=202)
    async def message_deleted(event: MessageDeleted, manager: CallManager = Depends(get_manager)):
        await manager.on_message_delete(event)
        return {"received": True}

    @app.post("/events/typing", status_code=202)
    async def typing_started(event: TypingStarted, manager: CallManager = Depends(get_manager)):
        await manager.on_typing(event)
        return {"received": True}

    @app.post("/events/pickup")
    async def pickup(interaction: Interaction, manager: CallManager = Depends(get_manager)):
        session = await manager.on_pickup(interaction)
        return session.get_metrics()

    @app.post("/events/hangup")
    async def hangup(interaction: Interaction, manager: CallManager = Depends(get_manager)):
        session = await manager.on_hangup(interaction)
        return session.get_metrics()

    @app.post("/events/hold")
    async def hold(interaction: Interaction, manager: CallManager = Depends(get_manager)):
        session = await manager.on_hold(interaction)
        return session.get_metrics()

    # Peer shards

    @app.post("/internal/invoke", dependencies=[Depends(require_internal_key)])
    async def invoke(body: InvokeRequest, manager: CallManager = Depends(get_manager)):
        """Run a procedure on behalf of another shard."""
        try:
            result = await manager.coordinator.handle_invocation(body.procedure, body.context)
        except (ShardInvocationError, CallError, ValueError, KeyError) as e:
            logger.warning("Invocation failed", procedure=body.procedure, error=str(e))
            return {"ok": False, "error": str(e)}
        return {"ok": True, "result": result}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callrelay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
