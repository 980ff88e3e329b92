"""
City Bridge API: FastAPI endpoints for the external agent.

Exposes the bridge mailboxes over HTTP:
- Action queue (/act, /next)
- Observation slot (/observe)
- Chat log (/messages)
- Advice inbox (/advice)
- Token streaming (/stream)

Every endpoint answers with a JSON object carrying ``ok``; failures add
``error: {code, message}``. A missing shared secret disables the bridge.
"""

import asyncio
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError, field_validator

from city_bridge.bridge.state import BridgeState
from city_bridge.logging_config import configure_logging
from city_bridge.models.bridge import MessageType
from city_bridge.models.config import BridgeConfig
from city_bridge.models.intent import ActionBatch
from city_bridge.models.observation import Observation
from city_bridge.models.world import WireModel
from city_bridge.simulation.loop import SimulationLoop

logger = logging.getLogger("city_bridge.api")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class BridgeError(Exception):
    """An error reported to the caller as ``{ok: false, error}``."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def _error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": {"code": code, "message": message}},
    )


def _token_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    if expected is None or provided is None:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


# --- Request Models ---

class ObservePublishRequest(BaseModel):
    observation: Observation


class PostMessageRequest(BaseModel):
    type: MessageType
    content: str = Field(min_length=1)


class PostAdviceRequest(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Content required")
        return value


class StreamChunkRequest(WireModel):
    stream_id: Optional[str] = None
    content: str
    done: bool = False


# --- Application Factory ---

def create_app(
    bridge: Optional[BridgeState] = None,
    config: Optional[BridgeConfig] = None,
    simulation: Optional[SimulationLoop] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    When a simulation loop is given it runs in the background for the
    lifetime of the app; the bridge is closed on shutdown either way.
    """
    cfg = config or BridgeConfig.from_env()
    br = bridge or BridgeState(message_history_limit=cfg.message_history_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        task = None
        if simulation is not None:
            task = asyncio.create_task(simulation.run_async(stop_event))
            logger.info("[API] Simulation loop started")
        try:
            yield
        finally:
            stop_event.set()
            if task is not None:
                await task
            br.close()

    app = FastAPI(
        title="City Bridge API",
        description="Agent bridge for a live city simulation",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in tests and hosts
    app.state.bridge = br
    app.state.config = cfg
    app.state.simulation = simulation

    if not cfg.enabled:
        logger.warning("[API] AGENT_BRIDGE_TOKEN not set, agent bridge disabled")

    @app.exception_handler(BridgeError)
    async def _bridge_error_handler(request: Request, exc: BridgeError):
        return _error_response(exc.code, exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error_response("BAD_REQUEST", message, 400)

    @app.exception_handler(Exception)
    async def _internal_error_handler(request: Request, exc: Exception):
        logger.exception("[API] Unhandled error on %s", request.url.path)
        return _error_response("INTERNAL_ERROR", str(exc), 500)

    # --- Access checks ---

    def require_enabled() -> None:
        if not cfg.enabled:
            raise BridgeError("DISABLED", "Agent bridge disabled", 404)

    def require_token(x_agent_token: Optional[str] = Header(default=None)) -> None:
        require_enabled()
        if not _token_matches(cfg.token, x_agent_token):
            raise BridgeError("UNAUTHORIZED", "Invalid token", 401)

    def soft_token(x_agent_token: Optional[str] = Header(default=None)) -> None:
        # Streaming stays open when no secret is configured
        if cfg.enabled and not _token_matches(cfg.token, x_agent_token):
            raise BridgeError("UNAUTHORIZED", "Invalid token", 401)

    router = APIRouter(prefix=cfg.route_prefix)

    # === ACTION QUEUE ===

    @router.post("/act", dependencies=[Depends(require_token)])
    def enqueue_actions(batch: ActionBatch):
        """Queue a batch of intents for the simulation loop."""
        queued = br.enqueue_batch(batch)
        return {"ok": True, "queued": queued}

    @router.delete("/act", dependencies=[Depends(require_token)])
    def clear_actions():
        """Drop every pending batch."""
        cleared = br.queue_length
        br.clear_queue()
        return {"ok": True, "cleared": cleared}

    @router.get("/next", dependencies=[Depends(require_token)])
    def next_actions():
        """Take the oldest pending batch, if any."""
        batch = br.dequeue_batch()
        if batch is None:
            return {"ok": True}
        return {"ok": True, "actions": batch.model_dump(mode="json", by_alias=True, exclude_none=True)}

    # === OBSERVATION ===

    @router.get("/observe", dependencies=[Depends(require_token)])
    def get_observation():
        """Latest published observation."""
        observation, _ = br.get_latest_observation()
        if observation is None:
            raise BridgeError("NO_OBSERVATION", "No observation published yet", 404)
        return {"ok": True, "observation": observation.to_wire()}

    @router.post("/observe", dependencies=[Depends(require_token)])
    def publish_observation(req: ObservePublishRequest):
        """Replace the latest observation."""
        br.set_latest_observation(req.observation)
        return {"ok": True, "observation": req.observation.to_wire()}

    # === CHAT LOG ===

    @router.get("/messages", dependencies=[Depends(require_enabled)])
    def get_messages(since: Optional[str] = None):
        """Chat messages after ``since``, or the whole log."""
        messages = br.get_messages_since(since)
        return {"ok": True, "messages": [m.model_dump(mode="json", by_alias=True) for m in messages]}

    @router.post("/messages", dependencies=[Depends(require_token)])
    def post_message(req: PostMessageRequest):
        """Append a message from the agent to the chat log."""
        message = br.add_message(req.type, req.content)
        return {"ok": True, "message": message.model_dump(mode="json", by_alias=True)}

    # === ADVICE ===

    @router.get("/advice", dependencies=[Depends(require_token)])
    def read_advice():
        """Unread advice. Reading marks it read."""
        advice = br.pop_unread_advice()
        return {"ok": True, "advice": [a.model_dump(mode="json", by_alias=True) for a in advice]}

    @router.post("/advice", dependencies=[Depends(require_enabled)])
    def post_advice(req: PostAdviceRequest):
        """Leave advice for the agent."""
        advice = br.add_advice(req.content)
        return {"ok": True, "advice": advice.model_dump(mode="json", by_alias=True)}

    # === STREAMING ===

    @router.get("/stream", dependencies=[Depends(soft_token)])
    async def stream_events(request: Request):
        """Server-sent events for the open token stream."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=cfg.stream_queue_size)

        def offer(frame: str) -> None:
            try:
                queue.put_nowait(frame)
            except asyncio.QueueFull:
                logger.debug("[STREAM] Subscriber queue full, frame dropped")

        def sink(frame: str) -> None:
            loop.call_soon_threadsafe(offer, frame)

        client_id = br.stream.register(sink)

        async def event_generator():
            try:
                yield f": connected as {client_id}\n\n"
                while True:
                    try:
                        frame = await asyncio.wait_for(
                            queue.get(), timeout=cfg.stream_keepalive_seconds
                        )
                        yield frame
                    except asyncio.TimeoutError:
                        if await request.is_disconnected():
                            break
                        yield ": keep-alive\n\n"
            finally:
                br.stream.unregister(client_id)

        return StreamingResponse(
            event_generator(), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @router.post("/stream", dependencies=[Depends(soft_token)])
    def post_stream_chunk(payload: dict = Body(...)):
        """Push one chunk to every connected subscriber."""
        try:
            req = StreamChunkRequest.model_validate(payload)
        except ValidationError:
            raise BridgeError("INVALID_REQUEST", "content must be a string", 400)

        if br.stream.subscriber_count == 0:
            return {"ok": True, "streamId": req.stream_id or "no_clients", "chunkId": "dropped"}

        stream_id, chunk_id = br.stream.push(req.content, req.done, req.stream_id)
        return {"ok": True, "streamId": stream_id, "chunkId": chunk_id}

    # === STATUS ===

    @router.get("/status", dependencies=[Depends(require_token)])
    def bridge_status():
        """Mailbox depths and stream state."""
        _, observed_at = br.get_latest_observation()
        stream_id, _ = br.stream.current_state()
        return {
            "ok": True,
            "queued": br.queue_length,
            "subscribers": br.stream.subscriber_count,
            "streamId": stream_id,
            "lastObservationAt": observed_at,
            "simulation": simulation.status if simulation is not None else None,
        }

    app.include_router(router)
    return app


def build_default_app() -> FastAPI:
    """Application configured from the environment, for ``uvicorn``."""
    config = BridgeConfig.from_env()
    configure_logging(config.log_level)
    return create_app(config=config)


# Default application instance
app = build_default_app()
