import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, SHUTDOWN_DRAIN_SECONDS
from gateway import ConnectionGateway
from handlers import SignalingHandler
from registry import RoomRegistry
from relay import MessageRelay
from schemas.rooms import HealthResponse
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    yield
    # flush notifications queued by teardowns that ran while the server was stopping
    try:
        await asyncio.wait_for(application.state.gateway.drain(), timeout=SHUTDOWN_DRAIN_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Gave up flushing pending messages after {SHUTDOWN_DRAIN_SECONDS}s")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(rooms_router)


def init_state(application: FastAPI):
    """Build a fresh gateway/registry/relay set. The registry is never persisted."""
    gateway = ConnectionGateway()
    registry = RoomRegistry(gateway)
    relay = MessageRelay(gateway)
    application.state.gateway = gateway
    application.state.registry = registry
    application.state.relay = relay
    application.state.handler = SignalingHandler(gateway, registry, relay)


init_state(app)

logger.info("FastAPI application initialized")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        connections=app.state.gateway.connection_count(),
        rooms=len(app.state.registry),
    )


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Signaling socket. Frames are JSON objects of the form {"event": ..., "data": ...}."""
    handler: SignalingHandler = websocket.app.state.handler
    connection_id = await handler.open(websocket)

    try:
        message_count = 0
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                logger.debug(f"WebSocket disconnected normally for connection {connection_id}")
                break
            except (ValueError, KeyError) as e:
                # not JSON, or a binary frame
                logger.warning(f"Ignoring unreadable frame from connection {connection_id}: {e}")
                continue

            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            try:
                await handler.dispatch(connection_id, data)
            except Exception as e:
                logger.error(f"Error handling message from connection {connection_id}: {e}", exc_info=True)
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # the endpoint task may be cancelled on shutdown; room cleanup still has to run
        await asyncio.shield(handler.close(connection_id))
