from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import create_backend
from config import load_config
from schemas.rooms import HealthResponse
from schemas.signaling import DecodeFailed, decode_payload
from session import SignalingContext, SignalingSession
import uuid
import json
import asyncio
from contextlib import asynccontextmanager
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.signaling.transport.close()
    logger.info("Signaling transport closed")


app = FastAPI(lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

# NOTE: rooms and connections live in this process only. The transport backend
# decides how outbound frames reach the socket (in-process queue or Redis pub/sub).
app.state.signaling = SignalingContext(load_config(), create_backend())

logger.info("FastAPI application initialized")


async def pump_frames(websocket: WebSocket, queue: asyncio.Queue, connection_id: str):
    """Drain the connection's outbound queue onto the socket, preserving order."""
    while True:
        frame = await queue.get()
        try:
            await websocket.send_text(json.dumps(frame))
        except Exception as e:
            logger.warning(f"Error sending '{frame.get('event')}' to connection {connection_id}: {e}")
            return


@app.get("/health", response_model=HealthResponse)
async def health():
    context: SignalingContext = app.state.signaling
    return HealthResponse(
        status="ok",
        connections=len(context.registry),
        rooms=len(context.directory.rooms),
    )


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Signaling socket.

    Inbound frames are ``{"event", "data", "ack"?}``; outbound frames are
    ``{"event", "data"}`` and acknowledgements ``{"event": "ack", "ack", "data": [error, result]}``.
    """
    context: SignalingContext = app.state.signaling
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    origin = websocket.headers.get("origin")
    logger.info(f"WebSocket connection accepted: {connection_id}, origin: {origin}")

    queue = context.transport.attach(connection_id)
    writer = asyncio.create_task(pump_frames(websocket, queue, connection_id))
    session = SignalingSession(context, connection_id, origin)

    try:
        session.connect()
        while True:
            data = await websocket.receive_text()
            decoded = decode_payload(data)
            if isinstance(decoded, DecodeFailed) or not isinstance(decoded.value, dict):
                logger.warning(f"Ignoring malformed frame from connection {connection_id}")
                continue
            frame = decoded.value
            event = frame.get("event")
            if not isinstance(event, str):
                logger.warning(f"Ignoring frame without event from connection {connection_id}")
                continue
            ack = frame.get("ack")
            session.dispatch(event, frame.get("data"), ack if isinstance(ack, int) else None)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        session.disconnect()
        context.transport.detach(connection_id)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")
