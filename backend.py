import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, TRANSPORT_BACKEND
from redis_keys import REDIS_CONN_CHANNEL, REDIS_CONN_PATTERN
from logging_config import get_logger

logger = get_logger(__name__)


def make_frame(event: str, data: Any = None, ack: Optional[int] = None) -> Dict[str, Any]:
    frame = {"event": event, "data": data}
    if ack is not None:
        frame["ack"] = ack
    return frame


class SignalingBackend:
    """Delivers outbound frames to connections.

    ``send`` never blocks: frames land in a per-connection queue that the
    WebSocket writer drains, so callers may emit while holding the room lock.
    """

    def __init__(self):
        self.queues: Dict[str, asyncio.Queue] = {}

    def attach(self, connection_id: str) -> asyncio.Queue:
        queue = asyncio.Queue()
        self.queues[connection_id] = queue
        logger.debug(f"Attached connection {connection_id} (local connections: {len(self.queues)})")
        return queue

    def detach(self, connection_id: str) -> None:
        self.queues.pop(connection_id, None)
        logger.debug(f"Detached connection {connection_id} (local connections: {len(self.queues)})")

    def send(self, connection_id: str, event: str, data: Any = None, ack: Optional[int] = None) -> None:
        raise NotImplementedError

    def broadcast(self, connection_ids: Iterable[str], event: str, data: Any = None) -> None:
        for connection_id in list(connection_ids):
            self.send(connection_id, event, data)

    def deliver_local(self, connection_id: str, frame: Dict[str, Any]) -> bool:
        queue = self.queues.get(connection_id)
        if queue is None:
            logger.debug(f"No local connection {connection_id} for '{frame.get('event')}' frame, dropping")
            return False
        queue.put_nowait(frame)
        return True

    async def close(self) -> None:
        pass


class MemoryBackend(SignalingBackend):
    def send(self, connection_id: str, event: str, data: Any = None, ack: Optional[int] = None) -> None:
        self.deliver_local(connection_id, make_frame(event, data, ack))


class RedisBackend(SignalingBackend):
    """Publishes frames on ``signal:conn:{id}`` and routes them back to local queues.

    ``send`` only enqueues; one publisher task drains the outbox in order, and
    one pattern subscription on ``signal:conn:*`` feeds every local connection.
    Both tasks start with the first ``attach``.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, pubsub_client: Optional[redis.Redis] = None):
        super().__init__()
        logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        self.redis_client = redis_client or redis.Redis(
            host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True
        )
        # Separate connection for pub/sub (required by Redis)
        self.pubsub_client = pubsub_client or redis.Redis(
            host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True
        )
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.subscribed = asyncio.Event()
        self.tasks: List[asyncio.Task] = []

    def get_channel_name(self, connection_id: str) -> str:
        return REDIS_CONN_CHANNEL.format(connection_id=connection_id)

    def attach(self, connection_id: str) -> asyncio.Queue:
        queue = super().attach(connection_id)
        if not self.tasks:
            self.tasks = [
                asyncio.create_task(self.listen_to_channels()),
                asyncio.create_task(self.publish_frames()),
            ]
        return queue

    def send(self, connection_id: str, event: str, data: Any = None, ack: Optional[int] = None) -> None:
        self.outbox.put_nowait((self.get_channel_name(connection_id), json.dumps(make_frame(event, data, ack))))

    async def publish_frames(self) -> None:
        # Wait for the pattern subscription so frames for local connections are not lost
        await self.subscribed.wait()
        while True:
            channel, payload = await self.outbox.get()
            try:
                subscribers = await self.redis_client.publish(channel, payload)
                logger.debug(f"Published frame to channel {channel}, {subscribers} subscribers")
            except Exception as e:
                logger.error(f"Error publishing to channel {channel}: {e}")

    async def listen_to_channels(self) -> None:
        """Forward frames published on any connection channel into the matching local queue."""
        prefix = self.get_channel_name("")
        try:
            await self.redis_client.ping()
            pubsub = self.pubsub_client.pubsub()
            await pubsub.psubscribe(REDIS_CONN_PATTERN)
        except Exception as e:
            logger.error(f"Failed to subscribe to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            return
        logger.info(f"Redis listener subscribed to {REDIS_CONN_PATTERN}")
        self.subscribed.set()
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None or message.get("type") != "pmessage":
                    continue
                connection_id = message["channel"][len(prefix):]
                try:
                    frame = json.loads(message["data"])
                except json.JSONDecodeError as e:
                    logger.error(f"Error parsing frame from Redis for connection {connection_id}: {e}")
                    continue
                self.deliver_local(connection_id, frame)
        except asyncio.CancelledError:
            logger.debug("Redis listener task cancelled")
            raise
        finally:
            await pubsub.aclose()

    async def close(self) -> None:
        for task in self.tasks:
            task.cancel()
        for task in self.tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks = []
        await self.redis_client.aclose()
        await self.pubsub_client.aclose()
        logger.info("Redis clients closed")


def create_backend(name: str = TRANSPORT_BACKEND) -> SignalingBackend:
    if name == "redis":
        return RedisBackend()
    if name == "memory":
        return MemoryBackend()
    raise ValueError(f"Unknown transport backend: {name}")
