from typing import Any, Callable, Dict, Optional

from backend import SignalingBackend
from credentials import issue_turn_credentials
from directory import RoomDirectory, RoomFull, RoomTaken
from logging_config import get_logger
from message_router import MessageRouter
from registry import ConnectionRegistry
from schemas.config import SignalingConfig

logger = get_logger(__name__)


class SignalingContext:
    """Shared state handed to every session: registry, directory, router, transport, config."""

    def __init__(self, config: SignalingConfig, transport: SignalingBackend, id_factory: Optional[Callable[[], str]] = None):
        self.config = config
        self.transport = transport
        self.registry = ConnectionRegistry()
        self.directory = RoomDirectory(
            self.registry, transport, max_clients=config.rooms.max_clients, id_factory=id_factory
        )
        self.router = MessageRouter(
            self.registry,
            self.directory,
            transport,
            codec_priority=config.codec_priority,
            max_average_bitrate=config.max_average_bitrate,
        )


class SignalingSession:
    """Event handler for one connection.

    ``dispatch`` looks the inbound event up in ``handlers`` and calls it with
    the payload and the client's ack id. Handlers that answer send
    ``[error, result]`` through ``acknowledge`` themselves.
    """

    def __init__(self, context: SignalingContext, connection_id: str, origin: Optional[str] = None):
        self.context = context
        self.connection_id = connection_id
        self.origin = origin
        self.handlers: Dict[str, Callable[[Any, Optional[int]], None]] = {
            "nickname": self.on_nickname,
            "setinfo": self.on_setinfo,
            "getroommembers": self.on_getroommembers,
            "message": self.on_message,
            "shareScreen": self.on_share_screen,
            "unshareScreen": self.on_unshare_screen,
            "join": self.on_join,
            "create": self.on_create,
            "leave": self.on_leave,
            "trace": self.on_trace,
        }

    @property
    def transport(self) -> SignalingBackend:
        return self.context.transport

    def connect(self) -> None:
        """Register the connection and send stun/turn servers and login details."""
        config = self.context.config
        connection = self.context.registry.register(self.connection_id)

        stunservers = [server.model_dump() for server in config.stunservers]
        turnservers = issue_turn_credentials(config.turnservers, self.origin, config.turnorigins)

        self.transport.send(self.connection_id, "stunservers", stunservers)
        self.transport.send(self.connection_id, "turnservers", turnservers)
        self.transport.send(self.connection_id, "loggedin", [self.connection_id, str(connection.issued)])
        logger.info(f"Client Id: {self.connection_id} Connected to signaling")

    def disconnect(self) -> None:
        self.context.directory.disconnect(self.connection_id)
        logger.info(f"Client Id: {self.connection_id} disconnected")

    def dispatch(self, event: str, data: Any = None, ack: Optional[int] = None) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"Client Id: {self.connection_id} sent unknown event '{event}'")
            return
        try:
            handler(data, ack)
        except Exception as e:
            logger.error(f"Error handling '{event}' from {self.connection_id}: {e}", exc_info=True)

    def acknowledge(self, ack: Optional[int], error: Optional[str], result: Any = None) -> None:
        if ack is not None:
            self.transport.send(self.connection_id, "ack", [error, result], ack=ack)

    def on_nickname(self, data: Any, ack: Optional[int] = None) -> None:
        self.context.registry.set_nickname(self.connection_id, data)

    def on_setinfo(self, data: Any, ack: Optional[int] = None) -> None:
        self.context.registry.set_info(self.connection_id, data)

    def on_getroommembers(self, data: Any = None, ack: Optional[int] = None) -> None:
        directory = self.context.directory
        with directory.lock:
            connection = self.context.registry.get(self.connection_id)
            result = directory.list_members(connection.room if connection else None)
            if result["clients"]:
                self.transport.send(self.connection_id, "roommembers", result)

    def on_message(self, data: Any, ack: Optional[int] = None) -> None:
        self.context.router.route(self.connection_id, data)

    def on_share_screen(self, data: Any = None, ack: Optional[int] = None) -> None:
        self.context.registry.set_resource(self.connection_id, "screen", True)

    def on_unshare_screen(self, data: Any = None, ack: Optional[int] = None) -> None:
        directory = self.context.directory
        with directory.lock:
            self.context.registry.set_resource(self.connection_id, "screen", False)
            directory.leave(self.connection_id, "screen")

    def on_join(self, data: Any, ack: Optional[int] = None) -> None:
        # the joiner gets the room description before memberjoined/roommembers
        try:
            self.context.directory.join(
                self.connection_id, data, on_described=lambda description: self.acknowledge(ack, None, description)
            )
        except RoomFull as e:
            self.acknowledge(ack, e.error_code)

    def on_create(self, data: Any = None, ack: Optional[int] = None) -> None:
        try:
            room_name = self.context.directory.create(self.connection_id, data)
        except (RoomFull, RoomTaken) as e:
            self.acknowledge(ack, e.error_code)
            return
        if room_name is not None:
            self.acknowledge(ack, None, room_name)

    def on_leave(self, data: Any = None, ack: Optional[int] = None) -> None:
        self.context.directory.leave(self.connection_id)

    def on_trace(self, data: Any, ack: Optional[int] = None) -> None:
        logger.info(f"trace {data}")
