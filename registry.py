import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from logging_config import get_logger
from schemas.signaling import DecodeFailed, SetInfo, decode_payload

logger = get_logger(__name__)

RESOURCE_KINDS = ("screen", "video", "audio")


@dataclass
class Resources:
    screen: bool = False
    video: bool = True
    audio: bool = False


@dataclass
class Connection:
    id: str
    nickname: Optional[str] = None
    strong_id: Optional[str] = None
    mode: Optional[str] = None
    resources: Resources = field(default_factory=Resources)
    room: Optional[str] = None
    issued: int = 0


class ConnectionRegistry:
    """Per-connection identity and state, keyed by connection id.

    Every mutator is a no-op for an unknown id: deferred events may arrive
    after the connection has gone away. ``lock`` is the exclusive-access
    domain shared with the room directory.
    """

    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        self.lock = threading.RLock()

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self.connections

    def __len__(self) -> int:
        return len(self.connections)

    def register(self, connection_id: str, issued: Optional[int] = None) -> Connection:
        with self.lock:
            connection = Connection(
                id=connection_id,
                issued=issued if issued is not None else int(time.time() * 1000),
            )
            self.connections[connection_id] = connection
            logger.debug(f"Registered connection {connection_id} (connections: {len(self.connections)})")
            return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def set_nickname(self, connection_id: str, value: Any) -> bool:
        with self.lock:
            connection = self.connections.get(connection_id)
            if connection is None or not value or not isinstance(value, str):
                return False
            if value == connection.nickname:
                return False
            connection.nickname = value
            logger.info(f"Client Id: {connection_id} sets name to: {value}")
            return True

    def set_info(self, connection_id: str, info: Any) -> bool:
        """Merge the present ``nickname``/``mode``/``strongId`` fields; malformed input is ignored."""
        decoded = decode_payload(info)
        if isinstance(decoded, DecodeFailed):
            logger.debug(f"Ignoring malformed setinfo from {connection_id}: {decoded.reason}")
            return False
        if not decoded.value:
            return False
        try:
            parsed = SetInfo.model_validate(decoded.value)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed setinfo from {connection_id}: {e}")
            return False

        with self.lock:
            connection = self.connections.get(connection_id)
            if connection is None:
                return False
            if parsed.nickname:
                connection.nickname = parsed.nickname
            if parsed.mode:
                connection.mode = parsed.mode
            if parsed.strongId:
                connection.strong_id = parsed.strongId
            logger.info(f"Client Id: {connection_id} changed info")
            return True

    def set_resource(self, connection_id: str, kind: str, active: bool) -> bool:
        if kind not in RESOURCE_KINDS:
            raise ValueError(f"Unknown resource kind: {kind}")
        with self.lock:
            connection = self.connections.get(connection_id)
            if connection is None:
                return False
            setattr(connection.resources, kind, bool(active))
            return True

    def lookup_by_strong_id(self, member_ids: Iterable[str], strong_id: str) -> Optional[str]:
        """First member (in the given order) whose strong identifier equals ``strong_id``."""
        if not strong_id:
            return None
        with self.lock:
            for member_id in member_ids:
                connection = self.connections.get(member_id)
                if connection is not None and connection.strong_id == strong_id:
                    return member_id
        return None

    def unregister(self, connection_id: str) -> Optional[Connection]:
        with self.lock:
            connection = self.connections.pop(connection_id, None)
            if connection is not None:
                logger.debug(f"Unregistered connection {connection_id} (connections: {len(self.connections)})")
            return connection
