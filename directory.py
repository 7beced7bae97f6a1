import uuid
from typing import Callable, Dict, List, Optional

from backend import SignalingBackend
from logging_config import get_logger
from registry import Connection, ConnectionRegistry
from schemas.signaling import ClientDescription, MemberInfo, RemoveFeed, RoomDescription, RoomMembers

logger = get_logger(__name__)


class RoomFull(Exception):
    error_code = "full"


class RoomTaken(Exception):
    error_code = "taken"


def member_info(connection: Connection) -> dict:
    return MemberInfo(
        id=connection.id,
        strongId=connection.strong_id,
        name=connection.nickname,
        mode=connection.mode,
    ).model_dump()


class RoomDirectory:
    """Room name -> member connection ids, plus the join/leave broadcast protocol.

    A room only exists while it has members. All reads and writes go through
    the registry's lock so capacity checks and membership snapshots cannot
    interleave with a concurrent join or leave.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        transport: SignalingBackend,
        max_clients: int = 0,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.registry = registry
        self.transport = transport
        self.max_clients = max_clients
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        # room name -> insertion-ordered member ids
        self.rooms: Dict[str, Dict[str, None]] = {}
        self.lock = registry.lock

    def members(self, room_name: Optional[str]) -> List[str]:
        with self.lock:
            return list(self.rooms.get(room_name, {})) if room_name is not None else []

    def clients_in_room(self, room_name: str) -> int:
        with self.lock:
            return len(self.rooms.get(room_name, {}))

    def describe(self, room_name: str) -> dict:
        """Resources and identity of every member, for late joiners."""
        with self.lock:
            clients = {}
            for member_id in self.members(room_name):
                connection = self.registry.get(member_id)
                if connection is None:
                    continue
                clients[member_id] = ClientDescription(
                    screen=connection.resources.screen,
                    video=connection.resources.video,
                    audio=connection.resources.audio,
                    strongId=connection.strong_id,
                    nickName=connection.nickname,
                    mode=connection.mode,
                )
            return RoomDescription(clients=clients).model_dump()

    def list_members(self, room_name: Optional[str]) -> dict:
        # Absent fields go out as "" / "undefined"; existing clients parse these literally.
        with self.lock:
            clients = []
            for member_id in self.members(room_name):
                connection = self.registry.get(member_id)
                if connection is None:
                    continue
                clients.append(MemberInfo(
                    id=member_id,
                    strongId=connection.strong_id or "",
                    name=connection.nickname or "undefined",
                    mode=connection.mode or "undefined",
                ))
            return RoomMembers(clients=clients).model_dump()

    def lookup_by_strong_identifier(self, room_name: Optional[str], strong_id: str) -> Optional[str]:
        with self.lock:
            return self.registry.lookup_by_strong_id(self.members(room_name), strong_id)

    def broadcast_members(self, room_name: str) -> None:
        result = self.list_members(room_name)
        if result["clients"]:
            self.transport.broadcast(self.members(room_name), "roommembers", result)

    def join(
        self,
        connection_id: str,
        room_name: str,
        on_described: Optional[Callable[[dict], None]] = None,
    ) -> Optional[dict]:
        """Add the connection to ``room_name`` and return the room as it was before joining.

        ``on_described`` receives that description before the join is
        broadcast, so the joiner hears about its peers first. Raises
        ``RoomFull`` when the configured capacity is already reached.
        """
        if not isinstance(room_name, str):
            return None
        with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None:
                return None

            members = self.rooms.get(room_name, {})
            if self.max_clients > 0 and connection_id not in members and len(members) >= self.max_clients:
                logger.info(f"Client Id: {connection_id} rejected, room {room_name} is full ({len(members)}/{self.max_clients})")
                raise RoomFull(room_name)

            if connection.room != room_name:
                self.leave(connection_id)

            description = self.describe(room_name)
            if on_described is not None:
                on_described(description)

            self.rooms.setdefault(room_name, {})[connection_id] = None
            connection.room = room_name

            self.transport.broadcast(self.members(room_name), "memberjoined", member_info(connection))
            self.broadcast_members(room_name)

            logger.info(f"Client Id: {connection_id} joins room: {room_name}")
            return description

    def leave(self, connection_id: str, reason_type: Optional[str] = None) -> bool:
        """Drop a feed (``reason_type`` set) or leave the room entirely (``reason_type`` None)."""
        with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None or connection.room is None:
                return False
            room_name = connection.room

            self.transport.broadcast(
                self.members(room_name), "remove", RemoveFeed(id=connection_id, type=reason_type).model_dump()
            )
            if reason_type is not None:
                return True

            logger.info(f"Client Id: {connection_id} leaves room: {room_name}")
            members = self.rooms.get(room_name, {})
            members.pop(connection_id, None)
            if not members:
                self.rooms.pop(room_name, None)
                logger.debug(f"Room {room_name} is empty, removed")

            self.transport.broadcast(self.members(room_name), "memberleaved", member_info(connection))
            self.broadcast_members(room_name)

            connection.room = None
            return True

    def create(self, connection_id: str, room_name: Optional[str] = None) -> Optional[str]:
        """Create (and join) a room, generating its name when none is given.

        Raises ``RoomTaken`` when a named room already has members.
        """
        if not isinstance(room_name, str) or not room_name:
            room_name = None
        with self.lock:
            if self.registry.get(connection_id) is None:
                return None
            if room_name and self.rooms.get(room_name):
                logger.info(f"Client Id: {connection_id} cannot create room {room_name}, taken")
                raise RoomTaken(room_name)

            room_name = room_name or self.id_factory()
            logger.info(f"Room created: {room_name}")
            self.join(connection_id, room_name)
            return room_name

    def disconnect(self, connection_id: str) -> None:
        """Full leave and unregister as one step."""
        with self.lock:
            self.leave(connection_id)
            self.registry.unregister(connection_id)
