from typing import Any, List, Optional

from backend import SignalingBackend
from directory import RoomDirectory
from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.signaling import DecodeFailed, decode_payload
from sdp import prioritize_codecs, set_opus_bitrate

logger = get_logger(__name__)


class MessageRouter:
    """Relays signaling envelopes (offer/answer/candidate) between connections.

    Envelopes that cannot be decoded or whose destination cannot be resolved
    are dropped without telling the sender; clients rely on that behaviour.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: RoomDirectory,
        transport: SignalingBackend,
        codec_priority: Optional[List[str]] = None,
        max_average_bitrate: int = 0,
    ):
        self.registry = registry
        self.directory = directory
        self.transport = transport
        self.codec_priority = list(codec_priority or [])
        self.max_average_bitrate = max_average_bitrate

    def resolve(self, sender_id: str, destination: str) -> Optional[str]:
        if destination in self.registry:
            return destination
        # Maybe a strong ID in the sender's room
        sender = self.registry.get(sender_id)
        if sender is None:
            return None
        return self.directory.lookup_by_strong_identifier(sender.room, destination)

    def shape_sdp(self, sdp: str) -> str:
        """Apply codec priority then Opus bitrate; return the best-effort result on failure."""
        shaped = sdp
        try:
            shaped = prioritize_codecs(shaped, self.codec_priority)
            shaped = set_opus_bitrate(shaped, self.max_average_bitrate)
        except Exception as e:
            logger.error(f"Failed to shape SDP, delivering as is: {e}", exc_info=True)
        return shaped

    def route(self, sender_id: str, envelope: Any) -> Optional[str]:
        """Deliver ``envelope`` and return the resolved destination id, or None when dropped."""
        if not envelope:
            return None

        decoded = decode_payload(envelope)
        if isinstance(decoded, DecodeFailed):
            logger.warning(f"Dropping undecodable message from {sender_id}: {decoded.reason}")
            return None
        details = decoded.value
        if not isinstance(details, dict) or not details.get("to"):
            logger.debug(f"Dropping message without destination from {sender_id}")
            return None

        with self.registry.lock:
            destination = self.resolve(sender_id, str(details["to"]))
            if destination is None:
                logger.debug(f"Dropping message from {sender_id}: no connection for {details['to']}")
                return None

            sender = self.registry.get(sender_id)
            details["from"] = sender_id
            details["fromStrongId"] = sender.strong_id if sender else None
            details["fromNickName"] = sender.nickname if sender else None
            details["fromMode"] = sender.mode if sender else None
            details["fromRoom"] = sender.room if sender else None

            payload = details.get("payload")
            if isinstance(payload, dict) and isinstance(payload.get("sdp"), str):
                payload["sdp"] = self.shape_sdp(payload["sdp"])

            self.transport.send(destination, "message", details)

        logger.info(f"Client Id: {sender_id} sends message to Id: {details['to']} Type: {details.get('type')}")
        return destination
