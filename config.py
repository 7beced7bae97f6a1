import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import constants
from logging_config import get_logger
from schemas.config import SignalingConfig

logger = get_logger(__name__)


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: Optional[str] = None, env: Optional[Dict[str, Optional[str]]] = None) -> SignalingConfig:
    """Build the signaling configuration.

    The JSON file (``SIGNALING_CONFIG``) is read first; environment values
    from ``constants`` override the matching keys. ``env`` lets callers pass
    overrides explicitly instead of reading ``constants``.
    """
    path = path if path is not None else constants.SIGNALING_CONFIG
    if env is None:
        env = {
            "MAX_CLIENTS": constants.MAX_CLIENTS,
            "CODEC_PRIORITY": constants.CODEC_PRIORITY,
            "MAX_AVERAGE_BITRATE": constants.MAX_AVERAGE_BITRATE,
            "STUN_SERVERS": constants.STUN_SERVERS,
            "TURN_ORIGINS": constants.TURN_ORIGINS,
        }

    raw: Dict[str, Any] = {}
    if path:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        logger.info(f"Loaded signaling config from {path}")

    if env.get("MAX_CLIENTS"):
        raw.setdefault("rooms", {})["maxClients"] = int(env["MAX_CLIENTS"])
    if env.get("CODEC_PRIORITY"):
        raw["codecPriority"] = _split(env["CODEC_PRIORITY"])
    if env.get("MAX_AVERAGE_BITRATE"):
        raw["maxAverageBitRate"] = int(env["MAX_AVERAGE_BITRATE"])
    if env.get("STUN_SERVERS"):
        raw["stunservers"] = [{"urls": url} for url in _split(env["STUN_SERVERS"])]
    if env.get("TURN_ORIGINS") is not None:
        raw["turnorigins"] = _split(env["TURN_ORIGINS"])

    config = SignalingConfig.model_validate(raw)
    logger.debug(
        f"Signaling config: max_clients={config.rooms.max_clients}, "
        f"codec_priority={config.codec_priority}, max_average_bitrate={config.max_average_bitrate}, "
        f"stun={len(config.stunservers)}, turn={len(config.turnservers)}"
    )
    return config
