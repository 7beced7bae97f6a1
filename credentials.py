"""
Ephemeral TURN credentials (draft-uberti-behave-turn-rest).

The username is the expiry timestamp and the credential is the base64
HMAC-SHA1 of that username keyed by the TURN server's shared secret, so the
TURN server can validate it without per-user state.
"""

import base64
import hashlib
import hmac
import time
from typing import Dict, Iterable, List, Optional

from constants import DEFAULT_TURN_EXPIRY
from schemas.config import TurnServer


def turn_credential(secret: str, username: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), username.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def issue_turn_credentials(
    servers: Iterable[TurnServer],
    origin: Optional[str],
    allowed_origins: Optional[List[str]] = None,
    now: Optional[float] = None,
) -> List[Dict]:
    """Return one ``{username, credential, urls}`` entry per configured TURN server.

    When ``allowed_origins`` is set and ``origin`` is not in it nothing is
    issued at all.
    """
    if allowed_origins is not None and origin not in allowed_origins:
        return []

    now = time.time() if now is None else now
    credentials = []
    for server in servers:
        username = str(int(now) + (server.expiry or DEFAULT_TURN_EXPIRY))
        credentials.append({
            "username": username,
            "credential": turn_credential(server.secret, username),
            "urls": server.endpoints,
        })
    return credentials
