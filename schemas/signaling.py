import json
from dataclasses import dataclass
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class Decoded:
    value: Any


@dataclass(frozen=True)
class DecodeFailed:
    raw: Any
    reason: str


def decode_payload(raw: Any) -> Union[Decoded, DecodeFailed]:
    """Native clients send JSON text where browsers send objects; accept both."""
    if isinstance(raw, (str, bytes)):
        try:
            return Decoded(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return DecodeFailed(raw, str(e))
    return Decoded(raw)


class SetInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nickname: Optional[str] = None
    mode: Optional[str] = None
    strongId: Optional[str] = None


class MemberInfo(BaseModel):
    id: str
    strongId: Optional[str] = None
    name: Optional[str] = None
    mode: Optional[str] = None


class RoomMembers(BaseModel):
    clients: List[MemberInfo]


class RemoveFeed(BaseModel):
    id: str
    type: Optional[str] = None


class ClientDescription(BaseModel):
    screen: bool
    video: bool
    audio: bool
    strongId: Optional[str] = None
    nickName: Optional[str] = None
    mode: Optional[str] = None


class RoomDescription(BaseModel):
    clients: Dict[str, ClientDescription]
