from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union


class IceServer(BaseModel):
    # username, credential and other RTCIceServer keys pass through to clients as-is
    model_config = ConfigDict(extra="allow")

    urls: Union[str, List[str]]


class TurnServer(BaseModel):
    secret: str
    urls: Optional[Union[str, List[str]]] = None
    url: Optional[str] = None
    expiry: Optional[int] = None

    @property
    def endpoints(self) -> Optional[Union[str, List[str]]]:
        return self.urls or self.url


class RoomsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_clients: int = Field(default=0, alias="maxClients")


class SignalingConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rooms: RoomsConfig = Field(default_factory=RoomsConfig)
    stunservers: List[IceServer] = Field(default_factory=list)
    turnservers: List[TurnServer] = Field(default_factory=list)
    turnorigins: Optional[List[str]] = None
    codec_priority: List[str] = Field(default_factory=list, alias="codecPriority")
    max_average_bitrate: int = Field(default=0, alias="maxAverageBitRate")
