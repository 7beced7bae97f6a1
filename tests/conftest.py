import copy
import itertools

import pytest

from backend import SignalingBackend, make_frame
from directory import RoomDirectory
from registry import ConnectionRegistry


class RecordingBackend(SignalingBackend):
    """Transport double that records every frame instead of delivering it."""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, connection_id, event, data=None, ack=None):
        self.sent.append((connection_id, make_frame(event, copy.deepcopy(data), ack)))

    def frames(self, connection_id):
        return [frame for recipient, frame in self.sent if recipient == connection_id]

    def events(self, connection_id):
        return [frame["event"] for frame in self.frames(connection_id)]

    def data(self, connection_id, event):
        return [frame["data"] for frame in self.frames(connection_id) if frame["event"] == event]

    def recipients(self, event):
        return [recipient for recipient, frame in self.sent if frame["event"] == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def transport():
    return RecordingBackend()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def make_directory(registry, transport):
    counter = itertools.count(1)

    def factory(max_clients=0):
        return RoomDirectory(registry, transport, max_clients=max_clients, id_factory=lambda: f"room-{next(counter)}")

    return factory


@pytest.fixture
def directory(make_directory):
    return make_directory()
