"""Tests for the per-connection event dispatch."""

import logging

import pytest

from schemas.config import SignalingConfig
from session import SignalingContext, SignalingSession


@pytest.fixture
def config():
    return SignalingConfig.model_validate({
        "rooms": {"maxClients": 2},
        "stunservers": [{"urls": "stun:stun.example.com:3478"}],
        "turnservers": [{"urls": ["turn:turn.example.com:3478"], "secret": "s", "expiry": 3600}],
        "turnorigins": ["https://app.example"],
    })


@pytest.fixture
def context(config, transport):
    return SignalingContext(config, transport, id_factory=lambda: "generated")


def connect(context, connection_id, origin="https://app.example"):
    session = SignalingSession(context, connection_id, origin)
    session.connect()
    return session


def test_connect_sends_servers_and_login(context, transport) -> None:
    connect(context, "a")

    assert transport.events("a") == ["stunservers", "turnservers", "loggedin"]
    assert transport.data("a", "stunservers") == [[{"urls": "stun:stun.example.com:3478"}]]
    [turnservers] = transport.data("a", "turnservers")
    assert turnservers[0]["urls"] == ["turn:turn.example.com:3478"]
    [loggedin] = transport.data("a", "loggedin")
    assert loggedin == ["a", str(context.registry.get("a").issued)]


def test_connect_from_unlisted_origin_gets_no_turn(context, transport) -> None:
    connect(context, "a", origin="https://elsewhere.example")

    assert transport.data("a", "turnservers") == [[]]


def test_join_and_create_acknowledge(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    c = connect(context, "c")
    transport.clear()

    a.dispatch("create", "r1", ack=1)
    b.dispatch("join", "r1", ack=2)
    c.dispatch("join", "r1", ack=3)
    c.dispatch("create", "r1", ack=4)
    c.dispatch("create", None, ack=5)

    assert transport.data("a", "ack") == [[None, "r1"]]
    [[error, description]] = transport.data("b", "ack")
    assert error is None
    assert list(description["clients"]) == ["a"]
    assert transport.data("c", "ack") == [["full", None], ["taken", None], [None, "generated"]]


def test_no_ack_without_ack_id(context, transport) -> None:
    a = connect(context, "a")
    transport.clear()

    a.dispatch("create", "r1")

    assert "ack" not in transport.events("a")
    assert context.registry.get("a").room == "r1"


def test_share_and_unshare_screen(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    a.dispatch("join", "r1")
    b.dispatch("join", "r1")
    a.dispatch("shareScreen")
    assert context.registry.get("a").resources.screen is True
    transport.clear()

    a.dispatch("unshareScreen")

    assert context.registry.get("a").resources.screen is False
    assert transport.data("b", "remove") == [{"id": "a", "type": "screen"}]
    assert context.registry.get("a").room == "r1"


def test_getroommembers_goes_to_caller_only(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    a.dispatch("getroommembers")
    assert "roommembers" not in transport.events("a")

    a.dispatch("join", "r1")
    b.dispatch("join", "r1")
    transport.clear()
    a.dispatch("getroommembers")

    assert transport.recipients("roommembers") == ["a"]


def test_nickname_setinfo_and_message(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    a.dispatch("nickname", "alice")
    b.dispatch("setinfo", '{"strongId": "bob-1"}')
    a.dispatch("join", "r1")
    b.dispatch("join", "r1")
    transport.clear()

    a.dispatch("message", {"to": "bob-1", "type": "offer", "payload": {}})

    [delivered] = transport.data("b", "message")
    assert delivered["fromNickName"] == "alice"


def test_leave_and_disconnect(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    a.dispatch("join", "r1")
    b.dispatch("join", "r1")
    transport.clear()

    a.dispatch("leave")
    assert context.registry.get("a").room is None
    assert transport.data("b", "memberleaved")[0]["id"] == "a"

    b.disconnect()
    assert "b" not in context.registry
    assert context.directory.rooms == {}


def test_bad_events_do_not_raise(context, transport, caplog) -> None:
    a = connect(context, "a")

    def explode(data, ack):
        raise RuntimeError("boom")

    a.handlers["nickname"] = explode
    with caplog.at_level(logging.INFO):
        a.dispatch("nickname", "x", ack=1)
        a.dispatch("no-such-event", None)
        a.dispatch("trace", {"type": "getStats"})

    assert "ack" not in transport.events("a")
    assert "boom" in caplog.text
    assert "getStats" in caplog.text


def test_join_ack_arrives_before_join_broadcasts(context, transport) -> None:
    a = connect(context, "a")
    b = connect(context, "b")
    a.dispatch("join", "r1", ack=1)
    transport.clear()

    b.dispatch("join", "r1", ack=2)

    assert transport.events("b") == ["ack", "memberjoined", "roommembers"]
    [[error, description]] = transport.data("b", "ack")
    assert error is None
    assert list(description["clients"]) == ["a"]


def test_join_empty_room_name_acknowledges(context, transport) -> None:
    a = connect(context, "a")
    transport.clear()

    a.dispatch("join", "", ack=1)

    assert transport.events("a") == ["ack", "memberjoined", "roommembers"]
    assert transport.data("a", "ack") == [[None, {"clients": {}}]]
    assert context.registry.get("a").room == ""


def test_connect_passes_stun_server_fields_through(transport) -> None:
    stun = {"urls": "stun:stun.example.com:3478", "username": "u", "credential": "c"}
    context = SignalingContext(SignalingConfig.model_validate({"stunservers": [stun]}), transport)

    connect(context, "a")

    assert transport.data("a", "stunservers") == [[stun]]
