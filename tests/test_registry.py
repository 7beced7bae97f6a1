"""Tests for the per-connection registry."""

import json

import pytest


def test_register_defaults(registry) -> None:
    connection = registry.register("a", issued=123)

    assert connection.resources.video is True
    assert connection.resources.screen is False
    assert connection.resources.audio is False
    assert connection.room is None
    assert connection.issued == 123
    assert "a" in registry


def test_set_nickname_ignores_empty_and_unchanged(registry) -> None:
    registry.register("a")

    assert registry.set_nickname("a", "alice") is True
    assert registry.set_nickname("a", "alice") is False
    assert registry.set_nickname("a", "") is False
    assert registry.set_nickname("a", None) is False
    assert registry.get("a").nickname == "alice"


def test_set_info_merges_present_fields(registry) -> None:
    registry.register("a")
    registry.set_info("a", {"nickname": "alice", "mode": "presenter"})

    registry.set_info("a", json.dumps({"strongId": "alice-1", "unknown": 1}))

    connection = registry.get("a")
    assert connection.nickname == "alice"
    assert connection.mode == "presenter"
    assert connection.strong_id == "alice-1"


@pytest.mark.parametrize("info", ["{not json", "[1, 2]", {"nickname": 5}, None, ""])
def test_set_info_ignores_malformed_input(registry, info) -> None:
    registry.register("a")
    registry.set_info("a", {"nickname": "alice"})

    assert registry.set_info("a", info) is False
    assert registry.get("a").nickname == "alice"


def test_unknown_connection_is_a_no_op(registry) -> None:
    assert registry.set_nickname("ghost", "x") is False
    assert registry.set_info("ghost", {"nickname": "x"}) is False
    assert registry.set_resource("ghost", "screen", True) is False
    assert registry.unregister("ghost") is None


def test_set_resource(registry) -> None:
    registry.register("a")

    registry.set_resource("a", "screen", True)
    registry.set_resource("a", "video", False)

    assert registry.get("a").resources.screen is True
    assert registry.get("a").resources.video is False
    with pytest.raises(ValueError):
        registry.set_resource("a", "hologram", True)


def test_lookup_by_strong_id_takes_first_match(registry) -> None:
    for connection_id in ("a", "b", "c"):
        registry.register(connection_id)
    registry.set_info("b", {"strongId": "shared"})
    registry.set_info("c", {"strongId": "shared"})

    assert registry.lookup_by_strong_id(["a", "c", "b"], "shared") == "c"
    assert registry.lookup_by_strong_id(["a"], "shared") is None
    assert registry.lookup_by_strong_id(["a", "b"], "") is None


def test_unregister(registry) -> None:
    registry.register("a")

    assert registry.unregister("a").id == "a"
    assert "a" not in registry
    assert len(registry) == 0
