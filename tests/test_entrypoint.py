"""Tests for the server runner."""

import entrypoint
from app import app


def test_main_runs_app_with_environment(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setenv("HOST", "127.0.0.1")
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.delenv("RELOAD", raising=False)

    entrypoint.main()

    [(target, kwargs)] = calls
    assert target is app
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9001
    assert kwargs["reload"] is False
    assert kwargs["log_config"] is None


def test_main_reload_uses_import_string(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setenv("RELOAD", "true")

    entrypoint.main()

    assert calls[0][0] == "app:app"
    assert calls[0][1]["reload"] is True
