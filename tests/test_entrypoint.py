"""Tests for the uvicorn entrypoint."""
import entrypoint


def test_main_runs_app_under_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    entrypoint.main()

    assert len(calls) == 1
    args, kwargs = calls[0]
    assert args == ("app:app",)
    assert kwargs["host"] == entrypoint.HOST
    assert kwargs["port"] == entrypoint.PORT
    assert kwargs["log_level"] == entrypoint.LOG_LEVEL.lower()
