"""Shared fixtures for gateway tests."""

import pytest
from core.settings import Settings, reset_settings
from fakes import make_script, stream_json


@pytest.fixture(autouse=True)
def fresh_settings():
    """Never let a cached settings singleton leak between tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def workspace(tmp_path):
    """A directory that is inside the allowed roots."""
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(tmp_path):
    """Settings with a short grace window and tmp_path as the only allowed root."""
    return Settings(
        _env_file=None,
        allowed_roots=str(tmp_path),
        termination_grace_seconds=0.5,
        max_turn_seconds=20.0,
        default_provider="fake",
    )


@pytest.fixture
def success_script():
    return make_script(
        [
            stream_json(type="system", subtype="init", session_id="sess-1", model="script-1", slash_commands=["/help"]),
            stream_json(type="assistant", message={"content": [{"type": "text", "text": "Hello there"}]}),
            stream_json(type="result", result="Hello there", total_cost_usd=0.01, duration_ms=42, session_id="sess-1"),
        ]
    )
