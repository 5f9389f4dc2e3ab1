"""
Tests for the Codex adapter - exec command construction and JSONL event mapping.
"""

import json
from unittest.mock import patch

import pytest
from core.exceptions import ValidationError
from domain.events import AssistantEvent, ErrorEvent, ResultEvent, SystemEvent
from providers.base import PermissionMode, SpawnOptions
from providers.codex import CodexProvider, CodexStreamParser

CODEX_PATH = "/opt/tools/codex"


@pytest.fixture
def provider():
    provider = CodexProvider()
    with patch.object(CodexProvider, "find_binary", return_value=CODEX_PATH):
        yield provider


def build(provider, prompt="hello", **options):
    return provider.build_command(prompt, SpawnOptions(**options))


def test_default_command(provider):
    spec = build(provider)

    assert spec.binary == CODEX_PATH
    assert spec.args == ["exec", "--json", "--skip-git-repo-check", "--", "hello"]


@pytest.mark.parametrize(
    "mode, flags",
    [
        (PermissionMode.DEFAULT, []),
        (PermissionMode.TRUST, ["--full-auto"]),
        (PermissionMode.ACCEPT_EDITS, ["--sandbox", "workspace-write"]),
        (PermissionMode.READ_ONLY, ["--sandbox", "read-only"]),
        (PermissionMode.PLAN, ["--sandbox", "read-only"]),
    ],
)
def test_permission_mode_flags(provider, mode, flags):
    spec = build(provider, permission_mode=mode)

    assert spec.args == ["exec", "--json", "--skip-git-repo-check", *flags, "--", "hello"]


def test_resume_uses_exec_resume_subcommand(provider):
    spec = build(provider, session_id="thread-9", model="o3")

    assert spec.args[:3] == ["exec", "resume", "thread-9"]
    assert spec.args[spec.args.index("--model") + 1] == "o3"
    assert spec.args[-2:] == ["--", "hello"]


def test_allowlist_is_ignored(provider):
    spec = build(provider, allowed_tools=["shell", "--dangerous"])

    assert "shell" not in spec.args
    assert "--dangerous" not in spec.args


@pytest.mark.parametrize("session_id", ["--dangerously-bypass-approvals-and-sandbox", "-c", "thread 9"])
def test_flag_shaped_session_id_is_rejected(provider, session_id):
    with pytest.raises(ValidationError, match="Invalid session id"):
        build(provider, permission_mode=PermissionMode.READ_ONLY, session_id=session_id)


def test_env_strips_enclosing_session_markers(provider, monkeypatch):
    monkeypatch.setenv("CODEX_SANDBOX", "seatbelt")
    monkeypatch.setenv("CODEX_SANDBOX_NETWORK_DISABLED", "1")
    monkeypatch.setenv("CODEX_THREAD_ID", "outer")
    monkeypatch.setenv("CODEX_HOME", "/tmp/codex")

    env = build(provider).env

    assert "CODEX_SANDBOX" not in env
    assert "CODEX_SANDBOX_NETWORK_DISABLED" not in env
    assert "CODEX_THREAD_ID" not in env
    assert env["CODEX_HOME"] == "/tmp/codex"


def test_capabilities():
    descriptor = CodexProvider().get_capabilities()

    assert descriptor.name == "codex"
    assert descriptor.display_name == "OpenAI Codex"
    assert descriptor.to_dict()["toolUse"] is True


# Event mapping


def parse(payload: dict):
    return CodexProvider().parse_event(json.dumps(payload))


def test_thread_started_maps_to_system():
    assert parse({"type": "thread.started", "thread_id": "t-1"}) == SystemEvent(session_id="t-1")


def test_agent_message_maps_to_text():
    event = parse({"type": "item.completed", "item": {"id": "item_1", "type": "agent_message", "text": " Done. "}})

    assert event == AssistantEvent(text="Done.")


def test_reasoning_maps_to_thinking():
    event = parse({"type": "item.completed", "item": {"type": "reasoning", "text": "**Planning**"}})

    assert event == AssistantEvent(thinking="**Planning**")


def test_command_execution_maps_to_shell_tool():
    event = parse(
        {
            "type": "item.completed",
            "item": {"type": "command_execution", "command": "ls -la", "aggregated_output": "", "exit_code": 0},
        }
    )

    assert event.tool_invocations[0].name == "shell"
    assert event.tool_invocations[0].raw_input == {"command": "ls -la"}


def test_mcp_tool_call_name_includes_server():
    event = parse(
        {"type": "item.completed", "item": {"type": "mcp_tool_call", "server": "fs", "tool": "read", "arguments": {"p": 1}}}
    )

    assert event.tool_invocations[0].name == "fs__read"
    assert event.tool_invocations[0].raw_input == {"p": 1}


def test_function_call_decodes_string_arguments():
    event = parse(
        {"type": "item.completed", "item": {"type": "function_call", "name": "search", "arguments": '{"q": "x"}'}}
    )

    assert event.tool_invocations[0].name == "search"
    assert event.tool_invocations[0].raw_input == {"q": "x"}


def test_file_change_and_web_search_are_tools():
    change = parse({"type": "item.completed", "item": {"type": "file_change", "changes": [{"path": "a.py"}]}})
    search = parse({"type": "item.completed", "item": {"type": "web_search", "query": "python"}})

    assert change.tool_invocations[0].name == "apply_patch"
    assert search.tool_invocations[0].raw_input == {"query": "python"}


def test_turn_completed_maps_to_result():
    event = parse({"type": "turn.completed", "usage": {"input_tokens": 10, "output_tokens": 5}})

    assert isinstance(event, ResultEvent)


def test_turn_failed_maps_to_error():
    event = parse({"type": "turn.failed", "error": {"message": "stream disconnected"}})

    assert event == ErrorEvent(message="stream disconnected")


def test_error_event_maps_to_error():
    assert parse({"type": "error", "message": "quota exceeded"}) == ErrorEvent(message="quota exceeded")


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "turn.started"},
        {"type": "item.started", "item": {"type": "command_execution", "command": "ls"}},
        {"type": "item.updated", "item": {"type": "todo_list", "items": []}},
        {"type": "item.completed", "item": {"type": "todo_list", "items": []}},
        {"type": "item.completed", "item": "not a dict"},
        {"type": "thread.started"},
    ],
)
def test_unforwarded_events_are_dropped(payload):
    assert parse(payload) is None


def test_untrusted_directory_notice_becomes_error():
    line = "Not inside a trusted directory and --skip-git-repo-check was not specified."

    assert CodexProvider().parse_event(line) == ErrorEvent(message=line)


def test_other_plain_text_becomes_assistant_text():
    assert CodexProvider().parse_event("Reading prompt from stdin...") == AssistantEvent(text="Reading prompt from stdin...")


@pytest.mark.parametrize("line", ["", "{", "[]", '{"type": "item.completed"}', '{"type": "error", "message": {}}'])
def test_parse_event_never_raises(line):
    CodexProvider().parse_event(line)
