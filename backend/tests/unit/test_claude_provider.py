"""
Tests for the Claude Code adapter - command construction and stream-json mapping.
"""

from unittest.mock import patch

import pytest
from core.exceptions import ValidationError
from domain.events import AssistantEvent, ErrorEvent, ResultEvent, SystemEvent
from providers.base import PermissionMode, SpawnOptions
from providers.claude import READ_ONLY_TOOLS, ClaudeProvider, ClaudeStreamParser

CLAUDE_PATH = "/opt/tools/claude"
BASE_ARGS = ["-p", "--output-format", "stream-json", "--verbose"]


@pytest.fixture
def provider():
    provider = ClaudeProvider()
    with patch.object(ClaudeProvider, "find_binary", return_value=CLAUDE_PATH):
        yield provider


def build(provider, prompt="hello", **options):
    return provider.build_command(prompt, SpawnOptions(**options))


def test_default_mode_has_no_permission_flags(provider):
    spec = build(provider)

    assert spec.binary == CLAUDE_PATH
    assert spec.args == [*BASE_ARGS, "--", "hello"]


@pytest.mark.parametrize(
    "mode, flags",
    [
        (PermissionMode.TRUST, ["--dangerously-skip-permissions"]),
        (PermissionMode.ACCEPT_EDITS, ["--permission-mode", "acceptEdits"]),
        (PermissionMode.READ_ONLY, ["--allowedTools", *READ_ONLY_TOOLS]),
        (PermissionMode.PLAN, ["--permission-mode", "plan"]),
    ],
)
def test_permission_mode_flags(provider, mode, flags):
    spec = build(provider, permission_mode=mode)

    assert spec.args == [*BASE_ARGS, *flags, "--", "hello"]


def test_resume_and_model_flags(provider):
    spec = build(provider, session_id="abc-123", model="claude-opus-4-6")

    assert spec.args[spec.args.index("--resume") + 1] == "abc-123"
    assert spec.args[spec.args.index("--model") + 1] == "claude-opus-4-6"


def test_no_resume_flag_without_session(provider):
    assert "--resume" not in build(provider).args


def test_trust_mode_ignores_custom_allowlist(provider):
    spec = build(provider, permission_mode=PermissionMode.TRUST, allowed_tools=["Bash", "Edit"])

    assert "--dangerously-skip-permissions" in spec.args
    assert "--allowedTools" not in spec.args


def test_read_only_mode_ignores_custom_allowlist(provider):
    spec = build(provider, permission_mode=PermissionMode.READ_ONLY, allowed_tools=["Bash"])

    assert spec.args.count("--allowedTools") == 1
    assert "Bash" not in spec.args


def test_invalid_tool_names_are_dropped(provider):
    spec = build(provider, allowed_tools=["Bash", "--dangerously-skip-permissions", "Read; rm -rf /", "mcp__fs_read"])

    index = spec.args.index("--allowedTools")
    assert spec.args[index + 1 : index + 3] == ["Bash", "mcp__fs_read"]
    assert "--dangerously-skip-permissions" not in spec.args


def test_allowlist_of_only_invalid_names_adds_no_flag(provider):
    spec = build(provider, allowed_tools=["-x"])

    assert "--allowedTools" not in spec.args


def test_flag_shaped_and_newline_tool_names_never_reach_argv(provider):
    spec = build(provider, allowed_tools=["Read", "--dangerously-skip-permissions", "Read\n", "-Bash"])

    index = spec.args.index("--allowedTools")
    assert spec.args[index:] == ["--allowedTools", "Read", "--", "hello"]


def test_flag_shaped_session_id_is_rejected(provider):
    with pytest.raises(ValidationError, match="Invalid session id"):
        build(provider, session_id="--dangerously-skip-permissions")


def test_prompt_starting_with_dash_follows_end_of_options(provider):
    spec = build(provider, prompt="--help me")

    assert spec.args[-2:] == ["--", "--help me"]


def test_cwd_is_carried_on_spec(provider, tmp_path):
    spec = build(provider, cwd=str(tmp_path))

    assert spec.cwd == str(tmp_path)


def test_env_strips_nested_session_variables(provider, monkeypatch):
    monkeypatch.setenv("CLAUDECODE", "1")
    monkeypatch.setenv("CLAUDE_CODE_ENTRYPOINT", "cli")
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", "/tmp/claude")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    env = build(provider).env

    assert "CLAUDECODE" not in env
    assert "CLAUDE_CODE_ENTRYPOINT" not in env
    assert env["CLAUDE_CONFIG_DIR"] == "/tmp/claude"
    assert env["ANTHROPIC_API_KEY"] == "sk-test"


def test_windows_env_gets_git_bash_path():
    provider = ClaudeProvider()
    with patch("providers.claude.provider.IS_WINDOWS", True), patch(
        "providers.claude.provider.find_git_bash", return_value=r"C:\Git\bin\bash.exe"
    ):
        env = provider.build_env({"PATH": "x"})

    assert env["CLAUDE_CODE_GIT_BASH_PATH"] == r"C:\Git\bin\bash.exe"


def test_unavailable_when_binary_missing(tmp_path):
    provider = ClaudeProvider(search_dirs=[tmp_path])
    with patch("providers.discovery.shutil.which", return_value=None):
        assert provider.is_available() is False


def test_capabilities():
    descriptor = ClaudeProvider().get_capabilities()

    assert descriptor.name == "claude"
    assert descriptor.thinking is True
    assert descriptor.tool_use is True
    assert "claude-sonnet-4-6" in descriptor.models


# Event mapping


def test_system_init_maps_to_system_event():
    event = ClaudeProvider().parse_event(
        '{"type": "system", "subtype": "init", "session_id": "s-1", "model": "claude-sonnet-4-6", '
        '"slash_commands": ["/compact"], "tools": ["Bash"]}'
    )

    assert event == SystemEvent(session_id="s-1", model="claude-sonnet-4-6", available_commands=["/compact"])


def test_assistant_blocks_map_to_text_thinking_and_tools():
    event = ClaudeStreamParser.parse_payload(
        {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "thinking", "thinking": "Let me look."},
                    {"type": "text", "text": "  Reading the file.  "},
                    {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "a.py"}},
                ]
            },
        }
    )

    assert isinstance(event, AssistantEvent)
    assert event.text == "Reading the file."
    assert event.thinking == "Let me look."
    assert [(tool.name, tool.raw_input) for tool in event.tool_invocations] == [("Read", {"file_path": "a.py"})]


def test_result_prefers_total_cost():
    event = ClaudeStreamParser.parse_payload(
        {"type": "result", "result": "Done.", "total_cost_usd": 0.5, "cost_usd": 0.1, "duration_ms": 900, "session_id": "s"}
    )

    assert event == ResultEvent(final_text="Done.", cost_usd=0.5, duration_ms=900, session_id="s")


def test_result_falls_back_to_cost_usd():
    event = ClaudeStreamParser.parse_payload({"type": "result", "cost_usd": 0.1})

    assert event.cost_usd == 0.1


def test_error_result_maps_to_error_event():
    event = ClaudeStreamParser.parse_payload({"type": "result", "is_error": True, "subtype": "error_max_turns"})

    assert event == ErrorEvent(message="Claude Code finished with error_max_turns")


def test_error_event_with_nested_message():
    event = ClaudeStreamParser.parse_payload({"type": "error", "error": {"message": "overloaded"}})

    assert event == ErrorEvent(message="overloaded")


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "user", "message": {"content": []}},
        {"type": "stream_event", "event": {}},
        {"type": "system", "subtype": "compact_boundary"},
        {"type": "system", "subtype": "init"},
        {"type": "rate_limit"},
    ],
)
def test_unforwarded_events_are_dropped(payload):
    assert ClaudeStreamParser.parse_payload(payload) is None


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "not json at all",
        "{truncated",
        "[1, 2]",
        "null",
        '"just a string"',
        '{"type": "assistant", "message": "unexpected"}',
        '{"type": "assistant", "message": {"content": [1, null, {"type": "text", "text": null}]}}',
        '{"type": "result", "result": 5}',
    ],
)
def test_parse_event_never_raises(line):
    ClaudeProvider().parse_event(line)


def test_non_json_lines_are_skipped():
    assert ClaudeProvider().parse_event("Warning: something") is None


def test_mapping_failure_is_swallowed():
    with patch.object(ClaudeStreamParser, "parse_payload", side_effect=KeyError("boom")):
        assert ClaudeProvider().parse_event('{"type": "assistant"}') is None
