from __future__ import annotations

import pytest

from conftest import FakeStyles, FakeToolServers
from podstream.config import DISPOSABLE_PROFILE, EDITS_PROFILE, EngineConfig
from podstream.errors import PathTraversalError
from podstream.models import ImageBlock, PodSnapshot, TextBlock, ToolServer
from podstream.runners.claude.options import build_base_options, build_query_options, resolve_cwd
from podstream.runners.claude.prompt import (
    FALLBACK_PROMPT,
    build_content_blocks,
    build_prompt,
    build_text_prompt,
)


def _pod(**overrides) -> PodSnapshot:
    fields = {"id": "p1", "workspace_path": "/tmp/work", "model": "sonnet"}
    fields.update(overrides)
    return PodSnapshot(**fields)


def test_text_prompt_prefix() -> None:
    assert build_text_prompt("fix it", "review") == "/review fix it"
    assert build_text_prompt("fix it", None) == "fix it"


def test_empty_text_prompt_falls_back() -> None:
    assert build_text_prompt("   ", None) == FALLBACK_PROMPT
    assert build_text_prompt("", "review") == "/review "


def test_content_blocks_prefix_first_text_only() -> None:
    blocks = [TextBlock("one"), TextBlock("two")]

    assert build_content_blocks(blocks, "cmd") == [
        {"type": "text", "text": "/cmd one"},
        {"type": "text", "text": "two"},
    ]


def test_content_blocks_image_only_gets_leading_command() -> None:
    blocks = [ImageBlock(media_type="image/jpeg", base64_data="AAAA")]

    content = build_content_blocks(blocks, "cmd")

    assert content[0] == {"type": "text", "text": "/cmd"}
    assert content[1]["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "AAAA"}


def test_content_blocks_skip_blank_text_and_fall_back() -> None:
    assert build_content_blocks([TextBlock("  ")], None) == [{"type": "text", "text": FALLBACK_PROMPT}]
    assert build_content_blocks([], None) == [{"type": "text", "text": FALLBACK_PROMPT}]


@pytest.mark.asyncio
async def test_block_prompt_uses_empty_session_without_resume() -> None:
    prompt = build_prompt([TextBlock("hi")], None, None)

    messages = [message async for message in prompt]

    assert messages[0]["session_id"] == ""
    assert messages[0]["parent_tool_use_id"] is None
    assert messages[0]["message"] == {"role": "user", "content": [{"type": "text", "text": "hi"}]}


def test_resolve_cwd_uses_workspace_without_repository(tmp_path) -> None:
    pod = _pod(workspace_path=str(tmp_path))

    assert resolve_cwd(pod, tmp_path / "repos") == str(tmp_path.resolve())


def test_resolve_cwd_inside_root(tmp_path) -> None:
    pod = _pod(repository_id="my-repo")

    assert resolve_cwd(pod, tmp_path) == str((tmp_path / "my-repo").resolve())


@pytest.mark.parametrize("repository_id", ["../evil", "a/../../evil", "/etc"])
def test_resolve_cwd_rejects_escape(tmp_path, repository_id) -> None:
    pod = _pod(repository_id=repository_id)

    with pytest.raises(PathTraversalError) as exc_info:
        resolve_cwd(pod, tmp_path / "repos")

    assert exc_info.value.repository_id == repository_id


def test_base_options_follow_profile_and_config(tmp_path) -> None:
    config = EngineConfig(repositories_root=tmp_path, claude_bin="/opt/claude", stdout_limit=1024)

    options = build_base_options("/work", EDITS_PROFILE, config)

    assert options.permission_mode == "acceptEdits"
    assert options.allowed_tools == ["Read", "Write", "Edit", "Bash", "Glob", "Grep"]
    assert options.claude_bin == "/opt/claude"
    assert options.stdout_limit == 1024
    assert options.setting_sources == ["project"]
    assert options.include_partial_messages is True
    assert not options.cancel_event.is_set()


def test_disposable_profile_has_no_tools() -> None:
    options = build_base_options("/work", DISPOSABLE_PROFILE)

    assert options.allowed_tools == []


def test_each_options_object_gets_its_own_cancel_event() -> None:
    first = build_base_options("/work", EDITS_PROFILE)
    second = build_base_options("/work", EDITS_PROFILE)

    first.cancel_event.set()

    assert not second.cancel_event.is_set()


def test_query_options_skip_missing_style_and_servers(tmp_path) -> None:
    pod = _pod(output_style_id="gone", mcp_server_ids=("missing",))

    options = build_query_options(
        pod,
        "/work",
        EDITS_PROFILE,
        styles=FakeStyles(),
        tool_servers=FakeToolServers(),
    )

    assert options.system_prompt is None
    assert options.mcp_servers is None
    assert options.resume is None
    assert options.model == "sonnet"


def test_query_options_map_servers_by_name() -> None:
    pod = _pod(mcp_server_ids=("a", "b"), claude_session_id="s9")
    servers = FakeToolServers(
        {
            "a": ToolServer(name="alpha", config={"command": "alpha"}),
            "b": ToolServer(name="beta", config={"url": "http://localhost:9000"}),
        }
    )

    options = build_query_options(pod, "/work", EDITS_PROFILE, tool_servers=servers)

    assert options.mcp_servers == {
        "alpha": {"command": "alpha"},
        "beta": {"url": "http://localhost:9000"},
    }
    assert options.resume == "s9"
