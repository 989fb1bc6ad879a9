"""Per-turn query options for Claude."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from podstream.config import EngineConfig, TurnProfile
from podstream.errors import PathTraversalError
from podstream.models import PodSnapshot
from podstream.runners.ports import StyleLookup, ToolServerLookup

log = logging.getLogger("claude")


@dataclass
class QueryOptions:
    cwd: str
    allowed_tools: list[str]
    permission_mode: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    include_partial_messages: bool = True
    setting_sources: list[str] = field(default_factory=lambda: ["project"])
    claude_bin: str = "claude"
    stdout_limit: int | None = None
    system_prompt: str | None = None
    mcp_servers: dict[str, dict] | None = None
    resume: str | None = None
    model: str | None = None


def _is_within(path: Path, directory: Path) -> bool:
    return path == directory or directory in path.parents


def resolve_cwd(pod: PodSnapshot, repositories_root: Path | str) -> str:
    """Working directory for a pod's turn.

    Repository-bound pods run inside `repositories_root/<repository_id>`; any
    id that canonicalizes outside the root is rejected.
    """
    if not pod.repository_id:
        return str(Path(pod.workspace_path).resolve())

    root = Path(repositories_root).resolve()
    candidate = (root / pod.repository_id).resolve()
    if not _is_within(candidate, root):
        log.warning(f"Rejected repository path {pod.repository_id!r} for pod {pod.id}")
        raise PathTraversalError(pod.repository_id, root=str(root))
    return str(candidate)


def build_base_options(
    cwd: str,
    profile: TurnProfile,
    config: EngineConfig | None = None,
) -> QueryOptions:
    options = QueryOptions(
        cwd=cwd,
        allowed_tools=list(profile.allowed_tools),
        permission_mode=profile.permission_mode,
    )
    if config is not None:
        options.claude_bin = config.claude_bin
        options.stdout_limit = config.stdout_limit
        options.setting_sources = list(config.setting_sources)
    return options


def build_tool_server_map(pod: PodSnapshot, tool_servers: ToolServerLookup | None) -> dict[str, dict] | None:
    if not pod.mcp_server_ids or tool_servers is None:
        return None
    servers = tool_servers.get_by_ids(list(pod.mcp_server_ids))
    if not servers:
        return None
    return {server.name: server.config for server in servers}


def build_query_options(
    pod: PodSnapshot,
    cwd: str,
    profile: TurnProfile,
    *,
    config: EngineConfig | None = None,
    styles: StyleLookup | None = None,
    tool_servers: ToolServerLookup | None = None,
) -> QueryOptions:
    options = build_base_options(cwd, profile, config)

    if pod.output_style_id and styles is not None:
        style_content = styles.get_content(pod.output_style_id)
        if style_content:
            options.system_prompt = style_content

    options.mcp_servers = build_tool_server_map(pod, tool_servers)

    if pod.claude_session_id:
        options.resume = pod.claude_session_id

    options.model = pod.model
    return options
