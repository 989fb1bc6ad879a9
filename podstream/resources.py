"""File-backed lookups for output styles and tool servers."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Sequence

from podstream.models import ToolServer

log = logging.getLogger("resources")

_RESOURCE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,100}$")


def is_valid_resource_id(resource_id: str) -> bool:
    return bool(resource_id) and bool(_RESOURCE_ID_RE.match(resource_id))


class OutputStyleStore:
    """Output styles stored as `<base_dir>/<style_id>.md`."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def get_content(self, style_id: str) -> str | None:
        if not is_valid_resource_id(style_id):
            log.warning(f"Ignoring invalid output style id {style_id!r}")
            return None
        path = self.base_dir / f"{style_id}.md"
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            log.exception(f"Failed to read output style {style_id}")
            return None


class ToolServerStore:
    """MCP server configs kept in one JSON file.

    Format: `{"<id>": {"name": "...", "config": {...}}, ...}`.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            log.exception(f"Failed to load tool servers from {self.path}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_by_ids(self, ids: Sequence[str]) -> list[ToolServer]:
        data = self._load()
        servers: list[ToolServer] = []
        for server_id in ids:
            entry = data.get(server_id)
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            config = entry.get("config")
            if not isinstance(name, str) or not name or not isinstance(config, dict):
                log.warning(f"Skipping malformed tool server entry {server_id!r}")
                continue
            servers.append(ToolServer(name=name, config=config))
        return servers
