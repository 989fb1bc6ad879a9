"""Engine configuration.

Values come from the environment (optionally seeded from a `.env` file via
`load_env()`); call sites pick a `TurnProfile` for tool access.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STDOUT_LIMIT = 10 * 1024 * 1024


@dataclass(frozen=True)
class TurnProfile:
    """Tool access a call site runs the agent with."""

    name: str
    allowed_tools: tuple[str, ...]
    permission_mode: str


FULL_PROFILE = TurnProfile(
    name="full",
    allowed_tools=("Read", "Write", "Edit", "Bash", "Glob", "Grep", "Skill", "WebSearch"),
    permission_mode="bypassPermissions",
)

EDITS_PROFILE = TurnProfile(
    name="edits",
    allowed_tools=("Read", "Write", "Edit", "Bash", "Glob", "Grep"),
    permission_mode="acceptEdits",
)

DISPOSABLE_PROFILE = TurnProfile(
    name="disposable",
    allowed_tools=(),
    permission_mode="bypassPermissions",
)

PROFILES = {
    "full": FULL_PROFILE,
    "edits": EDITS_PROFILE,
}


def get_profile(name: str | None) -> TurnProfile:
    key = (name or "full").strip().lower()
    profile = PROFILES.get(key)
    if profile is None:
        raise ValueError(f"Unknown profile: {name}")
    return profile


@dataclass(frozen=True)
class EngineConfig:
    repositories_root: Path
    claude_bin: str = "claude"
    stdout_limit: int = DEFAULT_STDOUT_LIMIT
    profile: TurnProfile = FULL_PROFILE
    setting_sources: tuple[str, ...] = ("project",)


def _default_repositories_root() -> Path:
    default = Path.home() / ".podstream" / "repositories"
    return Path(os.getenv("PODSTREAM_REPOSITORIES_ROOT", str(default))).expanduser()


def get_engine_config() -> EngineConfig:
    claude_bin = (os.getenv("CLAUDE_BIN") or "claude").strip() or "claude"
    stdout_limit = int(os.getenv("PODSTREAM_STDOUT_LIMIT", str(DEFAULT_STDOUT_LIMIT)))
    return EngineConfig(
        repositories_root=_default_repositories_root(),
        claude_bin=claude_bin,
        stdout_limit=stdout_limit,
        profile=get_profile(os.getenv("PODSTREAM_PROFILE")),
    )


def load_env(env_path: Path | None = None, *, override: bool = False) -> list[str]:
    """Seed os.environ from a .env file and return the keys that were set.

    Variables already present in the process environment win unless
    `override` is true, so `CLAUDE_BIN=... podstream chat ...` still applies
    when a .env file sets the same key. Lines may use `export KEY=value`.
    """
    path = env_path or Path.cwd() / ".env"
    if not path.is_file():
        return []

    loaded: list[str] = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, value = (part.strip() for part in line.split("=", 1))
        if not key or (key in os.environ and not override):
            continue
        os.environ[key] = value.strip('"').strip("'")
        loaded.append(key)
    return loaded
