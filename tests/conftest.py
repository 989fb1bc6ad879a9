from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Callable

import pytest

from podstream.config import EngineConfig
from podstream.core.engine import TurnEngine
from podstream.core.registry import QueryRegistry
from podstream.models import PodLookup, PodSnapshot, ToolServer


class FakePodStore:
    """In-memory pod store that also records session id writes."""

    def __init__(self) -> None:
        self.pods: dict[str, PodLookup] = {}
        self.session_calls: list[tuple[str, str, str]] = []

    def add(self, pod: PodSnapshot, canvas_id: str = "test-canvas") -> PodSnapshot:
        self.pods[pod.id] = PodLookup(canvas_id=canvas_id, pod=pod)
        return pod

    def get_by_id_global(self, pod_id: str) -> PodLookup | None:
        return self.pods.get(pod_id)

    def set_claude_session_id(self, canvas_id: str, pod_id: str, session_id: str) -> None:
        self.session_calls.append((canvas_id, pod_id, session_id))
        lookup = self.pods.get(pod_id)
        if lookup is not None:
            pod = dataclasses.replace(lookup.pod, claude_session_id=session_id or None)
            self.pods[pod_id] = PodLookup(canvas_id=lookup.canvas_id, pod=pod)


class FakeStyles:
    def __init__(self, styles: dict[str, str] | None = None) -> None:
        self.styles = styles or {}

    def get_content(self, style_id: str) -> str | None:
        return self.styles.get(style_id)


class FakeToolServers:
    def __init__(self, servers: dict[str, ToolServer] | None = None) -> None:
        self.servers = servers or {}

    def get_by_ids(self, ids) -> list[ToolServer]:
        return [self.servers[i] for i in ids if i in self.servers]


class ScriptedProvider:
    """Provider double: each call plays the next script.

    A script is either a list of raw messages or a callable
    `(call_index, prompt, options) -> async iterator`.
    """

    def __init__(self, *scripts: list[dict] | Callable[..., Any]) -> None:
        self._scripts = list(scripts)
        self.calls: list[tuple[Any, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def __call__(self, prompt, options):
        index = len(self.calls)
        self.calls.append((prompt, options))
        script = self._scripts[min(index, len(self._scripts) - 1)]
        if callable(script):
            return script(index, prompt, options)
        return _play(script)


async def _play(messages: list[dict]):
    for message in messages:
        yield message


def init(session_id: str) -> dict:
    return {"type": "system", "subtype": "init", "session_id": session_id}


def assistant_text(text: str) -> dict:
    return {"type": "assistant", "message": {"content": [{"type": "text", "text": text}]}}


def assistant_tool(tool_id: str, name: str, tool_input: dict) -> dict:
    return {
        "type": "assistant",
        "message": {
            "content": [{"type": "tool_use", "id": tool_id, "name": name, "input": tool_input}]
        },
    }


def tool_result(tool_id: str, content: Any) -> dict:
    return {
        "type": "user",
        "message": {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": tool_id, "content": content}],
        },
    }


def success(result: str = "") -> dict:
    return {"type": "result", "subtype": "success", "result": result, "is_error": False}


def failure(*errors: str) -> dict:
    return {"type": "result", "subtype": "error_during_execution", "errors": list(errors)}


@pytest.fixture
def pods() -> FakePodStore:
    return FakePodStore()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def engine_config(tmp_path: Path) -> EngineConfig:
    root = tmp_path / "repos"
    root.mkdir()
    return EngineConfig(repositories_root=root)


@pytest.fixture
def make_pod(pods: FakePodStore, workspace: Path):
    def _make(**overrides: Any) -> PodSnapshot:
        fields: dict[str, Any] = {
            "id": "test-pod-id",
            "workspace_path": str(workspace),
            "model": "claude-sonnet-4-5-20250929",
        }
        fields.update(overrides)
        return pods.add(PodSnapshot(**fields))

    return _make


@pytest.fixture
def make_engine(pods: FakePodStore, engine_config: EngineConfig):
    def _make(provider: ScriptedProvider, **kwargs: Any) -> TurnEngine:
        kwargs.setdefault("registry", QueryRegistry())
        return TurnEngine(
            pods=pods,
            sessions=pods,
            provider=provider,
            config=engine_config,
            **kwargs,
        )

    return _make
