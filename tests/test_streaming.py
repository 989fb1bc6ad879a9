from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedProvider, assistant_text, assistant_tool, failure, init, success, tool_result
from podstream.core.streaming import StreamingChatExecutor, SubMessageState
from podstream.errors import ProviderError, TurnCancelledError
from podstream.runners.ports import CompleteEvent, ToolResultEvent, ToolUseEvent


class RecordingMessages:
    def __init__(self) -> None:
        self.upserts: list[tuple[str, str, dict]] = []

    def upsert_message(self, canvas_id: str, pod_id: str, message: dict) -> None:
        self.upserts.append((canvas_id, pod_id, message))

    @property
    def last(self) -> dict:
        return self.upserts[-1][2]


class RecordingSink:
    def __init__(self) -> None:
        self.events: list = []

    async def emit(self, canvas_id: str, pod_id: str, message_id: str, event) -> None:
        self.events.append((message_id, event))


def test_tool_after_text_starts_new_sub_message() -> None:
    state = SubMessageState(message_id="m1")
    state.add_text("Looking")
    state.add_tool_use(ToolUseEvent(tool_use_id="t1", tool_name="Read", input={}))
    state.add_tool_result(ToolResultEvent(tool_use_id="t1", tool_name="Read", output="body"))
    state.add_text("Done")
    state.flush()

    snapshot = state.snapshot()

    assert snapshot["content"] == "LookingDone"
    assert [sub["id"] for sub in snapshot["subMessages"]] == ["m1-sub-0", "m1-sub-1"]
    assert snapshot["subMessages"][0] == {"id": "m1-sub-0", "content": "Looking"}
    assert snapshot["subMessages"][1]["content"] == "Done"
    assert snapshot["subMessages"][1]["toolUse"] == [
        {"toolUseId": "t1", "toolName": "Read", "input": {}, "status": "completed", "output": "body"}
    ]


def test_whitespace_text_does_not_split() -> None:
    state = SubMessageState(message_id="m1")
    state.add_text("\n")
    state.add_tool_use(ToolUseEvent(tool_use_id="t1", tool_name="Bash", input={}))

    assert state.sub_messages == []
    assert len(state.snapshot()["subMessages"]) == 1


def test_result_updates_flushed_sub_message() -> None:
    state = SubMessageState(message_id="m1")
    state.add_tool_use(ToolUseEvent(tool_use_id="t1", tool_name="Bash", input={}))
    state.flush()

    state.add_tool_result(ToolResultEvent(tool_use_id="t1", tool_name="Bash", output="ok"))

    assert state.sub_messages[0]["toolUse"][0]["output"] == "ok"


def test_snapshot_is_independent_of_state() -> None:
    state = SubMessageState(message_id="m1")
    state.add_tool_use(ToolUseEvent(tool_use_id="t1", tool_name="Bash", input={}))
    snapshot = state.snapshot()

    state.add_tool_result(ToolResultEvent(tool_use_id="t1", tool_name="Bash", output="later"))

    assert "output" not in snapshot["subMessages"][0]["toolUse"][0]


@pytest.mark.asyncio
async def test_execute_persists_and_forwards_events(make_engine, make_pod) -> None:
    make_pod()
    provider = ScriptedProvider(
        [
            init("s1"),
            assistant_text("Checking"),
            assistant_tool("t1", "Read", {"file_path": "x"}),
            tool_result("t1", "contents"),
            assistant_text("All good"),
            success(),
        ]
    )
    messages = RecordingMessages()
    sink = RecordingSink()
    completed: list = []

    async def on_complete(canvas_id: str, pod_id: str) -> None:
        completed.append((canvas_id, pod_id))

    executor = StreamingChatExecutor(make_engine(provider), messages, events=sink)
    result = await executor.execute("test-canvas", "test-pod-id", "Check x", on_complete=on_complete)

    assert result.aborted is False
    assert result.has_content
    assert result.content == "CheckingAll good"
    assert completed == [("test-canvas", "test-pod-id")]
    assert all(message_id == result.message_id for message_id, _ in sink.events)
    assert isinstance(sink.events[-1][1], CompleteEvent)
    assert len(messages.upserts) == 5
    final = messages.last
    assert final["id"] == result.message_id
    assert final["role"] == "assistant"
    assert [sub["content"] for sub in final["subMessages"]] == ["Checking", "All good"]
    assert final["subMessages"][1]["toolUse"][0]["output"] == "contents"


@pytest.mark.asyncio
async def test_execute_abort_keeps_partial_reply(make_engine, make_pod) -> None:
    make_pod()
    started = asyncio.Event()

    async def stops_on_cancel(index, prompt, options):
        yield assistant_text("partial")
        started.set()
        await options.cancel_event.wait()
        raise TurnCancelledError()

    engine = make_engine(ScriptedProvider(stops_on_cancel))
    messages = RecordingMessages()
    aborted: list = []

    async def on_aborted(canvas_id: str, pod_id: str, message_id: str) -> None:
        aborted.append(message_id)

    executor = StreamingChatExecutor(engine, messages)
    task = asyncio.create_task(executor.execute("test-canvas", "test-pod-id", "go", on_aborted=on_aborted))
    await started.wait()
    engine.abort("test-pod-id")
    result = await task

    assert result.aborted is True
    assert result.content == "partial"
    assert aborted == [result.message_id]
    assert messages.last["subMessages"] == [{"id": f"{result.message_id}-sub-0", "content": "partial"}]


@pytest.mark.asyncio
async def test_execute_abort_propagates_without_abort_support(make_engine, make_pod) -> None:
    make_pod()

    async def cancelled(index, prompt, options):
        raise TurnCancelledError()
        yield  # pragma: no cover

    executor = StreamingChatExecutor(make_engine(ScriptedProvider(cancelled)), RecordingMessages())

    with pytest.raises(TurnCancelledError):
        await executor.execute("test-canvas", "test-pod-id", "go", support_abort=False)


@pytest.mark.asyncio
async def test_execute_reports_errors(make_engine, make_pod) -> None:
    make_pod()
    errors: list = []

    async def on_error(canvas_id: str, pod_id: str, error: BaseException) -> None:
        errors.append(error)

    messages = RecordingMessages()
    sink = RecordingSink()
    executor = StreamingChatExecutor(make_engine(ScriptedProvider([failure("boom")])), messages, events=sink)

    with pytest.raises(ProviderError):
        await executor.execute("test-canvas", "test-pod-id", "go", on_error=on_error)

    assert len(errors) == 1
    assert messages.upserts == []
    assert [event.type for _, event in sink.events] == ["error"]
