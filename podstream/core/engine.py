"""TurnEngine.

This is the single place that owns:
- one turn per pod (registry entry + cooperative cancellation)
- the session-expired retry and error sanitization
- session id persistence after a successful turn

It depends only on ports and a provider callable, not on concrete storage
or transport.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from typing import AsyncIterator

from podstream.config import DISPOSABLE_PROFILE, EngineConfig, TurnProfile, get_engine_config
from podstream.core.policy import MAX_ATTEMPTS, should_retry_session
from podstream.core.ports import PodStorePort, SessionStorePort
from podstream.core.registry import ActiveQuery, QueryRegistry
from podstream.errors import (
    PodNotFoundError,
    ProviderError,
    TurnCancelledError,
    error_text,
)
from podstream.models import AssistantReply, DisposableResult, MessageInput, PodSnapshot
from podstream.runners.base import TurnState
from podstream.runners.claude.options import (
    QueryOptions,
    build_base_options,
    build_query_options,
    resolve_cwd,
)
from podstream.runners.claude.processor import ClaudeStreamProcessor
from podstream.runners.claude.prompt import build_prompt, build_text_prompt
from podstream.runners.claude.runner import ClaudeCliProvider
from podstream.runners.ports import (
    CompleteEvent,
    ErrorEvent,
    NormalizedEvent,
    Provider,
    ProviderMessage,
    ProviderPrompt,
    StreamCallback,
    StyleLookup,
    ToolServerLookup,
)

log = logging.getLogger("engine")


async def _emit(on_stream: StreamCallback, event: NormalizedEvent) -> None:
    result = on_stream(event)
    if inspect.isawaitable(result):
        await result


async def _close_stream(stream: object) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class TurnEngine:
    def __init__(
        self,
        *,
        pods: PodStorePort,
        sessions: SessionStorePort,
        provider: Provider | None = None,
        registry: QueryRegistry | None = None,
        config: EngineConfig | None = None,
        profile: TurnProfile | None = None,
        styles: StyleLookup | None = None,
        tool_servers: ToolServerLookup | None = None,
    ):
        self._pods = pods
        self._sessions = sessions
        self._provider: Provider = provider or ClaudeCliProvider()
        self.registry = registry if registry is not None else QueryRegistry()
        self._config = config or get_engine_config()
        self._profile = profile or self._config.profile
        self._styles = styles
        self._tool_servers = tool_servers
        self._processor = ClaudeStreamProcessor()

    def abort(self, pod_id: str) -> bool:
        return self.registry.abort(pod_id)

    def shutdown(self) -> int:
        """Signal every in-flight turn to stop."""
        return self.registry.abort_all()

    async def send_message(
        self,
        pod_id: str,
        message: MessageInput,
        on_stream: StreamCallback,
        *,
        connection_id: str | None = None,
    ) -> AssistantReply:
        """Run one turn for a pod, streaming normalized events to `on_stream`.

        Raises `TurnCancelledError` when aborted. Any other failure is
        reported to `on_stream` as a generic `ErrorEvent` and then re-raised.
        """
        lookup = self._pods.get_by_id_global(pod_id)
        if lookup is None:
            raise PodNotFoundError(pod_id)

        canvas_id = lookup.canvas_id
        pod = lookup.pod

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return await self._run_attempt(
                    canvas_id, pod, message, on_stream, connection_id=connection_id
                )
            except TurnCancelledError:
                log.info(f"Pod {pod_id} query cancelled")
                raise
            except Exception as e:
                if should_retry_session(e, pod.claude_session_id, attempt):
                    log.info(
                        f"Session resume failed for Pod {pod_id}, clearing session ID and retrying"
                    )
                    self._sessions.set_claude_session_id(canvas_id, pod_id, "")
                    pod = dataclasses.replace(pod, claude_session_id=None)
                    continue

                if attempt > 1:
                    log.error(f"Pod {pod_id} retry still failed: {error_text(e)}")
                else:
                    log.error(f"Pod {pod_id} query failed: {error_text(e)}")
                await _emit(on_stream, ErrorEvent())
                raise

        # The last attempt either returns or raises.
        raise AssertionError("retry loop exhausted")

    async def _run_attempt(
        self,
        canvas_id: str,
        pod: PodSnapshot,
        message: MessageInput,
        on_stream: StreamCallback,
        *,
        connection_id: str | None,
    ) -> AssistantReply:
        state = TurnState()
        cwd = resolve_cwd(pod, self._config.repositories_root)
        options = build_query_options(
            pod,
            cwd,
            self._profile,
            config=self._config,
            styles=self._styles,
            tool_servers=self._tool_servers,
        )
        prompt = build_prompt(message, pod.command_id, pod.claude_session_id)
        handle = ActiveQuery(cancel_event=options.cancel_event, connection_id=connection_id)

        self.registry.start(pod.id, handle)
        try:
            await self._consume(prompt, options, state, on_stream, handle)
        except TurnCancelledError:
            raise
        except Exception as e:
            # Checked after the stream is closed: an abort may land while
            # the provider is still shutting down.
            if handle.cancelled:
                raise TurnCancelledError() from e
            raise
        finally:
            self.registry.end(pod.id)

        if not state.terminal:
            log.warning(f"Pod {pod.id} stream ended without a result message")
        log.info(f"Pod {pod.id} turn done {self._processor.summary(state)}")

        if state.session_id and state.session_id != pod.claude_session_id:
            self._sessions.set_claude_session_id(canvas_id, pod.id, state.session_id)

        return AssistantReply(pod_id=pod.id, content=state.text, tool_use=state.current_tool)

    async def _consume(
        self,
        prompt: ProviderPrompt,
        options: QueryOptions,
        state: TurnState,
        on_stream: StreamCallback,
        handle: ActiveQuery,
    ) -> None:
        stream = self._provider(prompt, options)
        try:
            async for raw in stream:
                for event in self._processor.parse_event(raw, state):
                    if isinstance(event, ErrorEvent):
                        raise ProviderError(state.failure or "Unknown error", subtype=state.failure_subtype)
                    await _emit(on_stream, event)
        finally:
            await _close_stream(stream)

        # A provider may stop without raising once its signal is set.
        if handle.cancelled:
            raise TurnCancelledError()

    async def run_disposable(
        self,
        system_prompt: str,
        user_message: str,
        workspace_path: str,
    ) -> DisposableResult:
        """One-off tool-less query; failures come back in the result."""
        options = build_base_options(workspace_path, DISPOSABLE_PROFILE, self._config)
        options.system_prompt = system_prompt
        state = TurnState()
        log.info(f"Disposable chat, system prompt length: {len(system_prompt)} chars")

        stream = self._provider(build_text_prompt(user_message, None), options)
        try:
            async for raw in stream:
                for event in self._processor.parse_event(raw, state):
                    if isinstance(event, ErrorEvent):
                        log.error(f"Disposable chat failed: {state.failure}")
                        return DisposableResult(success=False, error=state.failure or "Unknown error")
                    if isinstance(event, CompleteEvent):
                        return DisposableResult(success=True, content=state.result_text or state.text)
        except Exception as e:
            log.exception("Disposable chat failed")
            return DisposableResult(success=False, error=error_text(e))
        finally:
            await _close_stream(stream)

        return DisposableResult(success=True, content=state.text)

    def open_raw_stream(
        self,
        prompt: ProviderPrompt,
        *,
        cwd: str,
        system_prompt: str | None = None,
        mcp_servers: dict[str, dict] | None = None,
        allowed_tools: list[str] | None = None,
        model: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ProviderMessage]:
        """Provider messages exactly as emitted, without normalization."""
        options = build_base_options(cwd, self._profile, self._config)
        if cancel_event is not None:
            options.cancel_event = cancel_event
        options.system_prompt = system_prompt
        options.mcp_servers = mcp_servers
        options.allowed_tools = list(allowed_tools or [])
        options.model = model
        return self._provider(prompt, options)
