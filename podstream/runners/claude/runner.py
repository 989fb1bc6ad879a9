"""Claude Code CLI provider."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Callable

from podstream.config import DEFAULT_STDOUT_LIMIT
from podstream.errors import ProviderError, TurnCancelledError
from podstream.runners.claude.options import QueryOptions
from podstream.runners.pipeline import JSONLineStats, iter_json_lines
from podstream.runners.ports import ProviderMessage, ProviderPrompt
from podstream.runners.subprocess_transport import SubprocessTransport

log = logging.getLogger("claude")


class ClaudeCliProvider:
    """Runs Claude Code and streams its stream-json messages unmodified.

    Cancellation is cooperative: the provider watches `options.cancel_event`
    and raises `TurnCancelledError` once it is set, then tears its own
    process down.
    """

    def __init__(self, transport_factory: Callable[[], SubprocessTransport] = SubprocessTransport):
        self._transport_factory = transport_factory

    def build_command(self, prompt: ProviderPrompt, options: QueryOptions) -> list[str]:
        """Build the claude command line."""
        cmd = [options.claude_bin, "-p"]
        if not isinstance(prompt, str):
            cmd.extend(["--input-format", "stream-json"])

        cmd.extend(["--output-format", "stream-json", "--verbose"])

        if options.include_partial_messages:
            cmd.append("--include-partial-messages")
        if options.permission_mode:
            cmd.extend(["--permission-mode", options.permission_mode])
        if options.allowed_tools:
            cmd.extend(["--allowedTools", ",".join(options.allowed_tools)])
        if options.setting_sources:
            cmd.extend(["--setting-sources", ",".join(options.setting_sources)])
        if options.system_prompt:
            cmd.extend(["--system-prompt", options.system_prompt])
        if options.mcp_servers:
            cmd.extend(["--mcp-config", json.dumps({"mcpServers": options.mcp_servers})])
        if options.resume:
            cmd.extend(["--resume", options.resume])
        if options.model:
            cmd.extend(["--model", options.model])
        if isinstance(prompt, str):
            # "--" ends option parsing; the prompt may start with "-".
            cmd.extend(["--", prompt])
        return cmd

    async def __call__(self, prompt: ProviderPrompt, options: QueryOptions) -> AsyncIterator[ProviderMessage]:
        if options.cancel_event.is_set():
            raise TurnCancelledError()

        streaming_input = not isinstance(prompt, str)
        cmd = self.build_command(prompt, options)
        transport = self._transport_factory()
        preview = prompt[:50] if isinstance(prompt, str) else "<stream-json>"
        log.info(f"Claude: {preview}...")

        try:
            stdout = await transport.start(
                cmd,
                cwd=options.cwd,
                stdout_limit=options.stdout_limit or DEFAULT_STDOUT_LIMIT,
                stdin=streaming_input,
            )

            if streaming_input:
                async for message in prompt:
                    await transport.write_line(json.dumps(message))
                await transport.close_stdin()

            stats = JSONLineStats()
            async for message in iter_json_lines(
                stdout,
                cancel_event=options.cancel_event,
                stats=stats,
            ):
                yield message

            returncode = await transport.wait()

            # Resume failures and flag errors surface as plain text with no
            # JSON at all; pass that text on so callers can classify it.
            if not stats.emitted_any:
                detail = "\n".join(stats.non_json_lines) or f"exit code {returncode}"
                raise ProviderError(f"Claude produced no JSON events: {detail}")
            if returncode != 0 and not stats.saw_result:
                raise ProviderError(f"Claude exited with code {returncode}")
        finally:
            await transport.cancel_and_kill()
