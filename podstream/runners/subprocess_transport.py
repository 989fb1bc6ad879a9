"""Subprocess transport helpers for providers."""

from __future__ import annotations

import asyncio
import logging

log = logging.getLogger(__name__)


class SubprocessTransport:
    def __init__(self):
        self.process: asyncio.subprocess.Process | None = None

    async def start(
        self,
        cmd: list[str],
        *,
        cwd: str,
        stdout_limit: int,
        stdin: bool = False,
    ) -> asyncio.StreamReader:
        self.process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            limit=stdout_limit,
        )

        if self.process.stdout is None:
            raise RuntimeError("Subprocess stdout missing")

        return self.process.stdout

    async def write_line(self, line: str) -> None:
        if not self.process or not self.process.stdin:
            raise RuntimeError("Subprocess stdin missing")
        self.process.stdin.write(line.encode() + b"\n")
        await self.process.stdin.drain()

    async def close_stdin(self) -> None:
        if not self.process or not self.process.stdin:
            return
        self.process.stdin.close()
        try:
            await self.process.stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            pass

    async def wait(self) -> int:
        if not self.process:
            return 0
        await self.process.wait()
        return int(self.process.returncode or 0)

    async def cancel_and_kill(self, timeout: float = 5.0) -> None:
        """Terminate the process, wait, then force-kill if still alive."""
        proc = self.process
        if not proc or proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except (asyncio.TimeoutError, ProcessLookupError):
            log.warning("Process %s did not exit after SIGTERM, sending SIGKILL", proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
