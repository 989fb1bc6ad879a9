"""Command line entry point.

    python -m podstream add-pod POD_ID --canvas C --workspace DIR --model M
    python -m podstream chat POD_ID "message"
    python -m podstream ask --system "..." "message"

Ctrl-C during `chat` aborts the turn through the registry.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from podstream.config import get_engine_config, get_profile, load_env
from podstream.core.engine import TurnEngine
from podstream.core.streaming import StreamingChatExecutor
from podstream.db import DB_PATH, MessageRepository, PodRepository, init_db
from podstream.errors import TurnError
from podstream.models import PodSnapshot
from podstream.resources import OutputStyleStore, ToolServerStore
from podstream.runners.ports import NormalizedEvent, TextEvent, ToolResultEvent, ToolUseEvent

log = logging.getLogger("podstream")


class _PrintSink:
    async def emit(self, canvas_id: str, pod_id: str, message_id: str, event: NormalizedEvent) -> None:
        if isinstance(event, TextEvent):
            sys.stdout.write(event.content)
            sys.stdout.flush()
        elif isinstance(event, ToolUseEvent):
            print(f"\n[tool:{event.tool_name.lower()}] {event.tool_use_id}")
        elif isinstance(event, ToolResultEvent):
            preview = " ".join(event.output.split())[:120]
            print(f"[result:{event.tool_name.lower()}] {preview}")
        else:
            print(f"\n[{event.type}]")


def _build_engine(args: argparse.Namespace, pods: PodRepository) -> TurnEngine:
    config = get_engine_config()
    profile = get_profile(args.profile) if args.profile else config.profile
    styles = OutputStyleStore(Path(args.styles)) if args.styles else None
    tool_servers = ToolServerStore(Path(args.tool_servers)) if args.tool_servers else None
    return TurnEngine(
        pods=pods,
        sessions=pods,
        config=config,
        profile=profile,
        styles=styles,
        tool_servers=tool_servers,
    )


async def _chat(args: argparse.Namespace) -> int:
    conn = init_db(args.db)
    pods = PodRepository(conn)
    lookup = pods.get_by_id_global(args.pod_id)
    if lookup is None:
        conn.close()
        print(f"Pod {args.pod_id} not found", file=sys.stderr)
        return 1

    engine = _build_engine(args, pods)
    executor = StreamingChatExecutor(engine, MessageRepository(conn), events=_PrintSink())

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, engine.abort, args.pod_id)
    except NotImplementedError:
        pass

    try:
        result = await executor.execute(lookup.canvas_id, args.pod_id, args.message)
    except TurnError as e:
        log.error(f"Turn failed: {e}")
        return 1
    finally:
        conn.close()

    if result.aborted:
        print("\nCancelled.")
        return 130
    return 0


async def _ask(args: argparse.Namespace) -> int:
    config = get_engine_config()
    engine = TurnEngine(pods=_NoPods(), sessions=_NoPods(), config=config)
    result = await engine.run_disposable(args.system, args.message, args.cwd)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    print(result.content)
    return 0


class _NoPods:
    def get_by_id_global(self, pod_id: str):
        return None

    def set_claude_session_id(self, canvas_id: str, pod_id: str, session_id: str) -> None:
        return None


def _add_pod(args: argparse.Namespace) -> int:
    conn = init_db(args.db)
    try:
        PodRepository(conn).upsert(
            args.canvas,
            PodSnapshot(
                id=args.pod_id,
                workspace_path=str(Path(args.workspace).expanduser().resolve()),
                model=args.model,
                repository_id=args.repository,
                output_style_id=args.style,
                command_id=args.command_id,
                mcp_server_ids=tuple(args.tool_server or ()),
            ),
        )
    finally:
        conn.close()
    print(f"Saved pod {args.pod_id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="podstream", description="Run agent turns for pods")
    parser.add_argument("--db", default=str(DB_PATH), help="SQLite database path")
    parser.add_argument("--env", default=None, help=".env file to load")
    parser.add_argument(
        "--env-override",
        action="store_true",
        help="Let .env values replace variables already set in the environment",
    )
    sub = parser.add_subparsers(dest="action", required=True)

    add = sub.add_parser("add-pod", help="Create or update a pod")
    add.add_argument("pod_id")
    add.add_argument("--canvas", default="default")
    add.add_argument("--workspace", required=True)
    add.add_argument("--model", default="sonnet")
    add.add_argument("--repository", default=None)
    add.add_argument("--style", default=None)
    add.add_argument("--slash-command", dest="command_id", default=None)
    add.add_argument("--tool-server", action="append", default=None)

    chat = sub.add_parser("chat", help="Send one message to a pod")
    chat.add_argument("pod_id")
    chat.add_argument("message")
    chat.add_argument("--profile", default=None, choices=["full", "edits"])
    chat.add_argument("--styles", default=None, help="Output style directory")
    chat.add_argument("--tool-servers", default=None, help="Tool server JSON file")

    ask = sub.add_parser("ask", help="Run a disposable, tool-less query")
    ask.add_argument("message")
    ask.add_argument("--system", default="")
    ask.add_argument("--cwd", default=".")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    loaded = load_env(Path(args.env) if args.env else None, override=args.env_override)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    if loaded:
        log.info(f"Loaded {len(loaded)} setting(s) from .env")

    if args.action == "add-pod":
        return _add_pod(args)
    if args.action == "chat":
        return asyncio.run(_chat(args))
    return asyncio.run(_ask(args))


if __name__ == "__main__":
    sys.exit(main())
