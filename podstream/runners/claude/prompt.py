"""Prompt conversion for Claude queries."""

from __future__ import annotations

from typing import AsyncIterator

from podstream.models import ContentBlock, ImageBlock, MessageInput, TextBlock
from podstream.runners.ports import ProviderMessage, ProviderPrompt

# The provider must never receive empty input.
FALLBACK_PROMPT = "請開始執行"


def _command_prefix(command_id: str | None) -> str:
    return f"/{command_id}" if command_id else ""


def build_text_prompt(message: str, command_id: str | None) -> str:
    prompt = f"/{command_id} {message}" if command_id else message
    if not prompt.strip():
        return FALLBACK_PROMPT
    return prompt


def build_content_blocks(blocks: list[ContentBlock], command_id: str | None) -> list[dict]:
    """Convert input blocks to provider blocks, applying the command prefix.

    The prefix goes on the first text block; without one, it becomes a new
    leading text block.
    """
    content: list[dict] = []
    prefixed = not command_id

    for block in blocks:
        if isinstance(block, TextBlock):
            text = block.text
            if not prefixed:
                text = f"/{command_id} {text}"
                prefixed = True
            if not text.strip():
                continue
            content.append({"type": "text", "text": text})
        elif isinstance(block, ImageBlock):
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": block.media_type,
                        "data": block.base64_data,
                    },
                }
            )

    if not prefixed:
        content.insert(0, {"type": "text", "text": _command_prefix(command_id)})

    if not content:
        content.append({"type": "text", "text": FALLBACK_PROMPT})

    return content


def user_message(content: list[dict], session_id: str) -> ProviderMessage:
    return {
        "type": "user",
        "message": {"role": "user", "content": content},
        "parent_tool_use_id": None,
        "session_id": session_id,
    }


async def user_message_stream(content: list[dict], session_id: str) -> AsyncIterator[ProviderMessage]:
    yield user_message(content, session_id)


def build_prompt(
    message: MessageInput,
    command_id: str | None,
    resume_session_id: str | None,
) -> ProviderPrompt:
    if isinstance(message, str):
        return build_text_prompt(message, command_id)

    content = build_content_blocks(message, command_id)
    return user_message_stream(content, resume_session_id or "")
