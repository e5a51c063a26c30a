"""Text-generation client.

Every model call goes through `LiteLLMClient`, which speaks litellm's
OpenAI-style chat format on the wire and hands back content blocks:

- ``{"type": "text", "text": ...}``
- ``{"type": "tool_use", "id": ..., "name": ..., "input": {...}}``

Transcripts are stored in the same block format, with tool results sent back
as a user turn of ``{"type": "tool_result", "tool_use_id", "content"}`` blocks.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# USD per million tokens
PRICING: dict[str, dict[str, float]] = {
    "claude-sonnet-4-5-20250929": {"input": 3.0, "output": 15.0},
    "claude-opus-4-6": {"input": 5.0, "output": 25.0},
}


def _price_key(model: str) -> str:
    # "anthropic/claude-opus-4-6" -> "claude-opus-4-6"
    return model.rsplit("/", 1)[-1]


def estimate_cost(model: str, tokens_in: int, tokens_out: int) -> float:
    """Estimate the USD cost of a call, using the default model's prices for unknown models."""
    pricing = PRICING.get(_price_key(model)) or PRICING[DEFAULT_MODEL]
    return (tokens_in * pricing["input"] + tokens_out * pricing["output"]) / 1_000_000


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class GenerationResponse:
    """One model response normalised to content blocks."""

    content_blocks: list[dict[str, Any]] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    @property
    def text(self) -> str:
        return "".join(
            block.get("text", "") for block in self.content_blocks if block.get("type") == "text"
        )

    @property
    def tool_uses(self) -> list[dict[str, Any]]:
        return [block for block in self.content_blocks if block.get("type") == "tool_use"]


class TextGenerationClient(Protocol):
    async def generate(
        self,
        model: str,
        max_output_tokens: int,
        system_prompt: str,
        transcript: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> GenerationResponse: ...


def to_chat_messages(
    system_prompt: str, transcript: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Convert a block transcript into litellm chat messages."""
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})

    for turn in transcript:
        role = turn.get("role", "user")
        content = turn.get("content")
        if isinstance(content, str):
            messages.append({"role": role, "content": content})
            continue

        blocks = content or []
        texts = [b.get("text", "") for b in blocks if b.get("type") == "text"]

        if role == "assistant":
            message: dict[str, Any] = {"role": "assistant", "content": "".join(texts) or None}
            tool_calls = [
                {
                    "id": b["id"],
                    "type": "function",
                    "function": {
                        "name": b["name"],
                        "arguments": json.dumps(b.get("input") or {}),
                    },
                }
                for b in blocks
                if b.get("type") == "tool_use"
            ]
            if tool_calls:
                message["tool_calls"] = tool_calls
            messages.append(message)
            continue

        for b in blocks:
            if b.get("type") == "tool_result":
                result = b.get("content", "")
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": b["tool_use_id"],
                        "content": result if isinstance(result, str) else json.dumps(result),
                    }
                )
        if texts:
            messages.append({"role": role, "content": "".join(texts)})

    return messages


def to_chat_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert `{name, description, input_schema}` declarations to function tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema") or {"type": "object", "properties": {}},
            },
        }
        for tool in tools
    ]


def parse_response(response: Any) -> GenerationResponse:
    """Normalise a litellm completion into content blocks."""
    message = response.choices[0].message
    blocks: list[dict[str, Any]] = []

    text = getattr(message, "content", None)
    if text:
        blocks.append({"type": "text", "text": text})

    for tc in getattr(message, "tool_calls", None) or []:
        function = getattr(tc, "function", None)
        name = getattr(function, "name", "unknown")
        args_raw = getattr(function, "arguments", "{}")
        try:
            args = json.loads(args_raw) if isinstance(args_raw, str) else (args_raw or {})
        except json.JSONDecodeError:
            logger.warning(f"Tool call {name} returned unparseable arguments")
            args = {}
        blocks.append({"type": "tool_use", "id": getattr(tc, "id", ""), "name": name, "input": args})

    usage = getattr(response, "usage", None)
    return GenerationResponse(
        content_blocks=blocks,
        usage=Usage(
            input_tokens=(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0,
            output_tokens=(getattr(usage, "completion_tokens", 0) or 0) if usage else 0,
        ),
    )


class LiteLLMClient:
    """Text-generation client backed by litellm.

    Errors from the provider propagate unchanged; the caller decides whether
    a failed generation fails the task or the chat turn.
    """

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        self.api_key = api_key
        self.timeout = timeout

    async def generate(
        self,
        model: str,
        max_output_tokens: int,
        system_prompt: str,
        transcript: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> GenerationResponse:
        import litellm

        params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_output_tokens,
            "messages": to_chat_messages(system_prompt, transcript),
        }
        if tools:
            params["tools"] = to_chat_tools(tools)
        if self.api_key:
            params["api_key"] = self.api_key
        if self.timeout:
            params["timeout"] = self.timeout

        response = await litellm.acompletion(**params)
        return parse_response(response)
