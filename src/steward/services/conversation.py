"""Bounded multi-round tool-use conversation loop."""

import json
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from steward.services.llm import DEFAULT_MODEL, TextGenerationClient, estimate_cost
from steward.tools.registry import ToolContext, ToolRegistry

logger = logging.getLogger(__name__)

ROUND_LIMIT_NOTICE = "\n\n[Reached maximum conversation depth]"


@dataclass
class ToolCallRecord:
    name: str
    input: dict[str, Any]
    result: dict[str, Any]


@dataclass
class ConversationResult:
    """Outcome of one conversation loop run."""

    content: str
    tokens_in: int
    tokens_out: int
    cost: float
    model: str
    rounds: int
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    session_complete: bool = False
    hit_round_limit: bool = False
    messages: list[dict[str, Any]] = field(default_factory=list)


class ConversationLoop:
    """Drives the model through alternating generate / tool-dispatch rounds.

    The same loop serves scheduled tasks and chat; callers choose the
    declared tool subset and provide the initial transcript.
    """

    def __init__(
        self,
        client: TextGenerationClient,
        registry: ToolRegistry,
        default_model: str = DEFAULT_MODEL,
        max_rounds: int = 10,
        max_output_tokens: int = 4096,
    ) -> None:
        self._client = client
        self._registry = registry
        self._default_model = default_model
        self._max_rounds = max_rounds
        self._max_output_tokens = max_output_tokens

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def run(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        context: ToolContext,
        tool_names: Iterable[str] | None = None,
        model: str | None = None,
        max_rounds: int | None = None,
        max_output_tokens: int | None = None,
        label: str = "conversation",
    ) -> ConversationResult:
        """Run the loop until the model stops calling tools, ends the
        conversation, or the round cap is reached.

        Args:
            system_prompt: System prompt sent on every round
            messages: Initial transcript; not mutated
            context: Tool context handed to every dispatched tool
            tool_names: Tools to declare, or None for every registered tool
            model: Model identifier, defaults to the loop's default model
            max_rounds: Round cap override
            max_output_tokens: Output token cap override
            label: Name used in log lines (task name or session id)

        Returns:
            ConversationResult with the accumulated answer and the full transcript

        Raises:
            Any exception raised by the text-generation client.
        """
        model = model or self._default_model
        max_rounds = max_rounds or self._max_rounds
        max_output_tokens = max_output_tokens or self._max_output_tokens
        tools = self._registry.declarations(tool_names)

        transcript = list(messages)
        content = ""
        tokens_in = 0
        tokens_out = 0
        rounds = 0
        tool_calls: list[ToolCallRecord] = []
        session_complete = False
        finished = False
        start = time.monotonic()

        logger.info(f"Starting {label} (model: {model})")

        while rounds < max_rounds:
            rounds += 1
            response = await self._client.generate(
                model=model,
                max_output_tokens=max_output_tokens,
                system_prompt=system_prompt,
                transcript=transcript,
                tools=tools,
            )
            tokens_in += response.usage.input_tokens
            tokens_out += response.usage.output_tokens
            content += response.text

            tool_uses = response.tool_uses
            if not tool_uses:
                transcript.append({"role": "assistant", "content": response.content_blocks})
                finished = True
                break

            results = []
            for tool_use in tool_uses:
                outcome = await self._registry.dispatch(
                    tool_use["name"], tool_use.get("input"), context
                )
                tool_calls.append(
                    ToolCallRecord(
                        name=tool_use["name"],
                        input=tool_use.get("input") or {},
                        result=outcome.result,
                    )
                )
                if outcome.session_complete:
                    session_complete = True
                results.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": tool_use["id"],
                        "content": json.dumps(outcome.result, default=str),
                    }
                )

            # Assistant turn and its tool results are appended together so the
            # transcript never holds an unanswered tool call.
            transcript.extend(
                [
                    {"role": "assistant", "content": response.content_blocks},
                    {"role": "user", "content": results},
                ]
            )

            if session_complete:
                finished = True
                break

        hit_round_limit = not finished
        if hit_round_limit:
            logger.warning(f"Hit max conversation rounds ({max_rounds}) for {label}")

        content = content.strip()
        if hit_round_limit:
            content += ROUND_LIMIT_NOTICE

        cost = estimate_cost(model, tokens_in, tokens_out)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Finished {label}: {tokens_in} in / {tokens_out} out | "
            f"${cost:.4f} | {rounds} round(s) | {elapsed_ms}ms"
        )

        return ConversationResult(
            content=content,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost=cost,
            model=model,
            rounds=rounds,
            tool_calls=tool_calls,
            session_complete=session_complete,
            hit_round_limit=hit_round_limit,
            messages=transcript,
        )
