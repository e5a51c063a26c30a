"""Declarative tool table shared by scheduled tasks, chat and voice."""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

if TYPE_CHECKING:
    from steward.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

ReloadHook = Callable[[list[str] | None], Awaitable[Any]]


@dataclass
class ToolContext:
    """Everything a tool handler may need besides its own input."""

    session_factory: async_sessionmaker[AsyncSession]
    session_id: str | None = None
    task_name: str | None = None
    reload_scheduler: ReloadHook | None = None
    notifier: "NotificationDispatcher | None" = None
    default_model: str = "claude-sonnet-4-5-20250929"
    operator_email: str = "operator@localhost"


ToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class Tool:
    """A capability the model can invoke.

    `input_model` produces the JSON schema shown to the model and validates
    the structured input before `handler` sees it.
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    ends_conversation: bool = False

    def input_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema

    def declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }

    def function_declaration(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.input_schema(),
        }


@dataclass
class ToolOutcome:
    result: dict[str, Any]
    session_complete: bool = False


@dataclass
class ToolRegistry:
    """Name to tool lookup plus the dispatch boundary.

    `dispatch` never raises: unknown names, invalid input and unexpected
    handler exceptions all come back as ``{"success": False, "error": ...}``.
    """

    _tools: dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def _select(self, names: Iterable[str] | None) -> list[Tool]:
        if names is None:
            return list(self._tools.values())
        selected = []
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                raise KeyError(f"Unknown tool: {name}")
            selected.append(tool)
        return selected

    def declarations(self, names: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Declarations in `{name, description, input_schema}` form."""
        return [tool.declaration() for tool in self._select(names)]

    def function_declarations(
        self, names: Iterable[str] | None = None
    ) -> list[dict[str, Any]]:
        """Declarations in `{type: function, name, description, parameters}` form."""
        return [tool.function_declaration() for tool in self._select(names)]

    async def dispatch(
        self, name: str, tool_input: dict[str, Any] | None, context: ToolContext
    ) -> ToolOutcome:
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolOutcome({"success": False, "error": f"Unknown tool: {name}"})

        try:
            params = tool.input_model.model_validate(tool_input or {})
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            return ToolOutcome({"success": False, "error": f"Invalid input for {name}: {errors}"})

        logger.info(f"Executing tool: {name}")
        try:
            result = await tool.handler(params, context)
        except Exception as e:
            logger.exception(f"Tool {name} raised: {e}")
            return ToolOutcome({"success": False, "error": str(e) or type(e).__name__})

        if not isinstance(result, dict) or "success" not in result:
            result = {"success": True, "result": result}

        return ToolOutcome(
            result=result,
            session_complete=tool.ends_conversation and bool(result.get("success")),
        )
