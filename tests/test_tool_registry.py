"""Tests for the tool registry and dispatch boundary."""

import pytest
from pydantic import BaseModel

from steward.tools import SCHEDULED_TASK_TOOLS, Tool, ToolRegistry


class EchoInput(BaseModel):
    text: str
    times: int = 1


async def echo(params, context):
    return {"success": True, "echo": params.text * params.times}


async def explode(params, context):
    raise RuntimeError("kaboom")


async def bare(params, context):
    return ["not", "a", "dict"]


async def finish_fail(params, context):
    return {"success": False, "error": "could not finish"}


@pytest.fixture
def registry():
    reg = ToolRegistry()
    reg.register(Tool("echo", "Echo text", EchoInput, echo))
    reg.register(Tool("explode", "Always raises", EchoInput, explode))
    reg.register(Tool("bare", "Returns a list", EchoInput, bare))
    reg.register(Tool("finish", "Ends but fails", EchoInput, finish_fail, ends_conversation=True))
    return reg


class TestRegistration:
    def test_duplicate_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register(Tool("echo", "again", EchoInput, echo))

    def test_lookup(self, registry):
        assert "echo" in registry
        assert registry.get("missing") is None
        assert registry.names() == ["echo", "explode", "bare", "finish"]

    def test_declaration_shape(self, registry):
        (declaration,) = registry.declarations(["echo"])
        assert declaration["name"] == "echo"
        assert declaration["description"] == "Echo text"
        schema = declaration["input_schema"]
        assert schema["type"] == "object"
        assert schema["required"] == ["text"]
        assert "title" not in schema
        assert "title" not in schema["properties"]["text"]

    def test_function_declaration_shape(self, registry):
        (declaration,) = registry.function_declarations(["echo"])
        assert declaration["type"] == "function"
        assert declaration["parameters"]["properties"]["times"]["default"] == 1

    def test_unknown_name_in_subset(self, registry):
        with pytest.raises(KeyError):
            registry.declarations(["echo", "nope"])


class TestDispatch:
    async def test_success(self, registry, tool_context):
        outcome = await registry.dispatch("echo", {"text": "hi", "times": 2}, tool_context)
        assert outcome.result == {"success": True, "echo": "hihi"}
        assert outcome.session_complete is False

    async def test_unknown_tool(self, registry, tool_context):
        outcome = await registry.dispatch("nope", {}, tool_context)
        assert outcome.result == {"success": False, "error": "Unknown tool: nope"}

    async def test_invalid_input(self, registry, tool_context):
        outcome = await registry.dispatch("echo", {"times": "many"}, tool_context)
        assert outcome.result["success"] is False
        assert outcome.result["error"].startswith("Invalid input for echo:")
        assert "text" in outcome.result["error"]

    async def test_handler_exception_becomes_failure(self, registry, tool_context):
        outcome = await registry.dispatch("explode", {"text": "x"}, tool_context)
        assert outcome.result == {"success": False, "error": "kaboom"}

    async def test_non_dict_result_wrapped(self, registry, tool_context):
        outcome = await registry.dispatch("bare", {"text": "x"}, tool_context)
        assert outcome.result == {"success": True, "result": ["not", "a", "dict"]}

    async def test_failed_terminal_tool_does_not_end_session(self, registry, tool_context):
        outcome = await registry.dispatch("finish", {"text": "x"}, tool_context)
        assert outcome.session_complete is False


class TestDefaultRegistry:
    def test_all_families_registered(self, tool_registry):
        assert sorted(tool_registry.names()) == [
            "complete_queue_item",
            "create_escalation",
            "create_task_config",
            "end_conversation",
            "execute_sql",
            "queue_task",
            "read_queue",
            "search_reports",
            "update_memory",
            "update_notification_settings",
            "update_task_config",
            "write_report",
        ]

    def test_scheduled_subset(self, tool_registry):
        names = [d["name"] for d in tool_registry.declarations(SCHEDULED_TASK_TOOLS)]
        assert names == ["execute_sql", "update_memory", "create_escalation"]

    def test_only_end_conversation_ends(self, tool_registry):
        ending = [n for n in tool_registry.names() if tool_registry.get(n).ends_conversation]
        assert ending == ["end_conversation"]
