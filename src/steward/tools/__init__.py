"""Tools the model can call, and the registry that dispatches them."""

from steward.tools import (
    conversation,
    escalations,
    memory,
    notifications,
    queue,
    reports,
    sql,
    task_configs,
)
from steward.tools.registry import Tool, ToolContext, ToolOutcome, ToolRegistry

# Scheduled tasks run unattended and only get the read/flag/remember tools.
SCHEDULED_TASK_TOOLS = ["execute_sql", "update_memory", "create_escalation"]

_FAMILIES = (sql, memory, escalations, queue, conversation, task_configs, reports, notifications)


def build_default_registry() -> ToolRegistry:
    """Create a registry holding every built-in tool."""
    registry = ToolRegistry()
    for family in _FAMILIES:
        for tool in family.TOOLS:
            registry.register(tool)
    return registry


__all__ = [
    "SCHEDULED_TASK_TOOLS",
    "Tool",
    "ToolContext",
    "ToolOutcome",
    "ToolRegistry",
    "build_default_registry",
]
