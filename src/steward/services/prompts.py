"""System prompt builders.

Pure functions of identity text, mode rules and a context snapshot; they
never touch the database.
"""

import json
from typing import Any

CORE_IDENTITY = """\
You are Steward, an autonomous AI operations agent for a small product team.

## Communication Rules
- Reports: clear headers and white space. Paragraphs in narrative sections.
- Escalations: lead with the decision needed, not the backstory.
- Chat: brief unless asked for depth.
- Never announce which tools you are using. Just use them.
- Calibrate signal-to-noise aggressively. Normal day = one paragraph. Anomaly = full analysis.

## Autonomy Boundaries
You can run read-only database queries, write reports, create escalations,
update your own memory and add or modify your own scheduled tasks.
You cannot modify production data, deploy code or spend money. Escalate instead.
"""

CONVERSATION_TYPES = ("general", "status_check", "task_setup", "escalation_review", "idea_brainstorm")

CONVERSATION_TYPE_PROMPTS = {
    "general": (
        "**SESSION TYPE:** General conversation about operations.\n\n"
        "Be conversational and direct. Use your tools proactively; don't ask permission "
        "to query data or check the queue."
    ),
    "status_check": (
        "**SESSION TYPE:** Status check.\n\n"
        "Query the database immediately for current stats. Present key metrics upfront, "
        "flag anomalies and stay concise unless asked for detail."
    ),
    "task_setup": (
        "**SESSION TYPE:** Task setup.\n\n"
        "You have create_task_config and update_task_config. Draft the task config in the "
        "conversation, show the cron schedule and prompt template, then create it once confirmed."
    ),
    "escalation_review": (
        "**SESSION TYPE:** Escalation review.\n\n"
        "Go through open escalations one by one: summarize the issue, present options and ask "
        "what to do. Use update_memory to capture decisions."
    ),
    "idea_brainstorm": (
        "**SESSION TYPE:** Brainstorm.\n\n"
        "Be generative, ask probing questions and challenge assumptions. Ground ideas in data "
        "with execute_sql when relevant."
    ),
}

CHAT_RULES = """\
## Web Chat Rules
- You're talking directly to the operator in their browser.
- When asked for data, query it immediately with execute_sql.
- When something is worth remembering, use update_memory silently.
- If something needs tools you don't have in this mode, use queue_task and say it's queued.
- Use end_conversation when things wrap up naturally, with a summary of what was discussed, decided or queued.
- Never end with "anything else?". The operator steers.
"""

VOICE_ADAPTER = """\
## MEDIUM: VOICE CONVERSATION
- SHORT responses, 1-2 sentences, then pause or ask a question.
- You are speaking aloud: no markdown, no formatting, no headers.
- Say numbers the way a person would say them.
- Don't narrate tool use. Say "Let me check..." and run the tool.
- Summarize data instead of reading raw numbers back.
- If something needs tools you don't have here, say so and queue it.
"""


def build_task_system_prompt(
    persona_params: dict[str, Any] | None = None, task_context: str = ""
) -> str:
    """System prompt for an unattended scheduled task."""
    prompt = CORE_IDENTITY

    if persona_params:
        prompt += "\n\n## Current Personality Parameters\n"
        for key, value in persona_params.items():
            name = key.removeprefix("persona_")
            prompt += f"- {name}: {json.dumps(value)}\n"

    if task_context:
        prompt += "\n\n## Task Context\n" + task_context

    return prompt


def _display(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def format_context(context: dict[str, Any]) -> str:
    """Render an enriched context snapshot as prompt text."""
    sections = []

    if context.get("recent_memory"):
        lines = [f"- {m['key']}: {_display(m['value'])}" for m in context["recent_memory"]]
        sections.append("**Recent Memory:**\n" + "\n".join(lines))

    if context.get("open_escalations"):
        lines = [f"- [{e['severity']}] {e['title']}" for e in context["open_escalations"]]
        sections.append("**Open Escalations:**\n" + "\n".join(lines))

    if context.get("pending_queue"):
        lines = [
            f"- [{q['priority']}] {q['request_summary']} ({q['target_mode']})"
            for q in context["pending_queue"]
        ]
        sections.append("**Pending Queue:**\n" + "\n".join(lines))

    if context.get("recent_reports"):
        lines = [
            f"- {r.get('report_type') or r.get('task_name')}: {r.get('summary') or ''}"
            for r in context["recent_reports"]
        ]
        sections.append("**Recent Reports:**\n" + "\n".join(lines))

    if context.get("task_configs"):
        lines = []
        for t in context["task_configs"]:
            state = "enabled" if t["enabled"] else "disabled"
            line = f"- {t['task_name']} ({state}): {t['cron_schedule']}"
            if t.get("last_run_status"):
                line += f", last run {t['last_run_status']}"
            if t.get("consecutive_failures"):
                line += f", {t['consecutive_failures']} consecutive failure(s)"
            lines.append(line)
        sections.append("**Scheduled Tasks:**\n" + "\n".join(lines))

    if context.get("all_escalations"):
        lines = [
            f"- [{e['severity']}] {e['title']}: {e['description'][:200]}"
            for e in context["all_escalations"]
        ]
        sections.append("**All Escalations:**\n" + "\n".join(lines))

    return "\n\n".join(sections) or "No additional context available."


def build_chat_system_prompt(context: dict[str, Any], conversation_type: str = "general") -> str:
    """System prompt for a text chat session."""
    type_prompt = CONVERSATION_TYPE_PROMPTS.get(
        conversation_type, CONVERSATION_TYPE_PROMPTS["general"]
    )
    return (
        f"{CORE_IDENTITY}\n"
        "## Current Session Context\n\n"
        "You're in a live web chat with the operator. You have database, memory, queue, "
        "escalation, report and scheduled-task tools.\n\n"
        f"{type_prompt}\n\n"
        "## What You Know Right Now\n\n"
        f"{format_context(context)}\n\n"
        f"{CHAT_RULES}"
    )


def build_voice_system_prompt(context: dict[str, Any], conversation_type: str = "general") -> str:
    """System prompt for a realtime voice session."""
    summary = ""
    if conversation_type == "status_check":
        failing = [t for t in context.get("task_configs", []) if t.get("consecutive_failures")]
        summary = (
            "\n## CURRENT STATUS\n"
            f"You're giving a status check. {len(context.get('task_configs', []))} scheduled "
            f"task(s) configured, {len(failing)} currently failing. Use execute_sql for fresh "
            "data rather than relying on this snapshot.\n"
        )
    elif conversation_type == "task_setup":
        summary = (
            "\n## TASK SETUP\n"
            "Help think through timing and what the task should do, then create or update it.\n"
        )
    elif conversation_type == "escalation_review":
        count = len(context.get("open_escalations", []))
        summary = (
            "\n## ESCALATION REVIEW\n"
            f"There are {count} open escalation(s). Walk through them and help prioritize.\n"
        )
    elif conversation_type == "idea_brainstorm":
        summary = (
            "\n## IDEA BRAINSTORMING\n"
            "Ask the hard questions about feasibility, trade-offs and whether this solves the real problem.\n"
        )

    return (
        f"{CORE_IDENTITY}\n"
        f"{VOICE_ADAPTER}"
        f"{summary}\n"
        f"CONVERSATION TYPE: {conversation_type}\n\n"
        f"{format_context(context)}"
    )
