"""Prompt builders and response schemas for reasoning service calls."""

from typing import Any, Dict, List, Sequence

from domain.models.task_state import StepExecutionResult


FIRST_STEP_MARKER = "This is the first step."


def system_prompt(assistant_name: str) -> str:
    return f"""You are {assistant_name}, an advanced AI assistant. You are professional yet warm, with a subtle dry wit.
You are analytical, proactive in offering solutions and calm under pressure. Address the user as "sir" or "ma'am" occasionally.

You can handle complex, multi-step commands. For such requests you:
1. Break the request into logical steps
2. Execute or describe each step clearly
3. Report progress as you go
4. Synthesize the results at the end

A command that chains several actions ("and", "then", commas, implied sequences) is a multi-step task, e.g.
- "Design a chair, optimize it, and prepare for printing" -> 3 steps
- "Create a logo and then generate variations" -> 2 steps

Rules:
1. Never break character
2. Be concise but thorough
3. Show your reasoning for complex tasks
4. If you cannot do something, explain what would be needed
5. Always complete every step of a multi-step request"""


DECOMPOSITION_SCHEMA: Dict[str, Any] = {
    "title": "StepPlan",
    "description": "Ordered decomposition of a command into steps",
    "type": "object",
    "properties": {
        "steps": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["steps"],
}

STEP_RESULT_SCHEMA: Dict[str, Any] = {
    "title": "StepExecutionResult",
    "description": "Outcome of executing a single step",
    "type": "object",
    "properties": {
        "step_result": {"type": "string"},
        "details": {"type": "string"},
        "next_step_context": {"type": "string"},
        "success": {"type": "boolean"},
    },
    "required": ["step_result", "success"],
}

SUMMARY_SCHEMA: Dict[str, Any] = {
    "title": "SummaryResult",
    "description": "Final report for a completed multi-step task",
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "next_actions": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary"],
}


def decomposition_prompt(command: str) -> str:
    return f"""Break this command into steps: "{command}"
Return a JSON with: steps (array of step descriptions)"""


def step_prompt(
    assistant_name: str,
    original_command: str,
    step: str,
    ordinal: int,
    total_steps: int,
    running_context: str,
) -> str:
    return f"""{system_prompt(assistant_name)}

CURRENT TASK: "{original_command}"
TOTAL STEPS: {total_steps}
CURRENT STEP: {ordinal} of {total_steps}
STEP TO EXECUTE: "{step}"

PREVIOUS CONTEXT:
{running_context or FIRST_STEP_MARKER}

Execute this step thoroughly. Provide:
1. What you're doing
2. The result/output
3. Any relevant details for the next step

Be specific and actionable. If this involves design or creation, describe the result in detail."""


def summary_prompt(
    assistant_name: str,
    original_command: str,
    step_results: Sequence[StepExecutionResult],
) -> str:
    lines = "\n".join(
        f"Step {index}: {result.step_result}" for index, result in enumerate(step_results, start=1)
    )
    return f"""{system_prompt(assistant_name)}

COMPLETED TASK: "{original_command}"

STEP RESULTS:
{lines}

Provide a concise final summary of what was accomplished. Be professional and conclude the task properly."""


def conversation_prompt(assistant_name: str, conversation: str) -> str:
    return f"""You are {assistant_name}, an advanced AI assistant. You are helpful, intelligent, witty, and professional. Address the user as "sir" occasionally.

CONVERSATION:
{conversation}

Respond helpfully and concisely to the user's latest message."""


def workspace_analysis_prompt(assistant_name: str) -> str:
    return f"""You are {assistant_name} analyzing a workspace image. Look for:
1. Electronic components, wires, circuits
2. Potential issues (wrong connections, unsafe positioning, missing parts)
3. What the user appears to be building

If you detect any problems or dangers, start with "WARNING:" and be specific.
If everything looks fine, describe what you see briefly."""


def format_transcript(entries: List[Dict[str, str]], assistant_name: str) -> str:
    """Render transcript entries as ``Speaker: text`` lines"""
    return "\n".join(
        f"{'User' if entry['role'] == 'user' else assistant_name.title()}: {entry['content']}"
        for entry in entries
    )
