"""System prompts for command and plan generation."""

from __future__ import annotations

COMMAND_INSTRUCTIONS = """\
You translate natural-language requests into a single shell command.

Rules:
1. Reply with the raw command only: no explanation, no markdown, no backticks.
2. Wrap arguments that contain spaces or special characters in single quotes.
3. Use double quotes only where variable expansion is intended.
4. Escape special characters correctly inside quotes.

Examples:
- echo 'Hello World!'
- echo "Current user: $USER"
- grep 'pattern with spaces' file.txt
- find . -name '*.txt'"""

_PLAN_SCHEMA_EXAMPLE = """\
{
  "plan_id": "<short unique id>",
  "command": "<executable name only>",
  "args": ["<one argument per element>"],
  "env": {},
  "stdin": null,
  "paste_policy": "auto | needs_confirm | never",
  "confirm_mode": "auto | preview | reject",
  "expectations": [{"pattern": "<output regex>", "exit_code": 0}],
  "failure_signals": [{"pattern": "<output regex>", "severity": "warning | err | critical"}],
  "created_at": <epoch milliseconds>
}"""

PLAN_INSTRUCTIONS = f"""\
You translate natural-language requests into a structured shell command plan.

Reply with one JSON object and nothing else: no prose, no markdown fences.
The object must follow this schema exactly and contain no other keys:
{_PLAN_SCHEMA_EXAMPLE}

Rules:
1. "command" is the bare executable; every argument goes in "args" unquoted.
2. Use "needs_confirm" or "never" for paste_policy and "preview" or "reject"
   for confirm_mode when the command deletes, overwrites or is irreversible.
3. Pipelines and redirections are not allowed; use "stdin" to feed input."""


def build_system_prompt(
    context: str,
    *,
    extend: str | None = None,
    snapshot_text: str | None = None,
    structured: bool = False,
) -> str:
    """Assemble instructions, optional extension, context and terminal state."""

    sections = [PLAN_INSTRUCTIONS if structured else COMMAND_INSTRUCTIONS]
    if extend:
        sections.append(extend)
    sections.append(f"Context:\n{context}")
    if snapshot_text:
        sections.append(snapshot_text)
    return "\n\n".join(sections)
