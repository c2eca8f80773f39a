"""Plan prompt and response parsing for changeset generation."""

import json
import logging
import re
from typing import List

from pydantic import ValidationError

from ..core.models import CodeChange
from ..errors import GenerationParseError

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)
_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")


def build_plan_prompt(
    ticket_key: str,
    summary: str,
    description: str,
    repo_context: str,
    *,
    allow_base64: bool = True,
    language_hint: str = "software",
) -> str:
    """Strict JSON-only prompt asking for an array of file changes."""
    rules = [
        "Output ONLY compact JSON. No markdown, no backticks, no commentary.",
        "Follow the instructions in the ticket carefully, satisfy its acceptance criteria "
        "if any, and do not add changes the ticket does not ask for.",
        'Schema: [{"path":"relative/path.ext","operation":"create|update","content":"full file content"}]',
    ]
    if allow_base64:
        rules.append('You MAY use {"content_b64":"<base64>"} instead of content for large or complex content.')
    rules.append("Make sure the code compiles before proposing the changeset.")
    rules.append("Use POSIX-style relative paths under the repository root.")

    return (
        f"You are a senior {language_hint} engineer\n"
        f"Ticket: {ticket_key.strip()} - {summary.strip()}\n"
        f"Description:\n{description.strip()}\n\n"
        f"Repository context (truncated):\n{repo_context.strip()}\n\n"
        "Rules:\n- " + "\n- ".join(rules) + "\n\nJSON:"
    )


def sanitize_response(text: str) -> str:
    """Strip code fences and surrounding prose, keeping the first JSON array."""
    text = text.strip()
    text = _FENCE_OPEN.sub("", text, count=1)
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()
    match = _JSON_ARRAY.search(text)
    return match.group(0) if match else text


def parse_changes(text: str) -> List[CodeChange]:
    """
    Parse a model response into CodeChange entries.

    Entries that do not fit the schema are dropped and logged; the
    sandbox decides about the rest.

    Raises:
        GenerationParseError: If the response is not a JSON array
    """
    raw = sanitize_response(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise GenerationParseError(f"invalid JSON from model: {e}", raw=raw) from e
    if not isinstance(data, list):
        raise GenerationParseError(f"expected a JSON array, got {type(data).__name__}", raw=raw)

    changes = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            logger.warning(f"Dropping change #{i}: not an object")
            continue
        try:
            changes.append(CodeChange.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Dropping change #{i} ({item.get('path')!r}): {e.error_count()} schema errors")
    return changes
