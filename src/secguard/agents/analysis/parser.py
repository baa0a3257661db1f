"""
ReAct response parsing.

Turns raw model text into a structured step and normalizes the different
payload shapes a chat-completions endpoint may return.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from secguard.utils.sse import parse_sse_text

logger = logging.getLogger(__name__)

SSE_DONE = "[DONE]"

# A new section starts on a line that begins with a capitalized "Word(s):" label.
_NEXT_LABEL = r"(?=\n(?-i:[A-Z])[^:\n]*:|$)"
_ACTION_LINE = re.compile(r"Action[ \t]*:[ \t]*(.+)", re.IGNORECASE)


@dataclass(frozen=True)
class ReActStep:
    """One parsed model turn. Missing sections are empty strings."""
    raw: str
    thought: str = ""
    action: str = ""
    action_input: str = ""
    observation: str = ""
    final_answer: str = ""

    @property
    def has_action(self) -> bool:
        return bool(self.action) and self.action.lower() != "none"


def extract_section(text: str, label: str) -> str:
    """Return the trimmed content of the first ``label:`` section, or ``""``."""
    pattern = re.compile(
        rf"{re.escape(label)}\s*:\s*([\s\S]*?){_NEXT_LABEL}",
        re.IGNORECASE,
    )
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def parse_react_response(text: str) -> ReActStep:
    """Parse model output written in the Thought/Action/... format."""
    action_match = _ACTION_LINE.search(text)
    return ReActStep(
        raw=text,
        thought=extract_section(text, "Thought"),
        action=action_match.group(1).strip() if action_match else "",
        action_input=extract_section(text, "Action Input"),
        observation=extract_section(text, "Observation"),
        final_answer=extract_section(text, "Final Answer"),
    )


def safe_parse_json(text: str) -> Any:
    """Parse JSON, returning the original string when it is not JSON."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


def normalize_message_content(raw: Any) -> str:
    """Flatten a message ``content`` value into text."""
    if isinstance(raw, str):
        return raw

    if isinstance(raw, list):
        parts = []
        for part in raw:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping):
                if isinstance(part.get("text"), str):
                    parts.append(part["text"])
                elif isinstance(part.get("content"), str):
                    parts.append(part["content"])
        return "\n".join(part for part in parts if part)

    if isinstance(raw, Mapping):
        return json.dumps(raw, ensure_ascii=False, default=str)

    return ""


def _first_choice(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        return {}
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], Mapping):
        return choices[0]
    return {}


def normalize_sse_completion(body: str) -> str:
    """Concatenate streamed completion deltas until ``[DONE]``."""
    fragments = []
    for event in parse_sse_text(body):
        data = event.data.strip()
        if data == SSE_DONE:
            break
        try:
            chunk = json.loads(data)
        except ValueError:
            logger.debug(f"Skipping non-JSON SSE payload: {data[:80]}")
            continue

        choice = _first_choice(chunk)
        delta = choice.get("delta")
        delta = delta if isinstance(delta, Mapping) else {}
        for fragment in (delta.get("content"), delta.get("text"), choice.get("text")):
            if isinstance(fragment, str):
                fragments.append(fragment)
                break

    return "".join(fragments)


def extract_completion_text(payload: Any) -> str:
    """Pull the assistant text out of a non-streamed completion payload."""
    choice = _first_choice(payload)
    message = choice.get("message")
    if isinstance(message, Mapping):
        content = normalize_message_content(message.get("content"))
        if content.strip():
            return content

    text = choice.get("text")
    if isinstance(text, str) and text.strip():
        return text

    return json.dumps(payload, ensure_ascii=False, default=str)
