"""Text rendering helpers for structured agent output."""

import json
from typing import Any


def json_markdown(content: Any) -> str:
    """Render a structured value as a fenced JSON markdown block."""
    try:
        body = json.dumps(content, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return f"```\n{content}\n```"
    return f"```json\n{body}\n```"


def text_from_parts(parts: list[Any]) -> str:
    """Join the text items of a list of content parts with spaces."""
    return " ".join(
        str(part.get("text", "")) for part in parts if isinstance(part, dict) and part.get("type") == "text"
    )


def render_content(content: Any) -> str:
    """Render message content of any shape to display text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return text_from_parts(content)
    return json_markdown(content)
