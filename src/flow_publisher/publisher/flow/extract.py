"""Pull flow YAML out of free-form generated text."""

from __future__ import annotations

import re

from flow_publisher.publisher.errors import DocumentSyntaxError
from flow_publisher.publisher.flow.document import parse

_FENCED_YAML = re.compile(r"```(?:yaml|yml)\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_ID_LINE = re.compile(r"^id:", re.MULTILINE)


def extract_flow_yaml(text: str) -> str | None:
    """Return the flow YAML contained in `text`, if any.

    A fenced ```yaml block wins; otherwise text with a top-level `id:` line is
    taken to be a flow as-is.
    """

    match = _FENCED_YAML.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    stripped = text.strip()
    if stripped and _ID_LINE.search(stripped):
        return stripped
    return None


def extract_task_types(text: str) -> list[str]:
    """Distinct task types of a flow; empty when the text does not parse."""

    try:
        return parse(text).task_types
    except DocumentSyntaxError:
        return []
