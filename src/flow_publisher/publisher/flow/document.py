"""Kestra flow document model.

A flow is kept in two forms: the immutable source text and the parsed YAML
tree. Typed accessors (`TaskSpec`, `RetryPolicy`) are read-only views over the
tree so that repair rules can still work on malformed shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

from flow_publisher.publisher.errors import DocumentSyntaxError

TASK_KNOWN_FIELDS = ("id", "type", "retry", "env")
LEGACY_NAMESPACE_KEY = "defaultNamespace"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Normalized task retry configuration."""

    type: str
    max_attempt: int | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> RetryPolicy:
        max_attempt = data.get("maxAttempt")
        return cls(
            type=str(data.get("type", "")),
            max_attempt=max_attempt if isinstance(max_attempt, int) else None,
            properties={k: v for k, v in data.items() if k not in ("type", "maxAttempt")},
        )


@dataclass(frozen=True, slots=True)
class TaskSpec:
    """One task of a flow.

    Known fields are typed; every other key is kept verbatim in `properties`.
    """

    id: str | None
    type: str | None
    retry: RetryPolicy | None = None
    env: dict[str, str] = field(default_factory=dict)
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> TaskSpec:
        task_id = data.get("id")
        task_type = data.get("type")
        retry = data.get("retry")
        env = data.get("env")
        return cls(
            id=str(task_id) if task_id is not None else None,
            type=str(task_type) if task_type is not None else None,
            retry=RetryPolicy.from_mapping(retry) if isinstance(retry, dict) else None,
            env={str(k): str(v) for k, v in env.items()} if isinstance(env, dict) else {},
            properties={k: v for k, v in data.items() if k not in TASK_KNOWN_FIELDS},
        )


@dataclass(frozen=True)
class WorkflowDocument:
    """A parsed flow: source text plus YAML tree.

    The tree must be treated as read-only; repairs and identifier patches
    always build a new document.
    """

    raw_text: str
    model: Any

    @property
    def is_mapping(self) -> bool:
        return isinstance(self.model, dict)

    def _field(self, key: str) -> Any:
        return self.model.get(key) if self.is_mapping else None

    @property
    def id(self) -> str | None:
        value = self._field("id")
        return value if isinstance(value, str) else None

    @property
    def namespace(self) -> str | None:
        value = self._field("namespace")
        return value if isinstance(value, str) else None

    @property
    def description(self) -> str | None:
        value = self._field("description")
        return value if isinstance(value, str) else None

    @property
    def tasks(self) -> list[TaskSpec]:
        raw = self._field("tasks")
        if not isinstance(raw, list):
            return []
        return [TaskSpec.from_mapping(t) for t in raw if isinstance(t, dict)]

    @property
    def task_types(self) -> list[str]:
        """Distinct task types, in order of first appearance."""

        seen: list[str] = []
        for task in self.tasks:
            if task.type and task.type not in seen:
                seen.append(task.type)
        return seen


def load_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentSyntaxError(str(e)) from e


def dump_yaml(model: Any) -> str:
    return yaml.safe_dump(
        model,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def parse(text: str) -> WorkflowDocument:
    """Parse flow text.

    Raises:
        DocumentSyntaxError: If the text is not valid YAML.
    """

    return WorkflowDocument(raw_text=text, model=load_yaml(text))


def serialize(document: WorkflowDocument) -> str:
    """Serialize the document tree back to YAML (key order preserved)."""

    return dump_yaml(document.model)


def from_model(model: Any) -> WorkflowDocument:
    """Build a document from a YAML tree, serializing it as the source text."""

    return WorkflowDocument(raw_text=dump_yaml(model), model=model)
