"""Structural validation of Kestra flows.

Only the minimal shape the Kestra API needs is checked: `id`, `namespace` and a
non-empty `tasks` list whose entries carry an `id` and a `type`. All problems
are collected; nothing short-circuits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from flow_publisher.publisher.errors import DocumentSyntaxError, RepairFailure
from flow_publisher.publisher.flow.document import (
    WorkflowDocument,
    dump_yaml,
    load_yaml,
    parse,
)
from flow_publisher.publisher.flow.repair import repair

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ValidationResult:
    """Outcome of validating (and possibly repairing) a flow.

    `errors` always describes the flow as submitted. `remaining_errors`
    describes the repaired flow and decides `is_valid`.
    """

    is_valid: bool
    original_text: str
    errors: list[str] = field(default_factory=list)
    remaining_errors: list[str] = field(default_factory=list)
    fixes_made: list[str] = field(default_factory=list)
    fixed_document: WorkflowDocument | None = None
    document: WorkflowDocument | None = None

    @property
    def fixed_text(self) -> str | None:
        return self.fixed_document.raw_text if self.fixed_document is not None else None

    @property
    def final_document(self) -> WorkflowDocument | None:
        """The document to publish: the repaired copy if any, else the original."""

        return self.fixed_document or self.document

    @property
    def message(self) -> str:
        if not self.is_valid:
            count = len(self.remaining_errors)
            return f"Flow validation failed with {count} error(s)."
        if self.fixes_made:
            return f"Flow validated and fixed with {len(self.fixes_made)} automatic correction(s)."
        return "Flow is valid. No corrections needed."


def _check_string_field(flow: dict[str, Any], key: str, errors: list[str]) -> None:
    if key not in flow or flow[key] is None:
        errors.append(f"{key} is required")
    elif not isinstance(flow[key], str):
        errors.append(f"{key} must be a string")
    elif not flow[key].strip():
        errors.append(f"{key} must not be empty")


def _check_task(task: Any, index: int, errors: list[str]) -> None:
    prefix = f"tasks[{index}]"
    if not isinstance(task, dict):
        errors.append(f"{prefix} must be a mapping")
        return
    for key in ("id", "type"):
        value = task.get(key)
        if value is None:
            errors.append(f"{prefix}.{key} is required")
        elif not str(value).strip():
            errors.append(f"{prefix}.{key} must not be empty")


def validate_model(model: Any) -> list[str]:
    """Return every structural problem of a parsed flow tree."""

    if not isinstance(model, dict):
        return ["document must be a mapping"]

    errors: list[str] = []
    _check_string_field(model, "id", errors)
    _check_string_field(model, "namespace", errors)

    tasks = model.get("tasks")
    if tasks is None:
        errors.append("tasks is required")
    elif not isinstance(tasks, list):
        errors.append("tasks must be a list")
    elif not tasks:
        errors.append("tasks: at least one task required")
    else:
        seen: set[str] = set()
        for index, task in enumerate(tasks):
            _check_task(task, index, errors)
            if isinstance(task, dict) and task.get("id") not in (None, ""):
                task_id = str(task["id"])
                if task_id in seen:
                    errors.append(f"tasks[{index}].id '{task_id}' is duplicated")
                seen.add(task_id)
    return errors


def validate(document: WorkflowDocument) -> list[str]:
    return validate_model(document.model)


def validate_text(text: str) -> ValidationResult:
    """Parse and validate without attempting any repair."""

    try:
        document = parse(text)
    except DocumentSyntaxError as e:
        return ValidationResult(
            is_valid=False, original_text=text, errors=[str(e)], remaining_errors=[str(e)]
        )
    errors = validate(document)
    return ValidationResult(
        is_valid=not errors,
        original_text=text,
        errors=errors,
        remaining_errors=list(errors),
        document=document,
    )


def _round_trip(model: Any) -> WorkflowDocument:
    try:
        text = dump_yaml(model)
        reparsed = load_yaml(text)
    except (DocumentSyntaxError, yaml.YAMLError) as e:
        raise RepairFailure(f"Error after applying fixes: {e}") from e
    return WorkflowDocument(raw_text=text, model=reparsed)


def validate_and_repair(text: str, *, default_namespace: str) -> ValidationResult:
    """Validate a flow and apply the repair rules to it.

    The repair runs even on a valid flow, so harmless defects such as a bare
    `retry: 3` are normalized before publication. A repair whose output does
    not round-trip through YAML is dropped and the original errors stand.
    """

    result = validate_text(text)
    if result.document is None:
        return result

    outcome = repair(result.document.model, default_namespace)
    if not outcome.modified:
        return result

    try:
        fixed = _round_trip(outcome.model)
    except RepairFailure as e:
        logger.warning("Discarding repair that does not round-trip", extra={"error": str(e)})
        return result

    remaining = validate(fixed)
    result.fixes_made = list(outcome.fixes)
    result.fixed_document = fixed
    result.remaining_errors = remaining
    result.is_valid = not remaining
    return result
