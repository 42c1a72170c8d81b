"""Heuristic repair rules for common flow defects.

Rules run in a fixed order and each one sees the output of the previous ones:

1. missing namespace (a legacy `defaultNamespace` is adopted first)
2. missing tasks
3. tasks given as a single mapping
4. tasks without an id
5. retry given as a bare number or string
6. env given as a string
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from flow_publisher.publisher.flow.document import LEGACY_NAMESPACE_KEY

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(slots=True)
class RepairOutcome:
    """Repaired copy of a flow tree plus the fixes applied to it."""

    model: Any
    fixes: list[str] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return bool(self.fixes)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _task_label(task: dict[str, Any], index: int) -> str:
    task_id = task.get("id")
    if _is_blank(task_id):
        return f"#{index + 1}"
    return str(task_id)


def _parse_max_attempt(value: Any) -> int:
    if isinstance(value, float):
        # YAML allows .inf and .nan.
        return int(value) if math.isfinite(value) else 1
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 1


def _fix_namespace(flow: dict[str, Any], default_namespace: str, fixes: list[str]) -> None:
    if not _is_blank(flow.get("namespace")):
        return
    legacy = flow.get(LEGACY_NAMESPACE_KEY)
    if isinstance(legacy, str) and legacy.strip():
        flow.pop("namespace", None)
        flow["namespace"] = flow.pop(LEGACY_NAMESPACE_KEY)
        fixes.append(f"Renamed {LEGACY_NAMESPACE_KEY} to namespace: '{legacy}'")
    else:
        flow["namespace"] = default_namespace
        fixes.append(f"Added missing namespace: '{default_namespace}'")


def _fix_missing_tasks(flow: dict[str, Any], fixes: list[str]) -> None:
    if flow.get("tasks") is None:
        flow["tasks"] = []
        fixes.append("Added missing tasks list")


def _fix_tasks_shape(flow: dict[str, Any], fixes: list[str]) -> None:
    if isinstance(flow.get("tasks"), dict):
        flow["tasks"] = [flow["tasks"]]
        fixes.append("Converted tasks mapping to a one-element list")


def _each_task(flow: dict[str, Any]) -> list[tuple[int, dict[str, Any]]]:
    tasks = flow.get("tasks")
    if not isinstance(tasks, list):
        return []
    return [(i, t) for i, t in enumerate(tasks) if isinstance(t, dict)]


def _fix_task_ids(flow: dict[str, Any], fixes: list[str]) -> None:
    for index, task in _each_task(flow):
        if _is_blank(task.get("id")):
            task["id"] = f"task-{index + 1}"
            fixes.append(f"Added missing task id: '{task['id']}'")


def _fix_retry(flow: dict[str, Any], fixes: list[str]) -> None:
    for index, task in _each_task(flow):
        retry = task.get("retry")
        if retry is None or isinstance(retry, bool):
            continue
        if isinstance(retry, (int, float, str)):
            task["retry"] = {"type": "constant", "maxAttempt": _parse_max_attempt(retry)}
            fixes.append(
                f"Fixed task '{_task_label(task, index)}': "
                "converted retry value to a constant retry policy"
            )


def _env_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _fix_env(flow: dict[str, Any], fixes: list[str]) -> None:
    for index, task in _each_task(flow):
        env = task.get("env")
        if not isinstance(env, str):
            continue
        try:
            decoded = json.loads(env)
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            task["env"] = {str(k): _env_value(v) for k, v in decoded.items()}
            fixes.append(
                f"Fixed task '{_task_label(task, index)}': converted env from JSON string to mapping"
            )
        else:
            task["env"] = {"VALUE": env}
            fixes.append(
                f"Fixed task '{_task_label(task, index)}': wrapped env string under VALUE key"
            )


def repair(model: Any, default_namespace: str) -> RepairOutcome:
    """Apply all repair rules to a copy of `model`.

    Non-mapping documents are returned unchanged: there is nothing a rule can
    safely attach fields to.
    """

    repaired = copy.deepcopy(model)
    outcome = RepairOutcome(model=repaired)
    if not isinstance(repaired, dict):
        return outcome

    rules: list[Callable[[dict[str, Any], list[str]], None]] = [
        lambda flow, fixes: _fix_namespace(flow, default_namespace, fixes),
        _fix_missing_tasks,
        _fix_tasks_shape,
        _fix_task_ids,
        _fix_retry,
        _fix_env,
    ]
    for rule in rules:
        rule(repaired, outcome.fixes)

    if outcome.modified:
        logger.debug("Repair rules applied", extra={"fixes": len(outcome.fixes)})
    return outcome
