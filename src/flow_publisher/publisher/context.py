"""Per-conversation flow context.

Producers (whatever generates flow YAML) and consumers (validation,
publication, execution) exchange the current flow through a `FlowContext`.
Each conversation gets its own context; all of them live in one
`ContextStore`, optionally persisted to a JSON file.

Persistence is best-effort: a failed write is logged and the in-memory value
still wins.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from flow_publisher.publisher.flow.extract import extract_flow_yaml

logger = logging.getLogger(__name__)

FLOW_YAML = "kestraFlowYaml"
FLOW_ID = "kestraFlowId"
FLOW_NAMESPACE = "kestraFlowNamespace"
FLOW_PURPOSE = "flowPurpose"
USER_EXECUTION_PREFERENCE = "kestraUserExecutionPreference"

ExecutionPreference = Literal["auto", "manual"]
EXECUTION_PREFERENCES: tuple[str, ...] = ("auto", "manual")


class FlowContext:
    """Key/value view of one conversation's state. Last write wins."""

    def __init__(self, store: ContextStore, conversation_id: str) -> None:
        self._store = store
        self.conversation_id = conversation_id

    def get(self, key: str, default: Any = None) -> Any:
        return self._store._get(self.conversation_id, key, default)

    def set(self, key: str, value: Any) -> None:
        """Store `value`; None removes the key."""

        self._store._set(self.conversation_id, key, value)

    def snapshot(self) -> dict[str, Any]:
        return self._store._snapshot(self.conversation_id)

    def _get_str(self, key: str) -> str | None:
        value = self.get(key)
        return value if isinstance(value, str) and value else None

    @property
    def flow_yaml(self) -> str | None:
        return self._get_str(FLOW_YAML)

    @flow_yaml.setter
    def flow_yaml(self, value: str | None) -> None:
        self.set(FLOW_YAML, value)

    @property
    def flow_id(self) -> str | None:
        return self._get_str(FLOW_ID)

    @flow_id.setter
    def flow_id(self, value: str | None) -> None:
        self.set(FLOW_ID, value)

    @property
    def namespace(self) -> str | None:
        return self._get_str(FLOW_NAMESPACE)

    @namespace.setter
    def namespace(self, value: str | None) -> None:
        self.set(FLOW_NAMESPACE, value)

    @property
    def purpose(self) -> str | None:
        return self._get_str(FLOW_PURPOSE)

    @purpose.setter
    def purpose(self, value: str | None) -> None:
        self.set(FLOW_PURPOSE, value)

    @property
    def execution_preference(self) -> ExecutionPreference | None:
        value = self.get(USER_EXECUTION_PREFERENCE)
        return value if value in EXECUTION_PREFERENCES else None

    @execution_preference.setter
    def execution_preference(self, value: ExecutionPreference | None) -> None:
        if value is not None and value not in EXECUTION_PREFERENCES:
            raise ValueError(f"execution preference must be one of {EXECUTION_PREFERENCES}")
        self.set(USER_EXECUTION_PREFERENCE, value)

    def save_flow(
        self,
        flow_yaml: str,
        *,
        flow_id: str | None = None,
        namespace: str | None = None,
        purpose: str | None = None,
    ) -> None:
        """Record a generated flow and whatever metadata came with it.

        Metadata left as None keeps its previous value.
        """

        self.flow_yaml = extract_flow_yaml(flow_yaml) or flow_yaml
        if flow_id:
            self.flow_id = flow_id
        if namespace:
            self.namespace = namespace
        if purpose:
            self.purpose = purpose


def extract_and_store_flow(text: str, context: FlowContext) -> str | None:
    """Store the flow YAML found in `text`, returning it (None when there is none)."""

    flow_yaml = extract_flow_yaml(text)
    if flow_yaml is None:
        logger.debug(
            "No flow YAML found in text", extra={"conversation_id": context.conversation_id}
        )
        return None
    context.flow_yaml = flow_yaml
    logger.info(
        "Flow YAML stored",
        extra={"conversation_id": context.conversation_id, "length": len(flow_yaml)},
    )
    return flow_yaml


@dataclass
class ContextStore:
    """Holds every conversation's context; `path=None` keeps it in memory only."""

    path: Path | None = None

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, Any]] = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Ignoring unreadable context state", extra={"path": str(self.path), "error": str(e)}
            )
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): dict(v) for k, v in raw.items() if isinstance(v, dict)}

    def _save_unlocked(self) -> None:
        if self.path is None:
            return
        try:
            # Values JSON cannot represent are persisted as their str().
            payload = json.dumps(self._data, indent=2, ensure_ascii=False, default=str)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload + "\n", encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            logger.warning(
                "Failed to persist flow context", extra={"path": str(self.path), "error": str(e)}
            )

    def context(self, conversation_id: str) -> FlowContext:
        if not conversation_id.strip():
            raise ValueError("conversation_id is required")
        return FlowContext(self, conversation_id)

    def conversations(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            if self._data.pop(conversation_id, None) is not None:
                self._save_unlocked()

    def _get(self, conversation_id: str, key: str, default: Any) -> Any:
        with self._lock:
            return self._data.get(conversation_id, {}).get(key, default)

    def _set(self, conversation_id: str, key: str, value: Any) -> None:
        with self._lock:
            values = self._data.setdefault(conversation_id, {})
            if value is None:
                values.pop(key, None)
            else:
                values[key] = value
            self._save_unlocked()

    def _snapshot(self, conversation_id: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._data.get(conversation_id, {}))
