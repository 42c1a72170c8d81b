"""Kestra UI link templates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import quote

ExecutionView = Literal["overview", "topology", "logs", "gantt"]

_VIEW_SUFFIX: dict[str, str] = {
    "overview": "",
    "topology": "/topology",
    "logs": "/logs",
    "gantt": "/gantt",
}


def flow_url(base_url: str, namespace: str, flow_id: str) -> str:
    return f"{base_url.rstrip('/')}/ui/flows/{namespace}/{flow_id}"


def namespace_url(base_url: str, namespace: str) -> str:
    return f"{base_url.rstrip('/')}/ui/flows?namespace={quote(namespace)}"


def execution_url(
    base_url: str,
    namespace: str,
    flow_id: str,
    execution_id: str,
    view: ExecutionView = "overview",
) -> str:
    if view not in _VIEW_SUFFIX:
        raise ValueError(f"Unknown execution view: {view}")
    base = f"{base_url.rstrip('/')}/ui/executions/{namespace}/{flow_id}/{execution_id}"
    return base + _VIEW_SUFFIX[view]


@dataclass(frozen=True, slots=True)
class FlowLinks:
    flow_url: str
    namespace_url: str
    execution_url: str | None = None
    topology_url: str | None = None
    logs_url: str | None = None
    gantt_url: str | None = None


def flow_links(
    base_url: str, namespace: str, flow_id: str, execution_id: str | None = None
) -> FlowLinks:
    """Every UI link useful for a flow and, optionally, one of its executions."""

    if not execution_id:
        return FlowLinks(
            flow_url=flow_url(base_url, namespace, flow_id),
            namespace_url=namespace_url(base_url, namespace),
        )
    return FlowLinks(
        flow_url=flow_url(base_url, namespace, flow_id),
        namespace_url=namespace_url(base_url, namespace),
        execution_url=execution_url(base_url, namespace, flow_id, execution_id),
        topology_url=execution_url(base_url, namespace, flow_id, execution_id, "topology"),
        logs_url=execution_url(base_url, namespace, flow_id, execution_id, "logs"),
        gantt_url=execution_url(base_url, namespace, flow_id, execution_id, "gantt"),
    )
