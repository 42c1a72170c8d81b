"""Kestra API access: REST client, publication service and UI links."""

from flow_publisher.publisher.kestra.client import KestraClient
from flow_publisher.publisher.kestra.links import FlowLinks, flow_links
from flow_publisher.publisher.kestra.publication import (
    ExecutionResult,
    ExecutionStatus,
    FlowPublisher,
    PublicationAttempt,
    PublicationOutcome,
    UpdateResult,
)

__all__ = [
    "ExecutionResult",
    "ExecutionStatus",
    "FlowLinks",
    "FlowPublisher",
    "KestraClient",
    "PublicationAttempt",
    "PublicationOutcome",
    "UpdateResult",
    "flow_links",
]
