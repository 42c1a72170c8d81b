"""Test configuration and fixtures."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from flow_publisher.publisher.config import PublisherSettings
from flow_publisher.publisher.context import ContextStore
from flow_publisher.publisher.kestra.client import KestraClient
from flow_publisher.publisher.kestra.publication import FlowPublisher
from flow_publisher.publisher.pipeline import FlowPipeline

HELLO_FLOW = """\
# Generated by the flow assistant
id: hello-world   # readable id
namespace: company.team
description: Say hello
tasks:
  - id: hello
    type: io.kestra.plugin.core.log.Log
    message: "Hello, World!"
"""


@pytest.fixture
def hello_flow() -> str:
    """Provide a valid flow."""
    return HELLO_FLOW


@pytest.fixture
def settings(tmp_path: Path) -> PublisherSettings:
    """Provide settings that ignore the developer's environment files."""
    return PublisherSettings(
        _env_file=None,
        kestra_base_url="http://kestra:8080",
        kestra_ui_base_url="http://ui.kestra",
        default_namespace="company.team",
        execution_settle_seconds=0,
        context_state_path=tmp_path / "agent_state" / "contexts.json",
    )


@pytest.fixture
def mock_client() -> Mock:
    """Provide a Kestra client that never touches the network."""
    return Mock(spec=KestraClient)


@pytest.fixture
def publisher(mock_client: Mock) -> FlowPublisher:
    return FlowPublisher(client=mock_client, ui_base_url="http://ui.kestra", settle_seconds=0)


@pytest.fixture
def pipeline(publisher: FlowPublisher) -> FlowPipeline:
    return FlowPipeline(publisher=publisher, default_namespace="company.team")


@pytest.fixture
def context_store(tmp_path: Path) -> ContextStore:
    return ContextStore(tmp_path / "agent_state" / "contexts.json")
