"""Unit tests for Kestra UI links."""

from __future__ import annotations

import pytest

from flow_publisher.publisher.kestra.links import execution_url, flow_links, flow_url, namespace_url


def test_flow_and_namespace_urls() -> None:
    assert flow_url("http://ui/", "company.team", "hello") == "http://ui/ui/flows/company.team/hello"
    assert namespace_url("http://ui", "company.team") == "http://ui/ui/flows?namespace=company.team"


def test_execution_views() -> None:
    base = "http://ui/ui/executions/company.team/hello/e1"

    assert execution_url("http://ui", "company.team", "hello", "e1") == base
    assert execution_url("http://ui", "company.team", "hello", "e1", "logs") == base + "/logs"
    with pytest.raises(ValueError):
        execution_url("http://ui", "company.team", "hello", "e1", "metrics")  # type: ignore[arg-type]


def test_flow_links_with_and_without_execution() -> None:
    without = flow_links("http://ui", "company.team", "hello")
    assert without.execution_url is None
    assert without.gantt_url is None

    links = flow_links("http://ui", "company.team", "hello", "e1")
    assert links.flow_url == "http://ui/ui/flows/company.team/hello"
    assert links.topology_url == "http://ui/ui/executions/company.team/hello/e1/topology"
    assert links.gantt_url == "http://ui/ui/executions/company.team/hello/e1/gantt"
