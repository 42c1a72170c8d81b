"""Unit tests for the validate-repair-publish pipeline."""

from __future__ import annotations

from unittest.mock import Mock

from flow_publisher.publisher.config import PublisherSettings
from flow_publisher.publisher.context import ContextStore
from flow_publisher.publisher.errors import FlowConflictError, KestraApiError
from flow_publisher.publisher.flow.document import parse
from flow_publisher.publisher.kestra.publication import PublicationOutcome
from flow_publisher.publisher.pipeline import NO_FLOW_MESSAGE, FlowPipeline

NEEDS_REPAIR = """\
id: sales-report
tasks:
  - id: fetch
    type: io.kestra.plugin.core.http.Request
    uri: https://example.com/sales
    retry: 3
"""


def test_publish_generates_id_from_purpose(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore, hello_flow: str
) -> None:
    context = context_store.context("conv-1")
    context.save_flow(hello_flow, purpose="Daily greeting")
    mock_client.create_flow.return_value = {}

    report = pipeline.publish(context=context)

    assert report.published
    assert report.attempt is not None
    assert report.attempt.resulting_id is not None
    assert report.attempt.resulting_id.startswith("daily-greeting-")
    assert context.flow_id == report.attempt.resulting_id
    assert context.namespace == "company.team"
    assert report.document is not None
    assert parse(context.flow_yaml or "").id == report.attempt.resulting_id
    assert report.document.raw_text.startswith("# Generated by the flow assistant\n")


def test_publish_repairs_before_sending(pipeline: FlowPipeline, mock_client: Mock) -> None:
    mock_client.create_flow.return_value = {}

    report = pipeline.publish(NEEDS_REPAIR, namespace="Sales.Team")

    assert report.published
    assert report.validation.errors == ["namespace is required"]
    assert len(report.validation.fixes_made) == 2
    sent = parse(mock_client.create_flow.call_args.args[0])
    assert sent.namespace == "sales.team"
    assert sent.id is not None and sent.id.startswith("sales-report-")
    assert sent.model["tasks"][0]["retry"] == {"type": "constant", "maxAttempt": 3}
    assert sent.model["tasks"][0]["uri"] == "https://example.com/sales"


def test_explicit_id_conflict_gets_one_fresh_id(
    pipeline: FlowPipeline, mock_client: Mock, hello_flow: str
) -> None:
    mock_client.create_flow.side_effect = [
        FlowConflictError(status_code=409, message="Flow already exists"),
        {},
    ]

    report = pipeline.publish(hello_flow, explicit_id="hello")

    attempt = report.attempt
    assert attempt is not None
    assert attempt.outcome is PublicationOutcome.CREATED
    assert attempt.requested_id == "hello"
    assert attempt.resulting_id != "hello"
    assert (attempt.resulting_id or "").startswith("hello-")
    assert report.document is not None
    assert report.document.id == attempt.resulting_id
    assert mock_client.create_flow.call_count == 2


def test_unrepairable_flow_is_not_sent(pipeline: FlowPipeline, mock_client: Mock) -> None:
    report = pipeline.publish('id: ""\nnamespace: ""\ntasks: []\n')

    assert not report.published
    assert report.attempt is None
    assert report.errors == ["id must not be empty", "tasks: at least one task required"]
    mock_client.create_flow.assert_not_called()


def test_syntax_error_is_not_sent(pipeline: FlowPipeline, mock_client: Mock) -> None:
    report = pipeline.publish("id: [broken\n")

    assert report.attempt is None
    assert report.errors[0].startswith("YAML syntax error:")
    mock_client.create_flow.assert_not_called()


def test_rejection_leaves_context_untouched(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore, hello_flow: str
) -> None:
    context = context_store.context("conv-1")
    context.save_flow(hello_flow)
    mock_client.create_flow.side_effect = KestraApiError(status_code=422, message="Invalid")

    report = pipeline.publish(context=context)

    assert not report.published
    assert report.errors == ["Invalid"]
    assert context.flow_id is None
    assert context.flow_yaml == hello_flow.strip()


def test_new_flow_keeps_its_own_namespace(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore
) -> None:
    context = context_store.context("conv-1")
    mock_client.create_flow.return_value = {}
    context.save_flow("id: a\nnamespace: first.ns\ntasks:\n  - id: t\n    type: log\n")
    assert pipeline.publish(context=context).published
    assert context.namespace == "first.ns"

    context.save_flow("id: b\nnamespace: second.ns\ntasks:\n  - id: t\n    type: log\n")
    report = pipeline.publish(context=context)

    assert report.attempt is not None
    assert report.attempt.namespace == "second.ns"
    assert context.namespace == "second.ns"


def test_context_namespace_fills_a_missing_one(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore
) -> None:
    context = context_store.context("conv-1")
    context.namespace = "team.prior"
    mock_client.create_flow.return_value = {}

    report = pipeline.publish("id: c\ntasks:\n  - id: t\n    type: log\n", context)

    assert report.validation.fixes_made == ["Added missing namespace: 'team.prior'"]
    assert report.attempt is not None
    assert report.attempt.namespace == "team.prior"
    assert parse(mock_client.create_flow.call_args.args[0]).namespace == "team.prior"


def test_no_flow_anywhere(pipeline: FlowPipeline, context_store: ContextStore) -> None:
    assert pipeline.validate().errors == [NO_FLOW_MESSAGE]
    assert pipeline.publish(context=context_store.context("empty")).errors == [NO_FLOW_MESSAGE]


def test_validate_stores_repaired_flow(
    pipeline: FlowPipeline, context_store: ContextStore
) -> None:
    context = context_store.context("conv-1")
    context.save_flow(NEEDS_REPAIR)

    result = pipeline.validate(context=context)

    assert result.is_valid
    assert context.flow_yaml == result.fixed_text
    assert parse(context.flow_yaml or "").namespace == "company.team"


def test_update_uses_context_target(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore, hello_flow: str
) -> None:
    context = context_store.context("conv-1")
    context.save_flow(hello_flow, flow_id="hello-world", namespace="company.team")
    mock_client.flow_exists.return_value = True
    mock_client.update_flow.return_value = {}

    result = pipeline.update(context=context)

    assert result.status == "UPDATED"
    mock_client.update_flow.assert_called_once()


def test_update_without_target(pipeline: FlowPipeline, hello_flow: str) -> None:
    result = pipeline.update(hello_flow)

    assert result.status == "VALIDATION_FAILED"
    assert result.validation_errors == ["namespace and flow id are required to update a flow"]


def test_execute_uses_context_target(
    pipeline: FlowPipeline, mock_client: Mock, context_store: ContextStore
) -> None:
    context = context_store.context("conv-1")
    context.flow_id = "hello-world"
    context.namespace = "company.team"
    mock_client.flow_exists.return_value = True
    mock_client.execute_flow.return_value = {"id": "e1", "state": {"current": "CREATED"}}
    mock_client.get_execution.return_value = {"id": "e1", "state": {"current": "RUNNING"}}

    result = pipeline.execute(context, inputs={"day": "monday"})

    assert result.status == "RUNNING"
    mock_client.execute_flow.assert_called_once_with(
        namespace="company.team", flow_id="hello-world", inputs={"day": "monday"}
    )
    assert pipeline.execute().status == "ERROR"


def test_from_settings_wires_ui_links(settings: PublisherSettings, hello_flow: str) -> None:
    client = Mock()
    client.create_flow.return_value = {"id": "hello-world", "namespace": "company.team"}

    report = FlowPipeline.from_settings(settings, client=client).publish(
        hello_flow, explicit_id="hello-world"
    )

    assert report.attempt is not None
    assert report.attempt.external_url == "http://ui.kestra/ui/flows/company.team/hello-world"
