"""Validate, repair, identify and publish a flow in one call.

The pipeline is the only place where the flow components meet:

    text -> validate_and_repair -> resolve id/namespace -> patch -> publish

Syntax errors and structural errors that repair cannot fix stop the pipeline
before any network call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from flow_publisher.publisher.config import PublisherSettings
from flow_publisher.publisher.context import FlowContext
from flow_publisher.publisher.errors import DocumentSyntaxError
from flow_publisher.publisher.flow.document import WorkflowDocument, parse
from flow_publisher.publisher.flow.identifier import (
    identifier_root,
    patch_identity,
    resolve_identifier,
    resolve_namespace,
)
from flow_publisher.publisher.flow.validator import ValidationResult, validate_and_repair
from flow_publisher.publisher.kestra.client import KestraClient
from flow_publisher.publisher.kestra.publication import (
    ExecutionResult,
    FlowPublisher,
    PublicationAttempt,
    UpdateResult,
)

logger = logging.getLogger(__name__)

NO_FLOW_MESSAGE = "No flow YAML provided or found in context"


@dataclass(slots=True)
class PublishReport:
    """Everything that happened to one flow on its way to Kestra.

    `attempt` is None when the pipeline stopped before any network call.
    """

    validation: ValidationResult
    document: WorkflowDocument | None = None
    attempt: PublicationAttempt | None = None

    @property
    def published(self) -> bool:
        return self.attempt is not None and self.attempt.succeeded

    @property
    def errors(self) -> list[str]:
        if self.attempt is not None:
            return list(self.attempt.errors)
        return list(self.validation.remaining_errors)


def _missing_flow() -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        original_text="",
        errors=[NO_FLOW_MESSAGE],
        remaining_errors=[NO_FLOW_MESSAGE],
    )


class FlowPipeline:
    def __init__(self, *, publisher: FlowPublisher, default_namespace: str) -> None:
        self._publisher = publisher
        self._default_namespace = default_namespace

    @classmethod
    def from_settings(
        cls, settings: PublisherSettings, *, client: KestraClient | None = None
    ) -> FlowPipeline:
        client = client or KestraClient(
            base_url=settings.kestra_base_url,
            tenant=settings.kestra_tenant,
            username=settings.kestra_username,
            password=settings.kestra_password,
            timeout=settings.request_timeout_seconds,
        )
        publisher = FlowPublisher(
            client=client,
            ui_base_url=settings.ui_base_url,
            settle_seconds=settings.execution_settle_seconds,
        )
        return cls(publisher=publisher, default_namespace=settings.default_namespace)

    @property
    def publisher(self) -> FlowPublisher:
        return self._publisher

    @staticmethod
    def _flow_text(text: str | None, context: FlowContext | None) -> str | None:
        if text and text.strip():
            return text
        if context is not None:
            return context.flow_yaml
        return None

    def validate(
        self, text: str | None = None, context: FlowContext | None = None
    ) -> ValidationResult:
        """Validate and repair a flow, taking it from `context` when `text` is empty.

        A valid repaired flow replaces the one stored in `context`.
        """

        return self._validate(text, context, self._default_namespace)

    def _validate(
        self, text: str | None, context: FlowContext | None, default_namespace: str
    ) -> ValidationResult:
        flow_text = self._flow_text(text, context)
        if flow_text is None:
            return _missing_flow()

        result = validate_and_repair(flow_text, default_namespace=default_namespace)
        if context is not None and result.is_valid and result.fixed_text is not None:
            context.flow_yaml = result.fixed_text
        logger.info(
            "Flow validated",
            extra={
                "is_valid": result.is_valid,
                "errors": len(result.errors),
                "fixes": len(result.fixes_made),
            },
        )
        return result

    def publish(
        self,
        text: str | None = None,
        context: FlowContext | None = None,
        *,
        explicit_id: str | None = None,
        purpose_hint: str | None = None,
        namespace: str | None = None,
    ) -> PublishReport:
        """Validate, repair and create a flow.

        Namespace precedence is `namespace`, then the flow's own, then the
        namespace last published from `context`, then the configured default.
        """

        default_namespace = self._default_namespace
        if context is not None:
            purpose_hint = purpose_hint or context.purpose
            default_namespace = context.namespace or default_namespace

        validation = self._validate(text, context, default_namespace)
        document = validation.final_document
        if not validation.is_valid or document is None:
            logger.warning(
                "Flow not published: validation failed",
                extra={"errors": validation.remaining_errors},
            )
            return PublishReport(validation=validation)

        flow_id = resolve_identifier(document, explicit_id, purpose_hint)
        flow_namespace = resolve_namespace(document, namespace, default_namespace=default_namespace)
        id_root = None if explicit_id else identifier_root(document, purpose_hint)
        final = patch_identity(document, flow_id=flow_id, namespace=flow_namespace)

        attempt = self._publisher.publish(final, id_root=id_root)
        if not attempt.succeeded:
            return PublishReport(validation=validation, document=final, attempt=attempt)

        if attempt.resulting_id and attempt.resulting_id != final.id:
            final = patch_identity(final, flow_id=attempt.resulting_id)
        if context is not None:
            context.flow_yaml = final.raw_text
            context.flow_id = attempt.resulting_id
            context.namespace = attempt.namespace
        return PublishReport(validation=validation, document=final, attempt=attempt)

    def update(
        self,
        text: str | None = None,
        context: FlowContext | None = None,
        *,
        namespace: str | None = None,
        flow_id: str | None = None,
        description: str | None = None,
    ) -> UpdateResult:
        """Replace an existing flow; the target defaults to the context's flow."""

        if context is not None:
            namespace = namespace or context.namespace
            flow_id = flow_id or context.flow_id
        flow_text = self._flow_text(text, context)
        if flow_text is None or not namespace or not flow_id:
            errors = [NO_FLOW_MESSAGE] if flow_text is None else []
            if not namespace or not flow_id:
                errors.append("namespace and flow id are required to update a flow")
            return UpdateResult(
                success=False,
                flow_id=flow_id or "",
                namespace=namespace or "",
                status="VALIDATION_FAILED",
                validation_errors=errors,
            )

        try:
            document = parse(flow_text)
        except DocumentSyntaxError as e:
            return UpdateResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="VALIDATION_FAILED",
                validation_errors=[str(e)],
            )

        result = self._publisher.update(
            document, namespace=namespace, flow_id=flow_id, description=description
        )
        if result.success and context is not None:
            context.flow_yaml = flow_text
        return result

    def execute(
        self,
        context: FlowContext | None = None,
        *,
        namespace: str | None = None,
        flow_id: str | None = None,
        inputs: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        if context is not None:
            namespace = namespace or context.namespace
            flow_id = flow_id or context.flow_id
        if not namespace or not flow_id:
            return ExecutionResult(
                success=False,
                flow_id=flow_id or "",
                namespace=namespace or "",
                status="ERROR",
                errors=["namespace and flow id are required to execute a flow"],
            )
        return self._publisher.execute(namespace=namespace, flow_id=flow_id, inputs=inputs)
