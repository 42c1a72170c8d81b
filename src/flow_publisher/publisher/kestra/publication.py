"""Flow publication against Kestra.

Publication requirements:
- create the flow from its finalized YAML
- on an identifier conflict, rename once with a fresh unique id and retry once
- surface every other failure verbatim, without retrying

Updating, executing and polling existing flows live here too.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from flow_publisher.publisher.errors import (
    FlowConflictError,
    KestraApiError,
    KestraTransportError,
)
from flow_publisher.publisher.flow.document import WorkflowDocument
from flow_publisher.publisher.flow.identifier import patch_identity, unique_identifier
from flow_publisher.publisher.flow.validator import validate
from flow_publisher.publisher.kestra.client import KestraClient
from flow_publisher.publisher.kestra.links import execution_url, flow_url

logger = logging.getLogger(__name__)


class PublicationOutcome(str, Enum):
    CREATED = "created"
    CONFLICT = "conflict"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True, slots=True)
class PublicationAttempt:
    """Result of publishing a flow.

    After a conflict retry, `requested_id` is still the id first asked for,
    `resulting_id` is the fallback id and `retried_from` is the conflicting
    attempt.
    """

    requested_id: str
    namespace: str
    outcome: PublicationOutcome
    resulting_id: str | None = None
    external_url: str | None = None
    status_code: int | None = None
    errors: tuple[str, ...] = ()
    retried_from: PublicationAttempt | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is PublicationOutcome.CREATED


@dataclass(frozen=True, slots=True)
class UpdateResult:
    success: bool
    flow_id: str
    namespace: str
    status: str
    errors: list[str] = field(default_factory=list)
    validation_errors: list[str] = field(default_factory=list)
    flow_url: str | None = None
    changes: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    success: bool
    flow_id: str
    namespace: str
    status: str
    execution_id: str | None = None
    execution_url: str | None = None
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ExecutionStatus:
    success: bool
    execution_id: str
    status: str
    namespace: str | None = None
    flow_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    duration: str | None = None
    execution_url: str | None = None
    errors: list[str] = field(default_factory=list)


def _error_messages(error: KestraApiError) -> tuple[str, ...]:
    return (error.message, *error.details)


def _current_state(execution: dict[str, Any]) -> dict[str, Any]:
    state = execution.get("state")
    return state if isinstance(state, dict) else {}


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        # Kestra returns timestamps like "2025-01-01T00:00:00.123Z".
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def execution_duration(start: object, end: object) -> str | None:
    started, ended = _parse_timestamp(start), _parse_timestamp(end)
    if started is None or ended is None:
        return None
    return f"{round((ended - started).total_seconds())}s"


class FlowPublisher:
    """High-level, testable flow publication over a `KestraClient`."""

    def __init__(
        self,
        *,
        client: KestraClient,
        ui_base_url: str,
        settle_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._ui_base_url = ui_base_url
        self._settle_seconds = settle_seconds
        self._sleep = sleep

    def _submit(self, document: WorkflowDocument) -> PublicationAttempt:
        requested_id = document.id or ""
        namespace = document.namespace or ""
        try:
            created = self._client.create_flow(document.raw_text)
        except FlowConflictError as e:
            logger.info(
                "Flow id already in use",
                extra={"flow_id": requested_id, "namespace": namespace, "status_code": e.status_code},
            )
            return PublicationAttempt(
                requested_id=requested_id,
                namespace=namespace,
                outcome=PublicationOutcome.CONFLICT,
                status_code=e.status_code,
                errors=_error_messages(e),
            )
        except KestraApiError as e:
            logger.warning(
                "Flow rejected by Kestra",
                extra={"flow_id": requested_id, "status_code": e.status_code, "error": e.message},
            )
            return PublicationAttempt(
                requested_id=requested_id,
                namespace=namespace,
                outcome=PublicationOutcome.REJECTED,
                status_code=e.status_code,
                errors=_error_messages(e),
            )
        except KestraTransportError as e:
            logger.error("Kestra unreachable", extra={"flow_id": requested_id, "error": str(e)})
            return PublicationAttempt(
                requested_id=requested_id,
                namespace=namespace,
                outcome=PublicationOutcome.TRANSPORT_ERROR,
                errors=(str(e),),
            )

        resulting_id = created.get("id") if isinstance(created.get("id"), str) else requested_id
        resulting_ns = (
            created.get("namespace") if isinstance(created.get("namespace"), str) else namespace
        )
        logger.info("Flow created", extra={"flow_id": resulting_id, "namespace": resulting_ns})
        return PublicationAttempt(
            requested_id=requested_id,
            namespace=resulting_ns,
            outcome=PublicationOutcome.CREATED,
            resulting_id=resulting_id,
            external_url=flow_url(self._ui_base_url, resulting_ns, resulting_id),
        )

    def publish(
        self, document: WorkflowDocument, *, id_root: str | None = None
    ) -> PublicationAttempt:
        """Create the flow, renaming and retrying exactly once on an id conflict.

        `id_root` is the readable part reused for the fallback id; it defaults
        to the requested id.
        """

        errors = validate(document)
        if errors:
            return PublicationAttempt(
                requested_id=document.id or "",
                namespace=document.namespace or "",
                outcome=PublicationOutcome.REJECTED,
                errors=tuple(errors),
            )

        first = self._submit(document)
        if first.outcome is not PublicationOutcome.CONFLICT:
            return first

        fallback_id = unique_identifier(id_root or first.requested_id)
        logger.info(
            "Retrying flow creation with a fresh id",
            extra={"flow_id": first.requested_id, "fallback_id": fallback_id},
        )
        second = self._submit(patch_identity(document, flow_id=fallback_id))
        return replace(second, requested_id=first.requested_id, retried_from=first)

    def update(
        self,
        document: WorkflowDocument,
        *,
        namespace: str,
        flow_id: str,
        description: str | None = None,
    ) -> UpdateResult:
        """Replace an existing flow. The flow's own id/namespace must match the target."""

        validation_errors = validate(document)
        if document.id != flow_id:
            validation_errors.append(
                f"Flow id in YAML ({document.id}) must match the provided flow id ({flow_id})"
            )
        if document.namespace != namespace:
            validation_errors.append(
                f"Namespace in YAML ({document.namespace}) must match the provided "
                f"namespace ({namespace})"
            )
        if validation_errors:
            return UpdateResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="VALIDATION_FAILED",
                validation_errors=validation_errors,
            )

        try:
            exists = self._client.flow_exists(namespace=namespace, flow_id=flow_id)
        except (KestraApiError, KestraTransportError) as e:
            return UpdateResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="ERROR",
                errors=[f"Error checking flow existence: {e}"],
            )
        if not exists:
            return UpdateResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="FLOW_NOT_FOUND",
                errors=[f"Flow {namespace}/{flow_id} does not exist. Publish it first."],
            )

        try:
            self._client.update_flow(
                namespace=namespace, flow_id=flow_id, flow_yaml=document.raw_text
            )
        except (KestraApiError, KestraTransportError) as e:
            logger.warning("Flow update failed", extra={"flow_id": flow_id, "error": str(e)})
            return UpdateResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="UPDATE_FAILED",
                errors=[f"Flow update failed: {e}"],
            )

        logger.info("Flow updated", extra={"flow_id": flow_id, "namespace": namespace})
        return UpdateResult(
            success=True,
            flow_id=flow_id,
            namespace=namespace,
            status="UPDATED",
            flow_url=flow_url(self._ui_base_url, namespace, flow_id),
            changes=description or "Flow updated successfully",
        )

    def execute(
        self, *, namespace: str, flow_id: str, inputs: dict[str, Any] | None = None
    ) -> ExecutionResult:
        """Trigger an execution and report its state shortly after it starts."""

        try:
            exists = self._client.flow_exists(namespace=namespace, flow_id=flow_id)
        except (KestraApiError, KestraTransportError) as e:
            return ExecutionResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="ERROR",
                errors=[f"Error checking flow existence: {e}"],
            )
        if not exists:
            return ExecutionResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="FLOW_NOT_FOUND",
                errors=[f"Flow {namespace}/{flow_id} does not exist. Publish it first."],
            )

        try:
            execution = self._client.execute_flow(
                namespace=namespace, flow_id=flow_id, inputs=inputs
            )
        except (KestraApiError, KestraTransportError) as e:
            logger.warning("Flow execution failed", extra={"flow_id": flow_id, "error": str(e)})
            return ExecutionResult(
                success=False,
                flow_id=flow_id,
                namespace=namespace,
                status="EXECUTION_FAILED",
                errors=[f"Failed to execute flow: {e}"],
            )

        execution_id = str(execution["id"])
        status = str(_current_state(execution).get("current") or "CREATED")
        errors: list[str] = []

        if self._settle_seconds > 0:
            self._sleep(self._settle_seconds)
        try:
            refreshed = self._client.get_execution(execution_id)
            status = str(_current_state(refreshed).get("current") or status)
        except (KestraApiError, KestraTransportError) as e:
            logger.warning(
                "Could not refresh execution state",
                extra={"execution_id": execution_id, "error": str(e)},
            )
            errors.append(f"Failed to refresh execution status: {e}")

        logger.info(
            "Execution started",
            extra={"flow_id": flow_id, "execution_id": execution_id, "status": status},
        )
        return ExecutionResult(
            success=True,
            flow_id=flow_id,
            namespace=namespace,
            status=status,
            execution_id=execution_id,
            execution_url=execution_url(self._ui_base_url, namespace, flow_id, execution_id),
            errors=errors,
        )

    def execution_status(self, execution_id: str) -> ExecutionStatus:
        try:
            execution = self._client.get_execution(execution_id)
        except (KestraApiError, KestraTransportError, ValueError) as e:
            return ExecutionStatus(
                success=False,
                execution_id=execution_id,
                status="ERROR",
                errors=[f"Failed to get execution status: {e}"],
            )

        state = _current_state(execution)
        namespace = execution.get("namespace")
        flow_id = execution.get("flowId")
        url = None
        if isinstance(namespace, str) and isinstance(flow_id, str):
            url = execution_url(self._ui_base_url, namespace, flow_id, execution_id)
        return ExecutionStatus(
            success=True,
            execution_id=execution_id,
            status=str(state.get("current") or "UNKNOWN"),
            namespace=namespace if isinstance(namespace, str) else None,
            flow_id=flow_id if isinstance(flow_id, str) else None,
            start_date=state.get("startDate"),
            end_date=state.get("endDate"),
            duration=execution_duration(state.get("startDate"), state.get("endDate")),
            execution_url=url,
        )
