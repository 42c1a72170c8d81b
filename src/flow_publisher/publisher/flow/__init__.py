"""Flow documents: parsing, validation, repair and identity."""

from flow_publisher.publisher.flow.document import (
    RetryPolicy,
    TaskSpec,
    WorkflowDocument,
    parse,
    serialize,
)
from flow_publisher.publisher.flow.identifier import (
    patch_identity,
    resolve_identifier,
    resolve_namespace,
    slugify,
)
from flow_publisher.publisher.flow.repair import RepairOutcome, repair
from flow_publisher.publisher.flow.validator import (
    ValidationResult,
    validate,
    validate_and_repair,
    validate_text,
)

__all__ = [
    "RepairOutcome",
    "RetryPolicy",
    "TaskSpec",
    "ValidationResult",
    "WorkflowDocument",
    "parse",
    "patch_identity",
    "repair",
    "resolve_identifier",
    "resolve_namespace",
    "serialize",
    "slugify",
    "validate",
    "validate_and_repair",
    "validate_text",
]
