"""Exception taxonomy for the flow publication engine.

Exceptions are raised and caught inside a component. Across component
boundaries the engine returns structured results instead, so callers can
decide whether to ask for a corrected flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class FlowPublisherError(Exception):
    """Base class for all engine errors."""


class DocumentSyntaxError(FlowPublisherError):
    """The flow text is not valid YAML."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"YAML syntax error: {self.message}"


class StructuralError(FlowPublisherError):
    """The flow parses but violates the minimal schema."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class RepairFailure(FlowPublisherError):
    """A repair pass produced text that does not round-trip."""


@dataclass(eq=False)
class KestraApiError(FlowPublisherError):
    """Non-success HTTP response from the Kestra API."""

    status_code: int
    message: str
    details: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"HTTP {self.status_code}: {self.message}"


@dataclass(eq=False)
class FlowConflictError(KestraApiError):
    """The flow id is already taken in the target namespace."""


class KestraTransportError(FlowPublisherError):
    """The Kestra API could not be reached."""
