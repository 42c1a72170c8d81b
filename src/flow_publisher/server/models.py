"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class SaveFlowRequest(BaseModel):
    flow_yaml: str = Field(min_length=1)
    flow_id: str | None = None
    namespace: str | None = None
    purpose: str | None = None
    execution_preference: Literal["auto", "manual"] | None = None


class FlowContextResponse(BaseModel):
    conversation_id: str
    flow_yaml: str | None = None
    flow_id: str | None = None
    namespace: str | None = None
    purpose: str | None = None
    execution_preference: Literal["auto", "manual"] | None = None


class ValidateRequest(BaseModel):
    """Flow text to check; empty means "use the conversation's flow"."""

    flow_yaml: str | None = None
    conversation_id: str | None = None


class ValidationResponse(BaseModel):
    is_valid: bool
    message: str
    errors: list[str] = Field(default_factory=list)
    remaining_errors: list[str] = Field(default_factory=list)
    fixes_made: list[str] = Field(default_factory=list)
    fixed_yaml: str | None = None


class PublishRequest(BaseModel):
    flow_yaml: str | None = None
    conversation_id: str | None = None
    flow_id: str | None = None
    purpose: str | None = None
    namespace: str | None = None


class ApiPublicationAttempt(BaseModel):
    requested_id: str
    namespace: str
    outcome: Literal["created", "conflict", "rejected", "transport_error"]
    resulting_id: str | None = None
    external_url: str | None = None
    status_code: int | None = None
    errors: list[str] = Field(default_factory=list)
    retried_from: ApiPublicationAttempt | None = None


class PublishResponse(BaseModel):
    published: bool
    validation: ValidationResponse
    attempt: ApiPublicationAttempt | None = None
    flow_yaml: str | None = None


class UpdateRequest(BaseModel):
    flow_yaml: str | None = None
    conversation_id: str | None = None
    description: str | None = None


class UpdateResponse(BaseModel):
    success: bool
    flow_id: str
    namespace: str
    status: str
    errors: list[str] = Field(default_factory=list)
    validation_errors: list[str] = Field(default_factory=list)
    flow_url: str | None = None
    changes: str | None = None


class ExecuteRequest(BaseModel):
    inputs: dict[str, Any] = Field(default_factory=dict)
    conversation_id: str | None = None


class ExecutionResponse(BaseModel):
    success: bool
    flow_id: str
    namespace: str
    status: str
    execution_id: str | None = None
    execution_url: str | None = None
    errors: list[str] = Field(default_factory=list)


class ExecutionStatusResponse(BaseModel):
    success: bool
    execution_id: str
    status: str
    namespace: str | None = None
    flow_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    duration: str | None = None
    execution_url: str | None = None
    errors: list[str] = Field(default_factory=list)


class FlowLinksResponse(BaseModel):
    flow_url: str
    namespace_url: str
    execution_url: str | None = None
    topology_url: str | None = None
    logs_url: str | None = None
    gantt_url: str | None = None
