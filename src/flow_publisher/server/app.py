"""FastAPI app factory.

Endpoints are thin wrappers over `FlowPipeline`. Failures of the engine are
reported in the response body, not as HTTP errors, so an agent can read them
and ask for a corrected flow.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from flow_publisher import __version__
from flow_publisher.publisher.context import ContextStore, FlowContext
from flow_publisher.publisher.flow.validator import ValidationResult
from flow_publisher.publisher.kestra.client import KestraClient
from flow_publisher.publisher.kestra.links import flow_links
from flow_publisher.publisher.kestra.publication import PublicationAttempt
from flow_publisher.publisher.pipeline import FlowPipeline
from flow_publisher.server.config import ServerSettings
from flow_publisher.server.models import (
    ApiPublicationAttempt,
    ExecuteRequest,
    ExecutionResponse,
    ExecutionStatusResponse,
    FlowContextResponse,
    FlowLinksResponse,
    PublishRequest,
    PublishResponse,
    SaveFlowRequest,
    UpdateRequest,
    UpdateResponse,
    ValidateRequest,
    ValidationResponse,
)

logger = logging.getLogger(__name__)


def _to_api_validation(result: ValidationResult) -> ValidationResponse:
    return ValidationResponse(
        is_valid=result.is_valid,
        message=result.message,
        errors=result.errors,
        remaining_errors=result.remaining_errors,
        fixes_made=result.fixes_made,
        fixed_yaml=result.fixed_text,
    )


def _to_api_attempt(attempt: PublicationAttempt) -> ApiPublicationAttempt:
    return ApiPublicationAttempt(
        requested_id=attempt.requested_id,
        namespace=attempt.namespace,
        outcome=attempt.outcome.value,
        resulting_id=attempt.resulting_id,
        external_url=attempt.external_url,
        status_code=attempt.status_code,
        errors=list(attempt.errors),
        retried_from=(
            _to_api_attempt(attempt.retried_from) if attempt.retried_from is not None else None
        ),
    )


def _to_api_context(context: FlowContext) -> FlowContextResponse:
    return FlowContextResponse(
        conversation_id=context.conversation_id,
        flow_yaml=context.flow_yaml,
        flow_id=context.flow_id,
        namespace=context.namespace,
        purpose=context.purpose,
        execution_preference=context.execution_preference,
    )


def create_app(
    settings: ServerSettings | None = None, client: KestraClient | None = None
) -> FastAPI:
    settings = settings or ServerSettings()

    app = FastAPI(
        title="Flow Publisher",
        version=__version__,
        description="REST API over the Kestra flow validation and publication engine.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose settings for request handlers that want to read it.
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    pipeline = FlowPipeline.from_settings(settings, client=client)
    store = ContextStore(settings.context_state_path)

    def _context(conversation_id: str | None) -> FlowContext | None:
        if conversation_id is None:
            return None
        if not conversation_id.strip():
            raise HTTPException(status_code=422, detail="conversation_id must not be empty")
        return store.context(conversation_id)

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.put("/api/v1/conversations/{conversation_id}/flow", response_model=FlowContextResponse)
    def save_flow(conversation_id: str, req: SaveFlowRequest) -> FlowContextResponse:
        context = store.context(conversation_id)
        context.save_flow(
            req.flow_yaml, flow_id=req.flow_id, namespace=req.namespace, purpose=req.purpose
        )
        if req.execution_preference is not None:
            context.execution_preference = req.execution_preference
        logger.info("Flow saved to context", extra={"conversation_id": conversation_id})
        return _to_api_context(context)

    @app.get("/api/v1/conversations/{conversation_id}/flow", response_model=FlowContextResponse)
    def get_flow(conversation_id: str) -> FlowContextResponse:
        return _to_api_context(store.context(conversation_id))

    @app.post("/api/v1/flows/validate", response_model=ValidationResponse)
    def validate_flow(req: ValidateRequest) -> ValidationResponse:
        result = pipeline.validate(req.flow_yaml, _context(req.conversation_id))
        return _to_api_validation(result)

    @app.post("/api/v1/flows", response_model=PublishResponse)
    def publish_flow(req: PublishRequest) -> PublishResponse:
        report = pipeline.publish(
            req.flow_yaml,
            _context(req.conversation_id),
            explicit_id=req.flow_id,
            purpose_hint=req.purpose,
            namespace=req.namespace,
        )
        return PublishResponse(
            published=report.published,
            validation=_to_api_validation(report.validation),
            attempt=_to_api_attempt(report.attempt) if report.attempt is not None else None,
            flow_yaml=report.document.raw_text if report.document is not None else None,
        )

    @app.put("/api/v1/flows/{namespace}/{flow_id}", response_model=UpdateResponse)
    def update_flow(namespace: str, flow_id: str, req: UpdateRequest) -> UpdateResponse:
        result = pipeline.update(
            req.flow_yaml,
            _context(req.conversation_id),
            namespace=namespace,
            flow_id=flow_id,
            description=req.description,
        )
        return UpdateResponse.model_validate(asdict(result))

    @app.post("/api/v1/flows/{namespace}/{flow_id}/executions", response_model=ExecutionResponse)
    def execute_flow(namespace: str, flow_id: str, req: ExecuteRequest) -> ExecutionResponse:
        result = pipeline.execute(
            _context(req.conversation_id),
            namespace=namespace,
            flow_id=flow_id,
            inputs=req.inputs or None,
        )
        return ExecutionResponse.model_validate(asdict(result))

    @app.get("/api/v1/executions/{execution_id}", response_model=ExecutionStatusResponse)
    def execution_status(execution_id: str) -> ExecutionStatusResponse:
        result = pipeline.publisher.execution_status(execution_id)
        return ExecutionStatusResponse.model_validate(asdict(result))

    @app.get("/api/v1/flows/{namespace}/{flow_id}/links", response_model=FlowLinksResponse)
    def links(namespace: str, flow_id: str, execution_id: str | None = None) -> FlowLinksResponse:
        result = flow_links(settings.ui_base_url, namespace, flow_id, execution_id)
        return FlowLinksResponse.model_validate(asdict(result))

    return app
