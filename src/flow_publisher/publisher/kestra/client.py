"""Kestra REST API client.

This intentionally wraps `requests` to keep HTTP calls out of the publication
logic and make tests easy: a fake session can be injected.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import requests

from flow_publisher.publisher.errors import (
    FlowConflictError,
    KestraApiError,
    KestraTransportError,
)

logger = logging.getLogger(__name__)

YAML_CONTENT_TYPE = "application/x-yaml"
CONFLICT_STATUS = 409
_ALREADY_EXISTS = re.compile(r"already\s+exists", re.IGNORECASE)


def is_conflict(status_code: int, message: str) -> bool:
    """Whether an error response signals identifier reuse."""

    return status_code == CONFLICT_STATUS or bool(_ALREADY_EXISTS.search(message or ""))


def _error_details(payload: Any) -> list[str]:
    """Collect per-field messages from a Kestra validation error body.

    Kestra answers 422 with a body like
    `{"message": "...", "_embedded": {"errors": [{"message": "...", "path": "..."}]}}`.
    """

    if not isinstance(payload, dict):
        return []
    embedded = payload.get("_embedded")
    errors = embedded.get("errors") if isinstance(embedded, dict) else None
    if not isinstance(errors, list):
        return []
    details: list[str] = []
    for item in errors:
        if not isinstance(item, dict):
            continue
        message = item.get("message")
        if not isinstance(message, str) or not message.strip():
            continue
        path = item.get("path")
        details.append(f"{path}: {message}" if isinstance(path, str) and path else message)
    return details


class KestraClient:
    """Small wrapper around the Kestra flows and executions endpoints."""

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:8100",
        tenant: str = "",
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("Kestra base URL is required")

        self._base_url = base_url.strip().rstrip("/")
        api_root = f"{self._base_url}/api/v1"
        self._api_root = f"{api_root}/{tenant.strip('/')}" if tenant.strip("/") else api_root
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": "flow-publisher"})
        if username:
            self._session.auth = (username, password)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def api_root(self) -> str:
        return self._api_root

    def _url(self, path: str) -> str:
        return f"{self._api_root}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._url(path)
        logger.debug("Kestra request", extra={"method": method, "url": url})
        try:
            return self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise KestraTransportError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    def _raise_for_status(self, resp: requests.Response) -> None:
        if 200 <= resp.status_code < 300:
            return
        payload = self._json(resp)
        message = ""
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            message = payload["message"]
        if not message:
            message = (resp.text or "").strip() or resp.reason or "Unknown error"
        details = _error_details(payload)
        error_cls = FlowConflictError if is_conflict(resp.status_code, message) else KestraApiError
        raise error_cls(status_code=resp.status_code, message=message, details=details)

    def get_flow(self, *, namespace: str, flow_id: str) -> dict[str, Any] | None:
        """Return the flow, or None when it does not exist."""

        resp = self._request("GET", f"flows/{namespace}/{flow_id}")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}

    def flow_exists(self, *, namespace: str, flow_id: str) -> bool:
        return self.get_flow(namespace=namespace, flow_id=flow_id) is not None

    def create_flow(self, flow_yaml: str) -> dict[str, Any]:
        """Create a flow from its YAML source.

        Raises:
            FlowConflictError: If the id is already taken.
            KestraApiError: For any other rejection.
            KestraTransportError: If the server cannot be reached.
        """

        resp = self._request(
            "POST",
            "flows",
            data=flow_yaml.encode("utf-8"),
            headers={"Content-Type": YAML_CONTENT_TYPE},
        )
        self._raise_for_status(resp)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}

    def update_flow(self, *, namespace: str, flow_id: str, flow_yaml: str) -> dict[str, Any]:
        resp = self._request(
            "PUT",
            f"flows/{namespace}/{flow_id}",
            data=flow_yaml.encode("utf-8"),
            headers={"Content-Type": YAML_CONTENT_TYPE},
        )
        self._raise_for_status(resp)
        data = self._json(resp)
        return data if isinstance(data, dict) else {}

    def execute_flow(
        self, *, namespace: str, flow_id: str, inputs: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Trigger an execution. Inputs are sent as multipart form fields."""

        # (None, value) tuples make requests encode plain multipart fields.
        files = {key: (None, str(value)) for key, value in (inputs or {}).items()}
        resp = self._request(
            "POST",
            f"executions/{namespace}/{flow_id}",
            files=files or None,
        )
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            raise KestraApiError(
                status_code=resp.status_code,
                message="Unexpected execution response: missing id",
            )
        return data

    def get_execution(self, execution_id: str) -> dict[str, Any]:
        if not execution_id.strip():
            raise ValueError("execution_id is required")
        resp = self._request("GET", f"executions/{execution_id}")
        self._raise_for_status(resp)
        data = self._json(resp)
        if not isinstance(data, dict):
            raise KestraApiError(
                status_code=resp.status_code, message="Unexpected execution response"
            )
        return data

    def close(self) -> None:
        self._session.close()
        logger.debug("Kestra client closed")
