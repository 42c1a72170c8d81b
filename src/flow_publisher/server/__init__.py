"""FastAPI server adapter for flow-publisher.

This module exposes a REST API over the publication engine so an agent layer
can drive it over HTTP.

Design intent:
- Keep business logic in `flow_publisher.publisher.*`
- Keep server-specific concerns (routing, CORS, request models) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from flow_publisher.server.app import create_app
