"""Flow publication engine.

Provides:
- Settings loaded from .env
- Structured logging
- Flow validation, repair and identifier resolution
- Conflict-safe publication to Kestra
- A small CLI surface
"""
