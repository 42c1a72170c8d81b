"""Shortcut module so `python -m flow_publisher.cli` works.

The CLI entrypoint is implemented in `flow_publisher.publisher.main`.
"""

from __future__ import annotations

from flow_publisher.publisher.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
