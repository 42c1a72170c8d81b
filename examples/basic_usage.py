#!/usr/bin/env python3
"""Programmatic flow publication example.

This demonstrates using the publisher components directly:

* load settings from `.env`
* store a generated flow in a conversation context
* validate, repair and publish it to Kestra

The flow file is passed as an argument.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from flow_publisher.publisher.config import PublisherSettings
from flow_publisher.publisher.context import ContextStore
from flow_publisher.publisher.logging import configure_logging
from flow_publisher.publisher.pipeline import FlowPipeline


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish a Kestra flow (programmatic example).")
    parser.add_argument("file", help="Flow YAML file, or text containing a ```yaml block")
    parser.add_argument("--purpose", default=None, help="Readable part of the generated id")
    parser.add_argument("--conversation", default="example", help="Conversation id")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = PublisherSettings()
    configure_logging(settings.log_level)

    store = ContextStore(settings.context_state_path)
    context = store.context(args.conversation)
    context.save_flow(Path(args.file).read_text(encoding="utf-8"), purpose=args.purpose)

    pipeline = FlowPipeline.from_settings(settings)
    report = pipeline.publish(context=context)

    for fix in report.validation.fixes_made:
        print(f"fixed: {fix}")
    if not report.published:
        for error in report.errors:
            print(f"error: {error}")
        return 1

    print(f"Published {context.namespace}/{context.flow_id}: {report.attempt.external_url}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
