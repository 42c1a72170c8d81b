"""CLI entrypoint for the flow publisher."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from flow_publisher import __version__
from flow_publisher.publisher.config import PublisherSettings
from flow_publisher.publisher.kestra.links import flow_links
from flow_publisher.publisher.logging import configure_logging
from flow_publisher.publisher.pipeline import FlowPipeline

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_INVALID = 3
EXIT_REMOTE = 4


def _read_flow(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _parse_inputs(values: list[str] | None) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Invalid input '{item}', expected KEY=VALUE")
        inputs[key.strip()] = value
    return inputs


def _print_errors(errors: list[str]) -> None:
    for error in errors:
        print(f"  - {error}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flow-publisher",
        description="Validate, repair and publish Kestra flows",
    )
    parser.add_argument("--version", action="version", version=f"flow-publisher {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate and repair a flow file")
    validate.add_argument("file", help="Flow YAML file ('-' for stdin)")
    validate.add_argument(
        "--print-fixed",
        action="store_true",
        help="Print the repaired YAML when repairs were applied",
    )

    publish = subparsers.add_parser("publish", help="Validate, repair and create a flow")
    publish.add_argument("file", help="Flow YAML file ('-' for stdin)")
    publish.add_argument("--flow-id", default=None, help="Use this id verbatim")
    publish.add_argument(
        "--purpose",
        default=None,
        help="Short description used as the readable part of a generated id",
    )
    publish.add_argument(
        "--namespace",
        default=None,
        help="Target namespace (defaults to the flow's, then KESTRA_DEFAULT_NAMESPACE)",
    )

    update = subparsers.add_parser("update", help="Replace an existing flow")
    update.add_argument("file", help="Flow YAML file ('-' for stdin)")
    update.add_argument("--namespace", required=True, help="Namespace of the existing flow")
    update.add_argument("--flow-id", required=True, help="Id of the existing flow")

    execute = subparsers.add_parser("execute", help="Trigger a flow execution")
    execute.add_argument("--namespace", required=True, help="Flow namespace")
    execute.add_argument("--flow-id", required=True, help="Flow id")
    execute.add_argument(
        "--input",
        dest="inputs",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Execution input (repeatable)",
    )

    status = subparsers.add_parser("status", help="Show the state of an execution")
    status.add_argument("execution_id", help="Execution id")

    links = subparsers.add_parser("links", help="Print Kestra UI links for a flow")
    links.add_argument("--namespace", required=True, help="Flow namespace")
    links.add_argument("--flow-id", required=True, help="Flow id")
    links.add_argument("--execution-id", default=None, help="Optional execution id")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = PublisherSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level, stream=sys.stderr)

    if args.command == "links":
        result = flow_links(settings.ui_base_url, args.namespace, args.flow_id, args.execution_id)
        print(f"Flow:      {result.flow_url}")
        print(f"Namespace: {result.namespace_url}")
        if result.execution_url:
            print(f"Execution: {result.execution_url}")
            print(f"Topology:  {result.topology_url}")
            print(f"Logs:      {result.logs_url}")
            print(f"Gantt:     {result.gantt_url}")
        return EXIT_OK

    try:
        inputs = _parse_inputs(getattr(args, "inputs", None))
        flow_text = _read_flow(args.file) if hasattr(args, "file") else None
    except (argparse.ArgumentTypeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    pipeline = FlowPipeline.from_settings(settings)

    if args.command == "validate":
        result = pipeline.validate(flow_text)
        print(result.message)
        for fix in result.fixes_made:
            print(f"  fixed: {fix}")
        _print_errors(result.remaining_errors)
        if args.print_fixed and result.fixed_text is not None:
            print(result.fixed_text, end="")
        return EXIT_OK if result.is_valid else EXIT_INVALID

    if args.command == "publish":
        report = pipeline.publish(
            flow_text,
            explicit_id=args.flow_id,
            purpose_hint=args.purpose,
            namespace=args.namespace,
        )
        if report.attempt is None:
            print(report.validation.message, file=sys.stderr)
            _print_errors(report.validation.remaining_errors)
            return EXIT_INVALID
        attempt = report.attempt
        if not attempt.succeeded:
            print(f"Publication failed ({attempt.outcome.value}):", file=sys.stderr)
            _print_errors(list(attempt.errors))
            return EXIT_REMOTE
        if attempt.retried_from is not None:
            print(f"Id '{attempt.requested_id}' was taken; published as '{attempt.resulting_id}'")
        print(f"Created flow {attempt.namespace}/{attempt.resulting_id}: {attempt.external_url}")
        return EXIT_OK

    if args.command == "update":
        update_result = pipeline.update(flow_text, namespace=args.namespace, flow_id=args.flow_id)
        if update_result.status == "VALIDATION_FAILED":
            print("Flow validation failed:", file=sys.stderr)
            _print_errors(update_result.validation_errors)
            return EXIT_INVALID
        if not update_result.success:
            print(f"Update failed ({update_result.status}):", file=sys.stderr)
            _print_errors(update_result.errors)
            return EXIT_REMOTE
        print(f"Updated flow {args.namespace}/{args.flow_id}: {update_result.flow_url}")
        return EXIT_OK

    if args.command == "execute":
        execution = pipeline.execute(namespace=args.namespace, flow_id=args.flow_id, inputs=inputs)
        if not execution.success:
            print(f"Execution failed ({execution.status}):", file=sys.stderr)
            _print_errors(execution.errors)
            return EXIT_REMOTE
        print(f"Execution {execution.execution_id}: {execution.status}")
        print(execution.execution_url)
        return EXIT_OK

    if args.command == "status":
        status = pipeline.publisher.execution_status(args.execution_id)
        if not status.success:
            print(f"Status lookup failed ({status.status}):", file=sys.stderr)
            _print_errors(status.errors)
            return EXIT_REMOTE
        line = f"Execution {status.execution_id}: {status.status}"
        if status.duration:
            line += f" ({status.duration})"
        print(line)
        if status.execution_url:
            print(status.execution_url)
        return EXIT_OK

    logger.error("Unknown command", extra={"command": args.command})
    return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main())
