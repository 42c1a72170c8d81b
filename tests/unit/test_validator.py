"""Unit tests for structural validation and validate-and-repair."""

from __future__ import annotations

from flow_publisher.publisher.flow.document import parse
from flow_publisher.publisher.flow.validator import (
    validate,
    validate_and_repair,
    validate_model,
    validate_text,
)


def test_valid_flow_has_no_errors(hello_flow: str) -> None:
    assert validate(parse(hello_flow)) == []


def test_empty_fields_are_all_reported() -> None:
    errors = validate_model({"id": "", "namespace": "", "tasks": []})

    assert errors == [
        "id must not be empty",
        "namespace must not be empty",
        "tasks: at least one task required",
    ]


def test_missing_and_mistyped_fields() -> None:
    errors = validate_model({"id": 42, "tasks": {"id": "t"}})

    assert errors == ["id must be a string", "namespace is required", "tasks must be a list"]


def test_task_problems_are_indexed() -> None:
    errors = validate_model(
        {
            "id": "f",
            "namespace": "n",
            "tasks": [
                {"id": "a"},
                "not-a-task",
                {"id": "", "type": ""},
                {"id": "a", "type": "x"},
            ],
        }
    )

    assert errors == [
        "tasks[0].type is required",
        "tasks[1] must be a mapping",
        "tasks[2].id must not be empty",
        "tasks[2].type must not be empty",
        "tasks[3].id 'a' is duplicated",
    ]


def test_non_mapping_document() -> None:
    assert validate_model(["a", "b"]) == ["document must be a mapping"]
    assert validate_model(None) == ["document must be a mapping"]


def test_validate_text_reports_syntax_error_without_repair() -> None:
    result = validate_and_repair("id: [unclosed\n", default_namespace="company.team")

    assert not result.is_valid
    assert len(result.errors) == 1
    assert result.errors[0].startswith("YAML syntax error:")
    assert result.fixes_made == []
    assert result.fixed_document is None
    assert result.document is None


def test_empty_fields_are_only_partially_repairable() -> None:
    result = validate_and_repair(
        'id: ""\nnamespace: ""\ntasks: []\n', default_namespace="company.team"
    )

    assert result.errors == [
        "id must not be empty",
        "namespace must not be empty",
        "tasks: at least one task required",
    ]
    assert result.fixes_made == ["Added missing namespace: 'company.team'"]
    assert result.remaining_errors == [
        "id must not be empty",
        "tasks: at least one task required",
    ]
    assert result.fixed_document is not None
    assert result.fixed_document.namespace == "company.team"
    assert result.fixed_document.model["tasks"] == []
    assert result.is_valid is False
    assert result.message == "Flow validation failed with 2 error(s)."


def test_string_retry_is_normalized_on_a_valid_flow() -> None:
    text = """\
id: hello
namespace: company.team
tasks:
  - id: t1
    type: log
    retry: "3"
"""
    result = validate_and_repair(text, default_namespace="company.team")

    assert result.errors == []
    assert result.is_valid
    assert len(result.fixes_made) == 1
    assert result.fixed_document is not None
    assert result.fixed_document.model["tasks"][0]["retry"] == {
        "type": "constant",
        "maxAttempt": 3,
    }
    assert result.final_document is result.fixed_document
    assert "maxAttempt: 3" in (result.fixed_text or "")


def test_untouched_valid_flow_keeps_original_text(hello_flow: str) -> None:
    result = validate_and_repair(hello_flow, default_namespace="company.team")

    assert result.is_valid
    assert result.fixes_made == []
    assert result.fixed_document is None
    assert result.final_document is not None
    assert result.final_document.raw_text == hello_flow
    assert result.message == "Flow is valid. No corrections needed."


def test_missing_namespace_makes_flow_valid_after_repair() -> None:
    text = "id: hello\ntasks:\n  - id: t1\n    type: log\n"

    result = validate_and_repair(text, default_namespace="sandbox")

    assert result.errors == ["namespace is required"]
    assert result.remaining_errors == []
    assert result.is_valid
    assert result.message == "Flow validated and fixed with 1 automatic correction(s)."
    assert parse(result.fixed_text or "").namespace == "sandbox"


def test_validate_text_does_not_repair() -> None:
    result = validate_text("id: hello\ntasks:\n  - id: t1\n    type: log\n")

    assert not result.is_valid
    assert result.errors == ["namespace is required"]
    assert result.fixes_made == []


def test_non_finite_retry_falls_back_to_one_attempt() -> None:
    text = """\
id: hello
namespace: company.team
tasks:
  - id: t1
    type: log
    retry: .inf
  - id: t2
    type: log
    retry: .nan
"""
    result = validate_and_repair(text, default_namespace="company.team")

    assert result.is_valid
    assert result.fixed_document is not None
    assert [t["retry"] for t in result.fixed_document.model["tasks"]] == [
        {"type": "constant", "maxAttempt": 1},
        {"type": "constant", "maxAttempt": 1},
    ]
