"""Flow id and namespace resolution.

Ids are made unique with a token built from a base-36 millisecond timestamp and
a short random string, so repeated publications of the same flow never collide
on the Kestra side.

`patch_identity` rewrites `id` and `namespace` in place: the YAML is composed
into a node tree and only the source spans of the affected values are
replaced, keeping comments and formatting everywhere else.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import secrets
import string
import time
from typing import Any

import yaml

from flow_publisher.publisher.errors import DocumentSyntaxError, StructuralError
from flow_publisher.publisher.flow.document import (
    LEGACY_NAMESPACE_KEY,
    WorkflowDocument,
    from_model,
    parse,
)

logger = logging.getLogger(__name__)

FALLBACK_ROOT = "flow"
MAX_SLUG_LENGTH = 64
RANDOM_TOKEN_LENGTH = 8

_BASE36 = string.digits + string.ascii_lowercase
_NON_SLUG = re.compile(r"[^a-z0-9]+")
_NON_NAMESPACE = re.compile(r"[^a-z0-9._-]+")


def slugify(text: str, *, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Lower-case `text` and collapse every non-alphanumeric run to `-`."""

    slug = _NON_SLUG.sub("-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def normalize_namespace(text: str) -> str:
    """Like `slugify`, but keeps the dots that separate namespace levels."""

    return _NON_NAMESPACE.sub("-", text.strip().lower()).strip("-.")


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
        if value == 0:
            break
    return "".join(reversed(digits))


def unique_token(*, now_ms: int | None = None) -> str:
    """Timestamp-plus-random token.

    Uniqueness is statistical: 36**8 random suffixes per millisecond.
    """

    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    random_part = "".join(secrets.choice(_BASE36) for _ in range(RANDOM_TOKEN_LENGTH))
    return f"{to_base36(now_ms)}{random_part}"


def unique_identifier(root: str) -> str:
    return f"{slugify(root) or FALLBACK_ROOT}-{unique_token()}"


def identifier_root(document: WorkflowDocument | None, purpose_hint: str | None = None) -> str:
    """Pick the readable part of a generated id.

    Precedence: purpose hint, then the id already in the flow, then "flow".
    """

    for candidate in (purpose_hint, document.id if document is not None else None):
        if candidate:
            slug = slugify(candidate)
            if slug:
                return slug
    return FALLBACK_ROOT


def resolve_identifier(
    document: WorkflowDocument | None,
    explicit_id: str | None = None,
    purpose_hint: str | None = None,
) -> str:
    """Return the id a flow should be published under. Never empty."""

    if explicit_id and explicit_id.strip():
        return explicit_id.strip()
    return unique_identifier(identifier_root(document, purpose_hint))


def resolve_namespace(
    document: WorkflowDocument | None,
    explicit_namespace: str | None = None,
    *,
    default_namespace: str,
) -> str:
    """Explicit value, then `namespace`, then legacy `defaultNamespace`, then the default."""

    candidates: list[Any] = [explicit_namespace]
    if document is not None and document.is_mapping:
        candidates.append(document.model.get("namespace"))
        candidates.append(document.model.get(LEGACY_NAMESPACE_KEY))
    for candidate in candidates:
        if isinstance(candidate, str):
            normalized = normalize_namespace(candidate)
            if normalized:
                return normalized
    return normalize_namespace(default_namespace) or default_namespace


def _render_scalar(value: str) -> str:
    rendered = yaml.safe_dump(value, default_flow_style=True, width=float("inf"), allow_unicode=True)
    # A bare top-level scalar is followed by a document end marker.
    rendered = rendered.removesuffix("\n...\n").rstrip("\n")
    if "\n" in rendered:
        return json.dumps(value, ensure_ascii=False)
    return rendered


def _scalar_key(node: yaml.Node) -> str | None:
    return node.value if isinstance(node, yaml.ScalarNode) else None


def _replace_value(
    text: str, key_node: yaml.Node, value_node: yaml.Node, value: str
) -> tuple[int, int, str]:
    rendered = _render_scalar(value)
    start, end = value_node.start_mark.index, value_node.end_mark.index
    if isinstance(value_node, yaml.ScalarNode) and start == end:
        # Empty value (`id:`): its mark points at the next token, not the colon.
        colon = text.index(":", key_node.end_mark.index)
        return colon + 1, colon + 1, f" {rendered}"
    if text[start:end].endswith("\n"):
        rendered += "\n"
    return start, end, rendered


def _remove_entry(text: str, key_node: yaml.Node, value_node: yaml.Node) -> tuple[int, int, str]:
    start = key_node.start_mark.index
    end = value_node.end_mark.index
    line_start = text.rfind("\n", 0, start) + 1
    if not text[line_start:start].strip():
        start = line_start
    if end == 0 or text[end - 1] != "\n":
        line_end = text.find("\n", end)
        end = len(text) if line_end == -1 else line_end + 1
    return start, end, ""


def _splice(text: str, root: yaml.MappingNode, edits: dict[str, str]) -> str:
    keys = [_scalar_key(k) for k, _ in root.value]
    has_namespace = "namespace" in keys

    replacements: list[tuple[int, int, str]] = []
    present: set[str] = set()
    for key_node, value_node in root.value:
        key = _scalar_key(key_node)
        if key in edits:
            present.add(key)
            replacements.append(_replace_value(text, key_node, value_node, edits[key]))
        elif key == LEGACY_NAMESPACE_KEY:
            if has_namespace:
                replacements.append(_remove_entry(text, key_node, value_node))
                continue
            present.add("namespace")
            has_namespace = True
            start, end = key_node.start_mark.index, key_node.end_mark.index
            replacements.append((start, end, "namespace"))
            if "namespace" in edits:
                replacements.append(_replace_value(text, key_node, value_node, edits["namespace"]))

    missing = [k for k in ("id", "namespace") if k in edits and k not in present]
    if missing:
        indent = " " * root.start_mark.column
        inserted = "".join(f"{k}: {_render_scalar(edits[k])}\n{indent}" for k in missing)
        replacements.append((root.start_mark.index, root.start_mark.index, inserted))

    for start, end, new in sorted(replacements, key=lambda r: (r[0], r[1]), reverse=True):
        text = text[:start] + new + text[end:]
    return text


def _reserialize(document: WorkflowDocument, edits: dict[str, str]) -> WorkflowDocument:
    model = copy.deepcopy(document.model)
    alias = model.pop(LEGACY_NAMESPACE_KEY, None)
    if "namespace" not in model and alias is not None:
        model["namespace"] = alias
    head = {k: edits.get(k, model.get(k)) for k in ("id", "namespace") if k in edits or k in model}
    rest = {k: v for k, v in model.items() if k not in head}
    return from_model({**head, **rest})


def _matches(document: WorkflowDocument, edits: dict[str, str]) -> bool:
    model = document.model
    if not isinstance(model, dict) or LEGACY_NAMESPACE_KEY in model:
        return False
    return all(model.get(k) == v for k, v in edits.items())


def patch_identity(
    document: WorkflowDocument,
    *,
    flow_id: str | None = None,
    namespace: str | None = None,
) -> WorkflowDocument:
    """Return a copy of `document` with `id`/`namespace` rewritten.

    The legacy `defaultNamespace` key is normalized to `namespace`. Falls back
    to a full re-serialization when the root is a flow-style mapping or the
    spliced text does not read back as expected.

    Raises:
        StructuralError: If the document is not a mapping.
    """

    if not document.is_mapping:
        raise StructuralError(["document must be a mapping"])

    edits = {k: v for k, v in (("id", flow_id), ("namespace", namespace)) if v is not None}
    if not edits and LEGACY_NAMESPACE_KEY not in document.model:
        return document

    root = yaml.compose(document.raw_text, Loader=yaml.SafeLoader)
    if not isinstance(root, yaml.MappingNode) or root.flow_style:
        return _reserialize(document, edits)

    try:
        patched = parse(_splice(document.raw_text, root, edits))
    except (DocumentSyntaxError, ValueError) as e:
        logger.warning("In-place identity patch failed; re-serializing", extra={"error": str(e)})
        return _reserialize(document, edits)

    if not _matches(patched, edits):
        logger.warning("In-place identity patch did not round-trip; re-serializing")
        return _reserialize(document, edits)
    return patched
