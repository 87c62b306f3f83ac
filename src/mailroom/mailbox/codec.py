"""Read and write the mailbox file format.

A message file is UTF-8 text that opens with a metadata block::

    ---
    id: "4d6c..."
    timestamp: "2025-10-24T15:00:00+00:00"
    tags: ["a", "b"]
    ---

    Free-form body text.

Values are written as JSON scalars or arrays. On the way in the block is read
as YAML, which accepts those JSON values as well as hand-written plain values.
Plain scalars resolve the way JSON does: only `true` and `false` are
booleans, and words such as `yes` or `off` stay strings.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import yaml

DELIMITER = "---"

_BOOL_TAG = "tag:yaml.org,2002:bool"
_INT_TAG = "tag:yaml.org,2002:int"
_FLOAT_TAG = "tag:yaml.org,2002:float"


class _MetadataLoader(yaml.SafeLoader):
    """SafeLoader that resolves plain scalars with JSON rules.

    YAML 1.1 reads ``on``, ``off``, ``yes`` and ``no`` as booleans and
    ``1e+20`` as a string. Neither matches what ``json.dumps`` writes.
    """


_MetadataLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in (_BOOL_TAG, _INT_TAG, _FLOAT_TAG)
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_MetadataLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
_MetadataLoader.add_implicit_resolver(
    _INT_TAG,
    re.compile(r"^[-+]?(?:0|[1-9][0-9]*)$"),
    list("-+0123456789"),
)
_MetadataLoader.add_implicit_resolver(
    _FLOAT_TAG,
    re.compile(
        r"""^(?:[-+]?(?:0|[1-9][0-9]*)(?:\.[0-9]*)?(?:[eE][-+]?[0-9]+)?
        |[-+]?\.[0-9]+(?:[eE][-+]?[0-9]+)?
        |[-+]?\.(?:inf|Inf|INF)
        |\.(?:nan|NaN|NAN))$""",
        re.X,
    ),
    list("-+0123456789."),
)


class MessageFormatError(ValueError):
    """Raised when a message file cannot be split into metadata and body."""


class MissingMetadataError(MessageFormatError):
    """Raised when a required metadata field is absent."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Missing required metadata field: {field_name}")
        self.field_name = field_name


@dataclass(slots=True, frozen=True)
class ParsedDocument:
    """Metadata mapping and trimmed body of one message file."""

    metadata: dict[str, Any]
    body: str


def parse_document(text: str) -> ParsedDocument:
    """Split ``text`` into its metadata block and body."""
    text = text.removeprefix("\ufeff")
    lines = text.splitlines()
    if not lines or lines[0].rstrip() != DELIMITER:
        return ParsedDocument(metadata={}, body=text.strip())

    closing = None
    for index, line in enumerate(lines[1:], start=1):
        if line.rstrip() == DELIMITER:
            closing = index
            break
    if closing is None:
        raise MessageFormatError("Metadata block is not closed with '---'")

    block = "\n".join(lines[1:closing])
    try:
        loaded = yaml.load(block, Loader=_MetadataLoader) if block.strip() else {}
    except yaml.YAMLError as exc:
        raise MessageFormatError(f"Invalid metadata block: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise MessageFormatError("Metadata block must be a mapping of key: value")

    metadata = {str(key): value for key, value in loaded.items()}
    body = "\n".join(lines[closing + 1 :])
    return ParsedDocument(metadata=metadata, body=body.strip())


def serialize_document(metadata: Mapping[str, Any], body: str) -> str:
    """Render metadata and body in the on-disk format."""
    metadata_lines = "\n".join(
        f"{key}: {json.dumps(value, ensure_ascii=False, default=_json_default)}"
        for key, value in metadata.items()
    )
    return f"{DELIMITER}\n{metadata_lines}\n{DELIMITER}\n\n{body}"


def missing_fields(metadata: Mapping[str, Any], field_names: Iterable[str]) -> list[str]:
    """Return required field names that are not keys of ``metadata``."""
    return [name for name in field_names if name not in metadata]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


__all__ = [
    "DELIMITER",
    "MessageFormatError",
    "MissingMetadataError",
    "ParsedDocument",
    "missing_fields",
    "parse_document",
    "serialize_document",
]
