"""Endpoint registry: the static description of every mailbox folder."""

from __future__ import annotations

import os
from collections.abc import Iterable
from enum import StrEnum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class UnknownEndpointError(KeyError):
    """Raised when an endpoint id is not part of the mailbox configuration."""

    def __init__(self, endpoint_id: str) -> None:
        super().__init__(endpoint_id)
        self.endpoint_id = endpoint_id

    def __str__(self) -> str:
        return f"Endpoint not found: {self.endpoint_id}"


class FieldType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    ARRAY = "array"


class Direction(StrEnum):
    INBOX = "inbox"
    OUTBOX = "outbox"
    BIDIRECTIONAL = "bidirectional"


class WatchMode(StrEnum):
    POLL = "poll"
    NATIVE = "native"


class MetadataField(BaseModel):
    """A metadata key an endpoint expects in every message."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType = FieldType.STRING
    required: bool = False
    description: str | None = None


DEFAULT_METADATA_FIELDS: tuple[MetadataField, ...] = (
    MetadataField(name="id", type=FieldType.STRING, required=True),
    MetadataField(name="timestamp", type=FieldType.DATE, required=True),
    MetadataField(name="from", type=FieldType.STRING, required=False),
    MetadataField(name="replyTo", type=FieldType.STRING, required=False),
)


class Endpoint(BaseModel):
    """A directionally-typed folder that takes part in the mailbox protocol."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier for this endpoint")
    path: str = Field(description="Path relative to the mailbox root")
    pattern: str = Field(default="*.md", description="File-name pattern")
    direction: Direction = Direction.INBOX
    required_metadata: tuple[MetadataField, ...] = ()
    watch_mode: WatchMode = WatchMode.POLL
    poll_interval_ms: int = Field(default=1000, ge=10)

    @property
    def is_watched(self) -> bool:
        """Outbox-only endpoints are never observed."""
        return self.direction != Direction.OUTBOX

    @property
    def accepts_inbound(self) -> bool:
        return self.direction in (Direction.INBOX, Direction.BIDIRECTIONAL)

    @property
    def filename_pattern(self) -> str:
        """Return the last segment of ``pattern`` (``**/*.md`` -> ``*.md``)."""
        return PurePosixPath(self.pattern).name or "*"

    @property
    def file_extension(self) -> str:
        suffix = PurePosixPath(self.filename_pattern).suffix
        if not suffix or any(char in suffix for char in "*?["):
            return "md"
        return suffix.lstrip(".")


class MailboxConfig(BaseModel):
    """Mailbox root plus the ordered endpoints configured under it."""

    model_config = ConfigDict(frozen=True)

    root_path: Path
    endpoints: tuple[Endpoint, ...] = Field(min_length=1)
    default_metadata: tuple[MetadataField, ...] = DEFAULT_METADATA_FIELDS

    @field_validator("root_path")
    @classmethod
    def _require_absolute_root(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"Mailbox root must be absolute, got {value}")
        return Path(os.path.normpath(value))

    @model_validator(mode="after")
    def _require_unique_ids(self) -> MailboxConfig:
        seen: set[str] = set()
        for endpoint in self.endpoints:
            if endpoint.id in seen:
                raise ValueError(f"Duplicate endpoint id: {endpoint.id}")
            seen.add(endpoint.id)
        return self

    def get_endpoint(self, endpoint_id: str) -> Endpoint | None:
        for endpoint in self.endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        return None

    def require_endpoint(self, endpoint_id: str) -> Endpoint:
        """Return the endpoint or raise :class:`UnknownEndpointError`."""
        endpoint = self.get_endpoint(endpoint_id)
        if endpoint is None:
            raise UnknownEndpointError(endpoint_id)
        return endpoint

    def endpoint_path(self, endpoint_id: str) -> Path:
        """Return the normalized absolute directory of an endpoint."""
        endpoint = self.require_endpoint(endpoint_id)
        return Path(os.path.normpath(self.root_path / endpoint.path))

    def list_endpoints(self) -> tuple[Endpoint, ...]:
        return self.endpoints

    def inbox_endpoints(self) -> tuple[Endpoint, ...]:
        """Return endpoints that receive messages (inbox or bidirectional)."""
        return tuple(e for e in self.endpoints if e.accepts_inbound)

    def default_outbox_endpoint(self) -> Endpoint | None:
        for endpoint in self.endpoints:
            if endpoint.direction == Direction.OUTBOX:
                return endpoint
        return None

    def required_fields(self, endpoint: Endpoint) -> list[str]:
        """Return required field names: mailbox defaults first, then the endpoint's."""
        names: list[str] = []
        for metadata_field in (*self.default_metadata, *endpoint.required_metadata):
            if metadata_field.required and metadata_field.name not in names:
                names.append(metadata_field.name)
        return names

    def restricted_to(self, endpoints: Iterable[Endpoint]) -> MailboxConfig:
        """Return a copy of this configuration holding only ``endpoints``."""
        return self.model_copy(update={"endpoints": tuple(endpoints)})


def default_mailbox_config(root_path: Path) -> MailboxConfig:
    """Return the stock mailbox layout rooted at ``root_path``."""
    return MailboxConfig(
        root_path=root_path,
        endpoints=(
            Endpoint(id="inbox", path="inbox", direction=Direction.INBOX),
            Endpoint(id="outbox", path="outbox", direction=Direction.OUTBOX),
            Endpoint(
                id="bugs",
                path="bugs",
                direction=Direction.INBOX,
                required_metadata=(
                    MetadataField(
                        name="severity",
                        type=FieldType.STRING,
                        required=True,
                        description="Bug severity: low, medium, high, critical",
                    ),
                ),
            ),
            Endpoint(
                id="feature-requests",
                path="feature-requests",
                direction=Direction.INBOX,
            ),
        ),
    )


__all__ = [
    "DEFAULT_METADATA_FIELDS",
    "Direction",
    "Endpoint",
    "FieldType",
    "MailboxConfig",
    "MetadataField",
    "UnknownEndpointError",
    "WatchMode",
    "default_mailbox_config",
]
