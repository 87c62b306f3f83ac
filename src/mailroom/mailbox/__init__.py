"""Mailbox layout, file format, and read/write helpers."""

from .codec import (
    MessageFormatError,
    MissingMetadataError,
    ParsedDocument,
    parse_document,
    serialize_document,
)
from .endpoints import (
    DEFAULT_METADATA_FIELDS,
    Direction,
    Endpoint,
    FieldType,
    MailboxConfig,
    MetadataField,
    UnknownEndpointError,
    WatchMode,
    default_mailbox_config,
)
from .reader import MailboxReader, MessageSummary, StoredMessage
from .writer import MessageWriter

__all__ = [
    "DEFAULT_METADATA_FIELDS",
    "Direction",
    "Endpoint",
    "FieldType",
    "MailboxConfig",
    "MailboxReader",
    "MessageFormatError",
    "MessageSummary",
    "MessageWriter",
    "MetadataField",
    "MissingMetadataError",
    "ParsedDocument",
    "StoredMessage",
    "UnknownEndpointError",
    "WatchMode",
    "default_mailbox_config",
    "parse_document",
    "serialize_document",
]
