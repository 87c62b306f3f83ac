"""Core utilities for configuration, logging, and shared models."""

from .config import (
    AppSettings,
    MailboxSettings,
    StorageSettings,
    WatchSettings,
    load_app_settings,
)
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "MailboxSettings",
    "StorageSettings",
    "WatchSettings",
    "configure_logging",
    "load_app_settings",
]
