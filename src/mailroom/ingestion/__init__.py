"""Ingestion pipeline components."""

from .channel import ChannelClosed, EventChannel
from .processor import MessageProcessor
from .watcher import FolderWatcher, WatcherItem, is_container_environment

__all__ = [
    "ChannelClosed",
    "EventChannel",
    "FolderWatcher",
    "MessageProcessor",
    "WatcherItem",
    "is_container_environment",
]
