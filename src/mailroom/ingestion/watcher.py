"""Turn file-system activity in endpoint folders into validated message events."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from collections.abc import Awaitable, Callable, Mapping
from fnmatch import fnmatch
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from ..core.datetime_utils import from_timestamp
from ..core.models import (
    FolderEvent,
    Message,
    MessageCreated,
    MessageDeleted,
    MessageUpdated,
    ParseError,
    WatcherFailure,
)
from ..mailbox.codec import (
    MessageFormatError,
    MissingMetadataError,
    missing_fields,
    parse_document,
)
from ..mailbox.endpoints import Endpoint, MailboxConfig, WatchMode
from .channel import EventChannel

LOGGER = logging.getLogger(__name__)

WatcherItem = FolderEvent | WatcherFailure
EventConsumer = Callable[[WatcherItem], Awaitable[None] | None]

# Files directly in the endpoint folder or one sub-folder below it.
MAX_DEPTH = 1

_CREATED = "created"
_UPDATED = "updated"

_CONTAINER_FLAGS = ("CONTAINER", "DOCKER_CONTAINER", "REMOTE_CONTAINERS")


def is_container_environment(
    environ: Mapping[str, str] | None = None,
    dockerenv: Path = Path("/.dockerenv"),
) -> bool:
    """Return ``True`` when running somewhere native file events are unreliable."""
    env = os.environ if environ is None else environ
    if any(env.get(name) == "true" for name in _CONTAINER_FLAGS):
        return True
    if env.get("REMOTE_CONTAINERS_IPC"):
        return True
    return dockerenv.exists()


class _EndpointEventHandler(FileSystemEventHandler):
    """Forward watchdog callbacks (observer thread) to the watcher's loop."""

    def __init__(self, watcher: FolderWatcher, endpoint: Endpoint, directory: Path):
        self._watcher = watcher
        self._endpoint = endpoint
        self._directory = directory

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._notify(self._endpoint, "add", os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._notify(self._endpoint, "change", os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        src_path = os.fsdecode(event.src_path)
        if event.is_directory:
            if Path(src_path) == self._directory:
                self._watcher._notify_failure(
                    self._endpoint,
                    FileNotFoundError(f"Watched directory removed: {src_path}"),
                )
            return
        self._watcher._notify(self._endpoint, "unlink", src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._watcher._notify(self._endpoint, "unlink", os.fsdecode(event.src_path))
        self._watcher._notify(self._endpoint, "add", os.fsdecode(event.dest_path))


class FolderWatcher:
    """Watch endpoint directories and publish :data:`FolderEvent` items.

    One watchdog observer runs per endpoint. Observer callbacks are handed to
    the event loop, debounced until the file stops changing, parsed, validated
    against the endpoint's required metadata, and published on the channel.
    """

    def __init__(
        self,
        config: MailboxConfig,
        *,
        force_polling: bool | None = None,
        stability_threshold: float = 0.3,
        stability_poll_interval: float = 0.1,
        channel: EventChannel[WatcherItem] | None = None,
    ) -> None:
        self._config = config
        self._force_polling = (
            is_container_environment() if force_polling is None else force_polling
        )
        self._stability_threshold = stability_threshold
        self._stability_poll_interval = stability_poll_interval
        self._channel: EventChannel[WatcherItem] = channel or EventChannel()
        self._observers: dict[str, BaseObserver] = {}
        self._known: set[Path] = set()
        self._pending: dict[Path, asyncio.Task[None]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._consumer: EventConsumer | None = None
        self._dispatch_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def config(self) -> MailboxConfig:
        return self._config

    @property
    def channel(self) -> EventChannel[WatcherItem]:
        return self._channel

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def force_polling(self) -> bool:
        return self._force_polling

    @property
    def watched_endpoints(self) -> tuple[str, ...]:
        return tuple(self._observers)

    def on(self, consumer: EventConsumer) -> None:
        """Register the sole consumer of this watcher's events."""
        if self._consumer is not None:
            raise RuntimeError("FolderWatcher already has an event consumer")
        self._consumer = consumer
        if self._running:
            self._start_dispatch()

    async def start(self) -> None:
        """Begin watching every endpoint that is not outbox-only."""
        if self._running:
            return
        self._running = True
        self._loop = asyncio.get_running_loop()
        if self._channel.closed:
            self._channel = EventChannel()
        if self._consumer is not None:
            self._start_dispatch()

        for endpoint in self._config.endpoints:
            if not endpoint.is_watched:
                continue
            await self._watch_endpoint(endpoint)

    async def stop(self) -> None:
        """Stop all observers and pending work. Safe to call repeatedly."""
        if not self._running:
            return
        self._running = False

        observers = list(self._observers.values())
        self._observers.clear()
        for observer in observers:
            observer.stop()
        for observer in observers:
            await asyncio.to_thread(observer.join, 5)

        pending = list(self._pending.values())
        self._pending.clear()
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._known.clear()

        self._channel.close()
        if self._dispatch_task is not None:
            await self._dispatch_task
            self._dispatch_task = None
        LOGGER.debug("Folder watcher stopped")

    # Observer setup ----------------------------------------------------------
    async def _watch_endpoint(self, endpoint: Endpoint) -> None:
        directory = self._config.endpoint_path(endpoint.id)
        should_poll = endpoint.watch_mode == WatchMode.POLL or self._force_polling
        observer: BaseObserver
        if should_poll:
            observer = PollingObserver(timeout=endpoint.poll_interval_ms / 1000)
        else:
            observer = Observer()
        handler = _EndpointEventHandler(self, endpoint, directory)

        try:
            if not directory.is_dir():
                raise FileNotFoundError(f"Endpoint directory does not exist: {directory}")
            existing = await asyncio.to_thread(_existing_files, directory, endpoint)
            observer.schedule(handler, str(directory), recursive=True)
            observer.start()
        except OSError as exc:
            self._report_failure(endpoint.id, exc)
            return

        self._observers[endpoint.id] = observer
        LOGGER.info(
            "Watching %s at %s (polling: %s, %d existing)",
            endpoint.id,
            directory,
            should_poll,
            len(existing),
        )
        # files already waiting are announced as new, same as later arrivals
        for path in sorted(existing):
            self._schedule(_CREATED, path, endpoint)

    # Observer thread -> loop -------------------------------------------------
    def _notify(self, endpoint: Endpoint, action: str, raw_path: str) -> None:
        loop = self._loop
        if loop is None or not self._running:
            return
        try:
            loop.call_soon_threadsafe(self._on_fs_event, endpoint, action, Path(raw_path))
        except RuntimeError:
            LOGGER.debug("Event loop closed; dropping %s of %s", action, raw_path)

    def _notify_failure(self, endpoint: Endpoint, error: BaseException) -> None:
        loop = self._loop
        if loop is None or not self._running:
            return
        try:
            loop.call_soon_threadsafe(self._report_failure, endpoint.id, error)
        except RuntimeError:
            LOGGER.debug("Event loop closed; dropping watcher failure %s", error)

    # Loop-side handling ------------------------------------------------------
    def _on_fs_event(self, endpoint: Endpoint, action: str, raw_path: Path) -> None:
        if not self._running:
            return
        path = self._scoped_path(endpoint, raw_path)
        if path is None:
            return

        if action == "unlink":
            pending = self._pending.pop(path, None)
            if pending is not None:
                pending.cancel()
            self._known.discard(path)
            self._publish(MessageDeleted(file_path=path, endpoint_id=endpoint.id))
            return

        kind = _UPDATED if path in self._known else _CREATED
        self._schedule(kind, path, endpoint)

    def _schedule(self, kind: str, path: Path, endpoint: Endpoint) -> None:
        if path in self._pending:
            # still settling; the pending check will read the final contents
            return
        task = asyncio.get_running_loop().create_task(self._settle(kind, path, endpoint))
        self._pending[path] = task

    def _scoped_path(self, endpoint: Endpoint, path: Path) -> Path | None:
        """Return ``path`` under the endpoint directory, or ``None`` if filtered out."""
        directory = self._config.endpoint_path(endpoint.id)
        try:
            relative = path.relative_to(directory)
        except ValueError:
            # some backends report symlink-resolved paths
            try:
                relative = path.relative_to(directory.resolve())
            except ValueError:
                return None
        if len(relative.parts) > MAX_DEPTH + 1:
            return None
        if not fnmatch(path.name, endpoint.filename_pattern):
            return None
        return directory / relative

    async def _settle(self, kind: str, path: Path, endpoint: Endpoint) -> None:
        try:
            stable = await self._await_stable(path)
        finally:
            if self._pending.get(path) is asyncio.current_task():
                del self._pending[path]
        if not stable:
            LOGGER.debug("%s disappeared before it finished writing", path)
            return

        self._known.add(path)
        try:
            message = await asyncio.to_thread(self._parse_file, path, endpoint)
        except (OSError, UnicodeDecodeError, MessageFormatError) as exc:
            LOGGER.warning("Rejected %s: %s", path, exc)
            self._publish(ParseError(file_path=path, reason=str(exc)))
            return

        if kind == _CREATED:
            self._publish(MessageCreated(message))
        else:
            self._publish(MessageUpdated(message))

    async def _await_stable(self, path: Path) -> bool:
        """Wait until size and mtime hold still; ``False`` if the file vanished."""
        loop = asyncio.get_running_loop()
        last_signature: tuple[int, int] | None = None
        stable_since = loop.time()
        while True:
            try:
                stats = await asyncio.to_thread(path.stat)
            except FileNotFoundError:
                return False
            signature = (stats.st_size, stats.st_mtime_ns)
            now = loop.time()
            if signature != last_signature:
                last_signature = signature
                stable_since = now
            if now - stable_since >= self._stability_threshold:
                return True
            await asyncio.sleep(self._stability_poll_interval)

    def _parse_file(self, path: Path, endpoint: Endpoint) -> Message:
        text = path.read_text(encoding="utf-8")
        stats = path.stat()
        document = parse_document(text)

        required = self._config.required_fields(endpoint)
        missing = missing_fields(document.metadata, required)
        if missing:
            raise MissingMetadataError(missing[0])

        raw_id = document.metadata.get("id")
        if raw_id is None or raw_id == "":
            message_id = Path(os.path.relpath(path, self._config.root_path)).as_posix()
        else:
            message_id = str(raw_id)

        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return Message(
            id=message_id,
            file_path=path,
            endpoint_id=endpoint.id,
            metadata=document.metadata,
            body=document.body,
            created_at=from_timestamp(created),
            modified_at=from_timestamp(stats.st_mtime),
        )

    # Output ------------------------------------------------------------------
    def _publish(self, item: WatcherItem) -> None:
        self._channel.publish(item)

    def _report_failure(self, endpoint_id: str | None, error: BaseException) -> None:
        LOGGER.error("Folder watcher error on %s: %s", endpoint_id, error)
        self._publish(WatcherFailure(endpoint_id=endpoint_id, error=error))

    def _start_dispatch(self) -> None:
        if self._dispatch_task is None or self._dispatch_task.done():
            loop = self._loop or asyncio.get_running_loop()
            self._dispatch_task = loop.create_task(self._dispatch())

    async def _dispatch(self) -> None:
        channel = self._channel
        async for item in channel:
            consumer = self._consumer
            if consumer is None:
                continue
            try:
                result = consumer(item)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Event consumer failed while handling %r", item)


def _existing_files(directory: Path, endpoint: Endpoint) -> set[Path]:
    found: set[Path] = set()
    pattern = endpoint.filename_pattern
    for child in directory.iterdir():
        if child.is_file() and fnmatch(child.name, pattern):
            found.add(child)
        elif child.is_dir():
            found.update(
                grandchild
                for grandchild in child.iterdir()
                if grandchild.is_file() and fnmatch(grandchild.name, pattern)
            )
    return found


__all__ = [
    "EventConsumer",
    "FolderWatcher",
    "MAX_DEPTH",
    "WatcherItem",
    "is_container_environment",
]
