"""Drive each incoming message through routing and record its status."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from ..core.interfaces import StatusStore
from ..core.models import (
    Message,
    MessageCreated,
    MessageDeleted,
    MessageStatus,
    MessageUpdated,
    ParseError,
    ProcessingStatus,
    WatcherFailure,
)
from ..mailbox.endpoints import MailboxConfig
from ..routing.router import MessageRouter
from .watcher import FolderWatcher, WatcherItem

LOGGER = logging.getLogger(__name__)


class MessageProcessor:
    """Consume watcher events and run one processing flow per new message.

    Flows for different messages run concurrently with no locking between
    them. Only ``MessageCreated`` starts a flow; updates, deletes, parse errors
    and watcher failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        config: MailboxConfig,
        router: MessageRouter,
        store: StatusStore,
        *,
        watcher: FolderWatcher | None = None,
        force_polling: bool | None = None,
        stability_threshold: float = 0.3,
        stability_poll_interval: float = 0.1,
    ) -> None:
        """Wire the processor to a watcher restricted to inbound endpoints."""
        self._config = config
        self._router = router
        self._store = store
        if watcher is None:
            watch_config = config.restricted_to(config.inbox_endpoints())
            watcher = FolderWatcher(
                watch_config,
                force_polling=force_polling,
                stability_threshold=stability_threshold,
                stability_poll_interval=stability_poll_interval,
            )
        self._watcher = watcher
        self._watcher.on(self._dispatch)
        self._flows: set[asyncio.Task[Any]] = set()

    @property
    def watcher(self) -> FolderWatcher:
        return self._watcher

    @property
    def in_flight(self) -> int:
        return len(self._flows)

    async def start(self) -> None:
        """Start watching the inbound endpoints."""
        endpoint_ids = ", ".join(e.id for e in self._config.inbox_endpoints())
        await self._watcher.start()
        LOGGER.info("Message processor started, watching endpoints: %s", endpoint_ids)

    async def stop(self) -> None:
        """Stop observing new events; flows already running are left to finish."""
        await self._watcher.stop()
        LOGGER.info("Message processor stopped")

    async def drain(self) -> None:
        """Wait until every processing flow spawned so far has finished."""
        while self._flows:
            await asyncio.gather(*list(self._flows), return_exceptions=True)

    async def handle_event(self, item: WatcherItem) -> None:
        """Handle one watcher item, awaiting the full flow for new messages."""
        self._log_event(item)
        if isinstance(item, MessageCreated):
            await self.process_message(item.message)

    async def process_message(self, message: Message) -> MessageStatus:
        """Run ``pending -> processing -> completed|failed`` for ``message``.

        Every transition is written to the store before the next one starts.
        Routing failures end in ``failed``; store failures propagate.
        """
        filename = message.file_path.name
        message_type = message.message_type

        status = MessageStatus.pending(message.id, message.endpoint_id, filename)
        await self._store.upsert(status)

        status = status.advance(ProcessingStatus.PROCESSING)
        await self._store.upsert(status)

        try:
            outcome = await self._router.route_message(
                filename, message.endpoint_id, message_type
            )
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "Error processing message %s: %s",
                message.file_path,
                exc,
                exc_info=True,
            )
            status = status.advance(ProcessingStatus.FAILED, error=_describe(exc))
            await self._store.upsert(status)
            return status

        LOGGER.info("Message %s processed by %s", filename, outcome.handler_id)
        status = status.advance(ProcessingStatus.COMPLETED, summary=outcome.result)
        await self._store.upsert(status)
        return status

    # Channel consumer --------------------------------------------------------
    def _dispatch(self, item: WatcherItem) -> None:
        self._log_event(item)
        if isinstance(item, MessageCreated):
            self._spawn(self.process_message(item.message))

    def _spawn(self, flow: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(flow)
        self._flows.add(task)
        task.add_done_callback(self._flow_finished)

    def _flow_finished(self, task: asyncio.Task[Any]) -> None:
        self._flows.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            LOGGER.error("Processing flow crashed: %s", error, exc_info=error)

    def _log_event(self, item: WatcherItem) -> None:
        if isinstance(item, MessageCreated):
            LOGGER.info(
                "New message: %s (endpoint: %s)",
                item.message.file_path,
                item.message.endpoint_id,
            )
        elif isinstance(item, MessageUpdated):
            LOGGER.info(
                "Updated message: %s (endpoint: %s)",
                item.message.file_path,
                item.message.endpoint_id,
            )
        elif isinstance(item, MessageDeleted):
            LOGGER.info(
                "Deleted message: %s (endpoint: %s)", item.file_path, item.endpoint_id
            )
        elif isinstance(item, ParseError):
            LOGGER.error("Error processing %s: %s", item.file_path, item.reason)
        elif isinstance(item, WatcherFailure):
            LOGGER.error(
                "Folder watcher error (endpoint: %s): %s", item.endpoint_id, item.error
            )


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return text if text else exc.__class__.__name__


__all__ = ["MessageProcessor"]
