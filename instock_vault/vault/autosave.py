"""
AutoSaver — Debounced "persist now" trigger for the vault.

Every record mutation calls ``trigger(record)``. The save runs once the
record has been quiet for ``delay`` seconds, with the latest record only.
Saves never overlap, and a save that has started is never cancelled by a
later trigger; the later record is saved after it.

Failures are not retried. An ``EntropyFailure`` closes the saver.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .config import DEFAULT_AUTOSAVE_DELAY
from .exceptions import EntropyFailure

logger = logging.getLogger("instock.vault")

_NOTHING = object()


class SyncStatus(str, Enum):
    IDLE = "IDLE"
    SYNCING = "SYNCING"
    SAVED = "SAVED"
    ERROR = "ERROR"


class AutoSaver:
    """Coalesces record changes into serialized, debounced saves.

    Args:
        save: Coroutine function persisting one record, e.g. ``LocalVault.save``.
        delay: Quiet period in seconds before a save runs.
    """

    def __init__(
        self,
        save: Callable[[Any], Awaitable[Any]],
        delay: float = DEFAULT_AUTOSAVE_DELAY,
    ):
        if delay <= 0:
            raise ValueError("delay must be positive")
        self._save = save
        self._delay = delay
        self._pending: Any = _NOTHING
        self._timer: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        self._closed = False
        self.status = SyncStatus.IDLE
        self.last_error: Optional[BaseException] = None

    @property
    def pending(self) -> bool:
        return self._pending is not _NOTHING

    @property
    def closed(self) -> bool:
        return self._closed

    def trigger(self, record: Any) -> None:
        """Schedule ``record`` to be saved after the quiet period.

        Raises:
            RuntimeError: If the saver is closed.
        """
        if self._closed:
            raise RuntimeError("AutoSaver is closed")
        self._pending = record
        self._cancel_timer()
        task = asyncio.get_running_loop().create_task(self._delayed())
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    async def flush(self) -> None:
        """Wait for running saves, then save the pending record now.

        Raises:
            Whatever the save callable raised for the pending record.
        """
        self._cancel_timer()
        running = [t for t in self._tasks if not t.done()]
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        await self._run()

    async def close(self, flush: bool = True) -> None:
        """Stop accepting triggers; optionally save what is pending first."""
        try:
            if flush and not self._closed:
                await self.flush()
        finally:
            self._closed = True
            self._cancel_timer()
            self._pending = _NOTHING

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            # failures are logged and kept in last_error by _run
            task.exception()

    async def _delayed(self) -> None:
        await asyncio.sleep(self._delay)
        if self._timer is asyncio.current_task():
            # past the quiet period, a new trigger must not cancel this save
            self._timer = None
        await self._run()

    async def _run(self) -> None:
        async with self._lock:
            if self._pending is _NOTHING or self._closed:
                return
            record, self._pending = self._pending, _NOTHING
            self.status = SyncStatus.SYNCING
            try:
                await self._save(record)
            except Exception as err:
                self.status = SyncStatus.ERROR
                self.last_error = err
                logger.error("Vault autosave failed: %s", err)
                if isinstance(err, EntropyFailure):
                    self._closed = True
                    self._cancel_timer()
                raise
            self.status = SyncStatus.SAVED
            self.last_error = None
            logger.debug("Vault autosave complete")
