"""
Tests for the debounced AutoSaver.
"""
import asyncio

import pytest

from instock_vault.vault.autosave import AutoSaver, SyncStatus
from instock_vault.vault.exceptions import EntropyFailure, VaultStateError
from instock_vault.vault.local_vault import LocalVault
from instock_vault.data import UserData

DELAY = 0.05


class Recorder:
    """Save callable that records calls and can be slowed down or broken."""

    def __init__(self, pause: float = 0.0, error: Exception | None = None):
        self.saved = []
        self.pause = pause
        self.error = error
        self.active = 0
        self.max_active = 0

    async def __call__(self, record):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.pause:
                await asyncio.sleep(self.pause)
            if self.error is not None:
                raise self.error
            self.saved.append(record)
        finally:
            self.active -= 1


class TestDebounce:
    """Tests for coalescing triggers."""

    async def test_single_trigger_saves_after_delay(self):
        save = Recorder()
        saver = AutoSaver(save, delay=DELAY)
        saver.trigger({"v": 1})
        assert save.saved == []
        assert saver.pending is True
        await asyncio.sleep(DELAY * 4)
        assert save.saved == [{"v": 1}]
        assert saver.status is SyncStatus.SAVED
        assert saver.pending is False

    async def test_burst_saves_latest_once(self):
        save = Recorder()
        saver = AutoSaver(save, delay=DELAY)
        for i in range(10):
            saver.trigger({"v": i})
            await asyncio.sleep(DELAY / 10)
        await asyncio.sleep(DELAY * 4)
        assert save.saved == [{"v": 9}]

    async def test_saves_never_overlap(self):
        """Test a trigger during a running save waits for it instead of cancelling it."""
        save = Recorder(pause=DELAY * 3)
        saver = AutoSaver(save, delay=DELAY)
        saver.trigger({"v": 1})
        await asyncio.sleep(DELAY * 1.5)  # first save is now running
        saver.trigger({"v": 2})
        await asyncio.sleep(DELAY * 10)
        assert save.saved == [{"v": 1}, {"v": 2}]
        assert save.max_active == 1

    async def test_flush_saves_immediately(self):
        save = Recorder()
        saver = AutoSaver(save, delay=10)
        saver.trigger({"v": 1})
        await saver.flush()
        assert save.saved == [{"v": 1}]
        assert saver.pending is False

    async def test_flush_without_pending(self):
        save = Recorder()
        saver = AutoSaver(save, delay=DELAY)
        await saver.flush()
        assert save.saved == []
        assert saver.status is SyncStatus.IDLE

    async def test_close_flushes(self):
        save = Recorder()
        saver = AutoSaver(save, delay=10)
        saver.trigger({"v": 1})
        await saver.close()
        assert save.saved == [{"v": 1}]
        assert saver.closed is True
        with pytest.raises(RuntimeError):
            saver.trigger({"v": 2})

    async def test_close_without_flush_drops_pending(self):
        save = Recorder()
        saver = AutoSaver(save, delay=DELAY)
        saver.trigger({"v": 1})
        await saver.close(flush=False)
        await asyncio.sleep(DELAY * 3)
        assert save.saved == []

    def test_rejects_non_positive_delay(self):
        with pytest.raises(ValueError):
            AutoSaver(Recorder(), delay=0)


class TestFailures:
    """Tests for error reporting without retries."""

    async def test_error_status(self):
        save = Recorder(error=VaultStateError())
        saver = AutoSaver(save, delay=10)
        saver.trigger({"v": 1})
        with pytest.raises(VaultStateError):
            await saver.flush()
        assert saver.status is SyncStatus.ERROR
        assert isinstance(saver.last_error, VaultStateError)
        assert saver.closed is False

    async def test_background_error_not_retried(self):
        save = Recorder(error=VaultStateError())
        saver = AutoSaver(save, delay=DELAY)
        saver.trigger({"v": 1})
        await asyncio.sleep(DELAY * 4)
        assert saver.status is SyncStatus.ERROR
        assert save.saved == []
        assert saver.pending is False

    async def test_entropy_failure_closes(self):
        save = Recorder(error=EntropyFailure())
        saver = AutoSaver(save, delay=10)
        saver.trigger({"v": 1})
        with pytest.raises(EntropyFailure):
            await saver.flush()
        assert saver.closed is True
        with pytest.raises(RuntimeError):
            saver.trigger({"v": 2})

    async def test_recovers_after_error(self):
        save = Recorder(error=VaultStateError())
        saver = AutoSaver(save, delay=10)
        saver.trigger({"v": 1})
        with pytest.raises(VaultStateError):
            await saver.flush()
        save.error = None
        saver.trigger({"v": 2})
        await saver.flush()
        assert save.saved == [{"v": 2}]
        assert saver.status is SyncStatus.SAVED
        assert saver.last_error is None


class TestWithLocalVault:

    async def test_autosave_persists_latest_record(self, storage, config):
        vault = LocalVault(storage, config=config)
        user = UserData(watchlist=["TCS.NS"])
        await vault.create("pw", user)
        saver = AutoSaver(vault.save, delay=DELAY)

        for symbol in ("INFY.NS", "SBIN.NS"):
            user = user.model_copy(update={"watchlist": user.watchlist + [symbol]})
            saver.trigger(user)
        await saver.close()

        reader = LocalVault(storage, config=config)
        opened = await reader.unlock("pw")
        assert opened.watchlist == ["TCS.NS", "INFY.NS", "SBIN.NS"]
