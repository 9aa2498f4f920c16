"""
Vault Storage — Key-value persistence surfaces for the sealed blob.

The vault only ever stores opaque blob strings, so any store with async
``get``/``set``/``delete`` fits. ``MemoryStore`` is the in-process stand-in;
``FileStore`` keeps one file per key on the local disk.
"""
import os
import re
import asyncio
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("instock.vault")

_KEY_PATTERN = re.compile(r"[A-Za-z0-9_.\-]{1,255}")


class KeyValueStore(ABC):
    """Async key-value surface holding text values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if missing."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key. Returns once the value is durable."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. No-op if missing."""

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


class MemoryStore(KeyValueStore):
    """Dict-backed store, lost when the process ends."""

    def __init__(self, data: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(data or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class FileStore(KeyValueStore):
    """One UTF-8 file per key inside ``directory``.

    Writes go to a temporary file in the same directory which is fsynced
    and then renamed over the target, so readers see either the old or the
    new value, never a partial one.
    """

    def __init__(self, directory: Union[str, Path]):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.fullmatch(key) or key in (".", ".."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._dir / key

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write(self, path: Path, value: str) -> None:
        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(value)
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise
        self._sync_dir()

    def _sync_dir(self) -> None:
        if os.name != "posix":
            return
        fd = os.open(self._dir, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        self._sync_dir()

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, self._path(key))

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        await asyncio.to_thread(self._write, path, value)
        logger.debug("Stored key=%s (%d bytes)", key, len(value))

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, self._path(key))
        logger.debug("Deleted key=%s", key)
