"""
LocalVault — The vault lifecycle bound to one well-known storage slot.

Provides the API the dashboard calls:
- ``create(passphrase, record)`` — seal a new vault and store it
- ``unlock(passphrase)`` — read the stored blob and open it
- ``unlock_or_create(passphrase)`` — local-mode login entry point
- ``save(record)`` — reseal and store (autosave handler)
- ``change_passphrase(new_passphrase, record)`` — durable rotation
- ``lock()`` — end the session

Security Note:
    Never log passphrases, plaintext or ciphertext values. Only log storage
    keys, operations and sizes.
"""
import asyncio
import logging
from typing import Any, Callable

from ..data import UserData, default_user_data
from .autosave import AutoSaver
from .codec import encode_record
from .config import VaultConfig
from .exceptions import VaultExistsError, VaultNotFoundError
from .key_rotation import rotate_passphrase
from .lifecycle import VaultLifecycle, VaultState
from .storage import KeyValueStore

logger = logging.getLogger("instock.vault")


class LocalVault:
    """Encrypted user record stored under a single storage key.

    Holds no key material itself; the session key lives on the wrapped
    ``VaultLifecycle``.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        config: VaultConfig | None = None,
        serializer: Callable[[Any], bytes] = encode_record,
        deserializer: Callable[[bytes], Any] = UserData.from_bytes,
    ):
        self._storage = storage
        self._config = config or VaultConfig()
        self._key = self._config.storage_key
        self._lifecycle = VaultLifecycle(
            config=self._config,
            serializer=serializer,
            deserializer=deserializer,
        )
        # seal and write happen under one lock so stored blobs keep seal order
        self._writing = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<LocalVault key={self._key} state={self.state.value}>"

    @property
    def storage_key(self) -> str:
        return self._key

    @property
    def lifecycle(self) -> VaultLifecycle:
        return self._lifecycle

    @property
    def state(self) -> VaultState:
        return self._lifecycle.state

    @property
    def is_unlocked(self) -> bool:
        return self._lifecycle.is_unlocked

    async def exists(self) -> bool:
        """Check if a vault blob is stored."""
        return await self._storage.exists(self._key)

    async def create(
        self, passphrase: str, record: Any = None, overwrite: bool = False,
    ) -> Any:
        """Create and store a new vault.

        Args:
            passphrase: Passphrase protecting the vault.
            record: Initial record, ``default_user_data()`` when omitted.
            overwrite: Replace an existing vault. Destroys its contents.

        Returns:
            The record sealed into the vault.

        Raises:
            VaultExistsError: If a vault is stored and overwrite is False.
        """
        if not overwrite and await self.exists():
            raise VaultExistsError()
        if record is None:
            record = default_user_data()
        async with self._writing:
            blob = await self._lifecycle.create(passphrase, record)
            await self._storage.set(self._key, blob)
        logger.info("Local vault created at key=%s", self._key)
        return record

    async def unlock(self, passphrase: str) -> Any:
        """Open the stored vault.

        Raises:
            VaultNotFoundError: If nothing is stored.
            FormatError: If the stored blob is corrupted.
            AuthFailure: If the passphrase is wrong.
        """
        blob = await self._storage.get(self._key)
        if blob is None:
            raise VaultNotFoundError()
        return await self._lifecycle.unlock(passphrase, blob)

    async def unlock_or_create(self, passphrase: str, record: Any = None) -> Any:
        """Unlock the stored vault, or create one if none exists."""
        if await self.exists():
            return await self.unlock(passphrase)
        return await self.create(passphrase, record)

    async def save(self, record: Any) -> None:
        """Reseal ``record`` with the session key and store it.

        Never overlaps another save, create or passphrase change on this vault.

        Raises:
            VaultStateError: If the vault is locked.
        """
        async with self._writing:
            blob = await self._lifecycle.persist(record)
            await self._storage.set(self._key, blob)

    async def change_passphrase(self, new_passphrase: str, record: Any) -> None:
        """Rotate to ``new_passphrase``, keeping the old blob until the new one is stored.

        If the new blob cannot be confirmed the vault is locked, so no later
        save writes under the unconfirmed passphrase.
        """
        async with self._writing:
            await rotate_passphrase(
                self._lifecycle, self._storage, self._key, new_passphrase, record,
            )

    def lock(self) -> None:
        self._lifecycle.lock()

    def autosaver(self) -> AutoSaver:
        """Debounced saver bound to this vault, using ``config.autosave_delay``."""
        return AutoSaver(self.save, delay=self._config.autosave_delay)
