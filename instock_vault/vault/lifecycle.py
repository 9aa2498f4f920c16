"""
VaultLifecycle — Session state machine over the local vault.

States::

    LOCKED --create/unlock--> UNLOCKED --lock--> LOCKED
                              UNLOCKED --rotate--> UNLOCKED (new key and salt)

- ``create(passphrase, record)`` — new salt, derive, seal, go UNLOCKED
- ``unlock(passphrase, blob)`` — decode, derive with stored salt, open
- ``persist(record)`` — reseal with the cached key and a fresh nonce
- ``rotate(new_passphrase, record)`` — reseal under a brand-new salt and key
- ``lock()`` — drop key and salt

Security Note:
    The session key lives only on this object and is never returned, logged
    or serialized. Passphrases are used for derivation and then dropped.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from .codec import decode_blob, decode_record, encode_blob, encode_record
from .config import VaultConfig
from .crypto import SessionKey, derive_key, generate_nonce, seal, unseal
from .exceptions import AuthFailure, EntropyFailure, VaultStateError

logger = logging.getLogger("instock.vault")

# Nonces remembered per session key for repeat detection (about 36 hours
# of saves at the default 2 s autosave delay).
MAX_TRACKED_NONCES = 65_536


class VaultState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class VaultLifecycle:
    """Owns the session key of one vault session.

    Derivation runs in a worker thread, so every operation is awaited.
    ``create``, ``unlock``, ``persist`` and ``rotate`` are serialized on an
    internal lock; ``lock()`` is synchronous and may be called at any time.

    Nonces issued under the session key are remembered, up to the most
    recent ``MAX_TRACKED_NONCES``, and a repeat raises ``EntropyFailure``.

    The record codec is injectable: ``serializer`` turns a record into bytes
    and ``deserializer`` turns bytes back into a record.
    """

    def __init__(
        self,
        config: VaultConfig | None = None,
        serializer: Callable[[Any], bytes] = encode_record,
        deserializer: Callable[[bytes], Any] = decode_record,
    ):
        self._config = config or VaultConfig()
        self._serialize = serializer
        self._deserialize = deserializer
        self._state = VaultState.LOCKED
        self._key: SessionKey | None = None
        self._salt: bytes | None = None
        self._nonces: dict[bytes, None] = {}
        self._busy = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<VaultLifecycle state={self._state.value}>"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self._state is VaultState.UNLOCKED

    @property
    def salt(self) -> bytes | None:
        """Salt of the current session key (public, not secret)."""
        return self._salt

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, state: VaultState, operation: str) -> None:
        if self._state is not state:
            raise VaultStateError(
                f"cannot {operation} while vault is {self._state.value}"
            )

    async def _derive(
        self, passphrase: str, salt: bytes | None = None,
    ) -> tuple[SessionKey, bytes]:
        return await asyncio.to_thread(derive_key, passphrase, salt, self._config)

    def _fresh_nonce(self, issued: dict[bytes, None]) -> bytes:
        nonce = generate_nonce()
        if nonce in issued:
            logger.critical("Random source repeated a nonce; refusing to seal")
            raise EntropyFailure("secure random source repeated a nonce")
        issued[nonce] = None
        # oldest first; a repeat older than the window goes undetected
        while len(issued) > MAX_TRACKED_NONCES:
            del issued[next(iter(issued))]
        return nonce

    def _seal_record(
        self, key: SessionKey, salt: bytes, issued: dict[bytes, None], record: Any,
    ) -> str:
        plaintext = self._serialize(record)
        nonce = self._fresh_nonce(issued)
        sealed = seal(key, nonce, plaintext)
        return encode_blob(salt, nonce, sealed)

    def _enter(self, key: SessionKey, salt: bytes, nonces: dict[bytes, None]) -> None:
        self._key = key
        self._salt = salt
        self._nonces = nonces
        self._state = VaultState.UNLOCKED

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create(self, passphrase: str, record: Any) -> str:
        """Create a new vault holding ``record``.

        Args:
            passphrase: Passphrase protecting the new vault.
            record: Initial plaintext record.

        Returns:
            Encoded blob to persist.

        Raises:
            VaultStateError: If the vault is already unlocked.
            EntropyFailure: If the random source fails (fatal).
        """
        async with self._busy:
            self._require(VaultState.LOCKED, "create")
            key, salt = await self._derive(passphrase)
            nonces: dict[bytes, None] = {}
            blob = self._seal_record(key, salt, nonces, record)
            self._enter(key, salt, nonces)
        logger.info("Vault created (%d bytes)", len(blob))
        return blob

    async def unlock(self, passphrase: str, blob: str) -> Any:
        """Open an existing vault blob.

        Args:
            passphrase: Passphrase to try.
            blob: Encoded blob read from storage.

        Returns:
            The decrypted record.

        Raises:
            VaultStateError: If the vault is already unlocked.
            FormatError: If the blob or the record inside is unreadable.
            AuthFailure: If the passphrase is wrong or the data was tampered with.
        """
        async with self._busy:
            self._require(VaultState.LOCKED, "unlock")
            parts = decode_blob(blob)
            key, salt = await self._derive(passphrase, parts.salt)
            try:
                plaintext = unseal(key, parts.nonce, parts.sealed)
            except AuthFailure:
                logger.warning("Vault unlock failed: authentication error")
                raise
            record = self._deserialize(plaintext)
            self._enter(key, salt, {parts.nonce: None})
        logger.info("Vault unlocked")
        return record

    async def persist(self, record: Any) -> str:
        """Reseal ``record`` under the session key with a fresh nonce.

        The session salt is reused, not re-derived.

        Raises:
            VaultStateError: If the vault is locked.
            EntropyFailure: If the random source fails (fatal).
        """
        async with self._busy:
            self._require(VaultState.UNLOCKED, "persist")
            blob = self._seal_record(self._key, self._salt, self._nonces, record)
        logger.debug("Vault persisted (%d bytes)", len(blob))
        return blob

    async def rotate(self, new_passphrase: str, record: Any) -> str:
        """Reseal ``record`` under a new passphrase, salt and key.

        The session switches to the new key only after sealing succeeded.
        Writing the returned blob (and keeping the old one until that write
        is confirmed) is up to the caller, see ``rotate_passphrase``.

        Raises:
            VaultStateError: If the vault is locked, or was locked while
                the new key was being derived.
            EntropyFailure: If the random source fails (fatal).
        """
        async with self._busy:
            self._require(VaultState.UNLOCKED, "rotate")
            key, salt = await self._derive(new_passphrase)
            self._require(VaultState.UNLOCKED, "rotate")
            nonces: dict[bytes, None] = {}
            blob = self._seal_record(key, salt, nonces, record)
            self._enter(key, salt, nonces)
        logger.info("Vault passphrase rotated")
        return blob

    def lock(self) -> None:
        """Drop the session key and salt. Safe to call in any state."""
        was_unlocked = self.is_unlocked
        self._key = None
        self._salt = None
        self._nonces = {}
        self._state = VaultState.LOCKED
        if was_unlocked:
            logger.info("Vault locked")
