"""
Vault Key Rotation — Re-sealing the vault under a new passphrase.

Rotation writes the new blob without ever leaving storage in a state where
neither passphrase opens the vault:

1. copy the current blob to ``<key>.previous``
2. reseal the record under a fresh salt and key
3. write the new blob to ``<key>`` and read it back
4. only then delete ``<key>.previous``

If any step fails the backup slot is left in place and
``recover_previous`` can restore it.

Security Note:
    Never log passphrases, plaintext or ciphertext values.
"""
import logging
from typing import Any

from .exceptions import VaultError, VaultNotFoundError
from .lifecycle import VaultLifecycle
from .storage import KeyValueStore

logger = logging.getLogger("instock.vault")

BACKUP_SUFFIX = ".previous"


def backup_key(key: str) -> str:
    return f"{key}{BACKUP_SUFFIX}"


async def rotate_passphrase(
    lifecycle: VaultLifecycle,
    storage: KeyValueStore,
    key: str,
    new_passphrase: str,
    record: Any,
) -> str:
    """Reseal ``record`` under ``new_passphrase`` and durably replace the stored blob.

    Args:
        lifecycle: Unlocked lifecycle of the current session.
        storage: Store holding the vault blob.
        key: Storage slot of the vault blob.
        new_passphrase: Passphrase for the rotated vault.
        record: Current plaintext record.

    Returns:
        The new blob, as written to storage.

    Raises:
        VaultStateError: If the lifecycle is locked.
        VaultError: If the new blob could not be confirmed in storage; the
            previous blob is kept under the backup slot and the lifecycle
            is locked. A failing write re-raises and locks the same way.
    """
    previous = await storage.get(key)
    if previous is not None:
        await storage.set(backup_key(key), previous)
        logger.debug("Backed up vault key=%s before rotation", key)

    new_blob = await lifecycle.rotate(new_passphrase, record)

    # The session already holds the new key; lock it unless the new blob
    # is confirmed, so no later save can seal under an unconfirmed passphrase.
    try:
        await storage.set(key, new_blob)
        written = await storage.get(key)
    except BaseException:
        lifecycle.lock()
        logger.error(
            "Writing rotated vault for key=%s failed; session locked, "
            "previous vault kept at key=%s", key, backup_key(key),
        )
        raise
    if written != new_blob:
        lifecycle.lock()
        logger.error(
            "Rotated vault for key=%s was not confirmed in storage; session "
            "locked, previous vault kept at key=%s", key, backup_key(key),
        )
        raise VaultError(
            "rotated vault could not be confirmed in storage; "
            "previous vault retained"
        )

    if previous is not None:
        await storage.delete(backup_key(key))
    logger.info("Vault passphrase rotation complete for key=%s", key)
    return new_blob


async def recover_previous(storage: KeyValueStore, key: str) -> str:
    """Restore the blob saved before an interrupted rotation.

    Returns:
        The restored blob.

    Raises:
        VaultNotFoundError: If there is no backup for ``key``.
    """
    previous = await storage.get(backup_key(key))
    if previous is None:
        raise VaultNotFoundError(f"no previous vault stored for {key}")
    await storage.set(key, previous)
    await storage.delete(backup_key(key))
    logger.warning("Restored previous vault for key=%s", key)
    return previous
