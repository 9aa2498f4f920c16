"""Local Vault — Passphrase-sealed storage of the dashboard user record.

Security Note (Threat Model):
    The session key and the decrypted record live in process memory while
    the vault is unlocked. A memory dump of the process could expose them.
    This is an accepted limitation — the vault protects data at rest only.
"""

from .autosave import AutoSaver, SyncStatus
from .codec import (
    SealedBlob,
    decode_blob,
    decode_record,
    encode_blob,
    encode_record,
)
from .config import VaultConfig
from .crypto import SessionKey, derive_key, generate_nonce, generate_salt, seal, unseal
from .exceptions import (
    AuthFailure,
    EntropyFailure,
    FormatError,
    VaultError,
    VaultExistsError,
    VaultNotFoundError,
    VaultStateError,
)
from .key_rotation import recover_previous, rotate_passphrase
from .lifecycle import VaultLifecycle, VaultState
from .local_vault import LocalVault
from .storage import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "AutoSaver",
    "SyncStatus",
    "SealedBlob",
    "decode_blob",
    "decode_record",
    "encode_blob",
    "encode_record",
    "VaultConfig",
    "SessionKey",
    "derive_key",
    "generate_nonce",
    "generate_salt",
    "seal",
    "unseal",
    "AuthFailure",
    "EntropyFailure",
    "FormatError",
    "VaultError",
    "VaultExistsError",
    "VaultNotFoundError",
    "VaultStateError",
    "recover_previous",
    "rotate_passphrase",
    "VaultLifecycle",
    "VaultState",
    "LocalVault",
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
]
