"""
Vault Configuration — Validated key-derivation, cipher and storage settings.

Reads optional overrides from environment variables:
    VAULT_KDF = pbkdf2 | argon2id
    VAULT_PBKDF2_ITERATIONS = <integer, at least 100000>
    VAULT_CIPHER_BACKEND = aesgcm | chacha20
    VAULT_STORAGE_KEY = <storage slot name>
    VAULT_AUTOSAVE_DELAY = <seconds>

Security Note:
    Nothing here is secret. Passphrases and derived keys never pass
    through the configuration layer.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("instock.vault")

SALT_SIZE = 16  # 128-bit salt
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit authentication tag
KEY_LENGTH = 32  # AES-256

MIN_PBKDF2_ITERATIONS = 100_000
DEFAULT_STORAGE_KEY = "instock_encrypted_data"
DEFAULT_AUTOSAVE_DELAY = 2.0

_KDF_CHOICES = ("pbkdf2", "argon2id")
_CIPHER_CHOICES = ("aesgcm", "chacha20")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    kdf: str = Field(default="pbkdf2")
    pbkdf2_iterations: int = Field(
        default=MIN_PBKDF2_ITERATIONS, ge=MIN_PBKDF2_ITERATIONS
    )
    argon2_time_cost: int = Field(default=3, ge=1)
    argon2_memory_cost: int = Field(default=65536, ge=8)  # KiB
    argon2_parallelism: int = Field(default=4, ge=1, le=64)
    cipher_backend: str = Field(default="aesgcm")
    storage_key: str = Field(default=DEFAULT_STORAGE_KEY, min_length=1)
    autosave_delay: float = Field(default=DEFAULT_AUTOSAVE_DELAY, gt=0)

    model_config = {"frozen": True}

    @field_validator("kdf")
    @classmethod
    def validate_kdf(cls, v: str) -> str:
        """Validate key derivation function is supported."""
        v = v.lower()
        if v not in _KDF_CHOICES:
            raise ValueError(f"Unsupported key derivation function: {v}")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in _CIPHER_CHOICES:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_argon2_memory(self) -> "VaultConfig":
        """Argon2 needs at least 8 KiB of memory per lane."""
        if self.argon2_memory_cost < 8 * self.argon2_parallelism:
            raise ValueError(
                f"argon2_memory_cost must be at least "
                f"{8 * self.argon2_parallelism} KiB for "
                f"parallelism={self.argon2_parallelism}"
            )
        return self

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading overrides from environment.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {}
        kdf = os.environ.get("VAULT_KDF")
        if kdf:
            values["kdf"] = kdf
        iterations = os.environ.get("VAULT_PBKDF2_ITERATIONS")
        if iterations:
            values["pbkdf2_iterations"] = int(iterations)
        backend = os.environ.get("VAULT_CIPHER_BACKEND")
        if backend:
            values["cipher_backend"] = backend
        storage_key = os.environ.get("VAULT_STORAGE_KEY")
        if storage_key:
            values["storage_key"] = storage_key
        delay = os.environ.get("VAULT_AUTOSAVE_DELAY")
        if delay:
            values["autosave_delay"] = float(delay)
        config = cls(**values)
        logger.debug(
            "Vault config: kdf=%s cipher=%s storage_key=%s",
            config.kdf, config.cipher_backend, config.storage_key,
        )
        return config
