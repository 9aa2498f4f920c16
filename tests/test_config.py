"""
Tests for VaultConfig validation and environment loading.
"""
import pytest
from pydantic import ValidationError

from instock_vault.vault.config import DEFAULT_STORAGE_KEY, VaultConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "VAULT_KDF",
        "VAULT_PBKDF2_ITERATIONS",
        "VAULT_CIPHER_BACKEND",
        "VAULT_STORAGE_KEY",
        "VAULT_AUTOSAVE_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestVaultConfig:

    def test_defaults(self):
        cfg = VaultConfig()
        assert cfg.kdf == "pbkdf2"
        assert cfg.pbkdf2_iterations == 100_000
        assert cfg.cipher_backend == "aesgcm"
        assert cfg.storage_key == DEFAULT_STORAGE_KEY == "instock_encrypted_data"
        assert cfg.autosave_delay == 2.0

    def test_iterations_floor(self):
        with pytest.raises(ValidationError):
            VaultConfig(pbkdf2_iterations=99_999)

    def test_unknown_kdf(self):
        with pytest.raises(ValidationError):
            VaultConfig(kdf="md5")

    def test_unknown_cipher(self):
        with pytest.raises(ValidationError):
            VaultConfig(cipher_backend="des")

    def test_case_insensitive_choices(self):
        cfg = VaultConfig(kdf="Argon2ID", cipher_backend="ChaCha20")
        assert cfg.kdf == "argon2id"
        assert cfg.cipher_backend == "chacha20"

    def test_argon2_memory_per_lane(self):
        with pytest.raises(ValidationError):
            VaultConfig(argon2_memory_cost=16, argon2_parallelism=4)

    def test_positive_delay(self):
        with pytest.raises(ValidationError):
            VaultConfig(autosave_delay=0)

    def test_empty_storage_key(self):
        with pytest.raises(ValidationError):
            VaultConfig(storage_key="")

    def test_frozen(self):
        cfg = VaultConfig()
        with pytest.raises(ValidationError):
            cfg.kdf = "argon2id"


class TestFromEnv:

    def test_defaults_without_env(self, clean_env):
        assert VaultConfig.from_env() == VaultConfig()

    def test_reads_env(self, clean_env):
        clean_env.setenv("VAULT_KDF", "argon2id")
        clean_env.setenv("VAULT_PBKDF2_ITERATIONS", "200000")
        clean_env.setenv("VAULT_CIPHER_BACKEND", "chacha20")
        clean_env.setenv("VAULT_STORAGE_KEY", "my_vault")
        clean_env.setenv("VAULT_AUTOSAVE_DELAY", "0.5")
        cfg = VaultConfig.from_env()
        assert cfg.kdf == "argon2id"
        assert cfg.pbkdf2_iterations == 200_000
        assert cfg.cipher_backend == "chacha20"
        assert cfg.storage_key == "my_vault"
        assert cfg.autosave_delay == 0.5

    def test_invalid_env(self, clean_env):
        clean_env.setenv("VAULT_CIPHER_BACKEND", "rot13")
        with pytest.raises(ValidationError):
            VaultConfig.from_env()
