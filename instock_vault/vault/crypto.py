"""
Vault Crypto Core — Passphrase key derivation and authenticated encryption.

- Key derivation: PBKDF2-HMAC-SHA256 (default) or Argon2id → 256-bit key,
  wrapped in an opaque ``SessionKey``.
- Sealing: AES-256-GCM (default) or ChaCha20-Poly1305 with a caller-supplied
  96-bit nonce → ciphertext with a trailing 128-bit tag.

Security Note:
    Never log passphrases, key material, plaintext or ciphertext.
    Raw key bytes exist only inside ``derive_key`` and are handed straight to
    the AEAD primitive; ``SessionKey`` exposes no way to read them back.
"""
import os
import logging

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .config import KEY_LENGTH, NONCE_SIZE, SALT_SIZE, TAG_SIZE, VaultConfig
from .exceptions import AuthFailure, EntropyFailure

logger = logging.getLogger("instock.vault")

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


# ---------------------------------------------------------------------------
# Randomness
# ---------------------------------------------------------------------------

def _random_bytes(size: int) -> bytes:
    try:
        data = os.urandom(size)
    except (OSError, NotImplementedError) as err:
        logger.critical("Secure random source failed: %s", err)
        raise EntropyFailure() from err
    if len(data) != size:
        raise EntropyFailure()
    return data


def generate_salt() -> bytes:
    """Return 16 fresh bytes from the OS CSPRNG."""
    return _random_bytes(SALT_SIZE)


def generate_nonce() -> bytes:
    """Return 12 fresh bytes from the OS CSPRNG."""
    return _random_bytes(NONCE_SIZE)


# ---------------------------------------------------------------------------
# Session key
# ---------------------------------------------------------------------------

class SessionKey:
    """Opaque handle to a derived symmetric key.

    Wraps the AEAD primitive built from the key bytes. There is no accessor
    for the bytes, and the handle refuses pickling and copying.
    """

    __slots__ = ("_aead", "_backend")

    def __init__(self, aead, backend: str):
        self._aead = aead
        self._backend = backend

    @property
    def backend(self) -> str:
        return self._backend

    def __repr__(self) -> str:
        return f"<SessionKey {self._backend} [redacted]>"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("SessionKey cannot be serialized")

    def __reduce_ex__(self, protocol):
        raise TypeError("SessionKey cannot be serialized")

    def __copy__(self):
        raise TypeError("SessionKey cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("SessionKey cannot be copied")


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def _pbkdf2(secret: bytes, salt: bytes, config: VaultConfig) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=config.pbkdf2_iterations,
    )
    return kdf.derive(secret)


def _argon2id(secret: bytes, salt: bytes, config: VaultConfig) -> bytes:
    return hash_secret_raw(
        secret=secret,
        salt=salt,
        time_cost=config.argon2_time_cost,
        memory_cost=config.argon2_memory_cost,
        parallelism=config.argon2_parallelism,
        hash_len=KEY_LENGTH,
        type=Type.ID,
    )


def derive_key(
    passphrase: str,
    salt: bytes | None = None,
    config: VaultConfig | None = None,
) -> tuple[SessionKey, bytes]:
    """Derive a session key from a passphrase.

    Derivation always succeeds; a wrong passphrase only shows up when
    ``unseal`` fails to verify the tag.

    Args:
        passphrase: User passphrase.
        salt: 16-byte salt. A fresh one is generated when omitted.
        config: KDF and cipher settings. Defaults to ``VaultConfig()``.

    Returns:
        Tuple of (session_key, salt).

    Raises:
        ValueError: If salt is not 16 bytes.
        EntropyFailure: If a salt had to be generated and the random source failed.
    """
    config = config or VaultConfig()
    if salt is None:
        salt = generate_salt()
    elif len(salt) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes, got {len(salt)}")
    # lone surrogates (not valid UTF-8) must still derive a key
    secret = passphrase.encode("utf-8", errors="surrogatepass")
    if config.kdf == "argon2id":
        material = _argon2id(secret, salt, config)
    else:
        material = _pbkdf2(secret, salt, config)
    cipher_cls = _CIPHERS[config.cipher_backend]
    key = SessionKey(cipher_cls(material), config.cipher_backend)
    logger.debug("Derived session key: kdf=%s cipher=%s", config.kdf, config.cipher_backend)
    return key, salt


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def seal(key: SessionKey, nonce: bytes, plaintext: bytes) -> bytes:
    """Encrypt plaintext and append a 128-bit authentication tag.

    The nonce must be fresh for every call under the same key.

    Raises:
        TypeError: If key is not a SessionKey.
        ValueError: If nonce is not 12 bytes.
    """
    if not isinstance(key, SessionKey):
        raise TypeError("key must be a SessionKey")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    return key._aead.encrypt(nonce, plaintext, None)


def unseal(key: SessionKey, nonce: bytes, sealed: bytes) -> bytes:
    """Verify and decrypt ``ciphertext || tag``.

    Raises:
        AuthFailure: On any failure; wrong key, wrong nonce, tampered or
            truncated ciphertext are indistinguishable.
    """
    if (
        not isinstance(key, SessionKey)
        or len(nonce) != NONCE_SIZE
        or len(sealed) < TAG_SIZE
    ):
        raise AuthFailure()
    try:
        return key._aead.decrypt(nonce, sealed, None)
    except (InvalidTag, ValueError):
        raise AuthFailure() from None
