"""
Vault Exceptions — error taxonomy of the local vault.

``FormatError`` and ``AuthFailure`` must stay distinguishable so callers can
report "corrupted vault" apart from "wrong passphrase". ``AuthFailure`` itself
never says why the tag did not verify.
"""


class VaultError(Exception):
    """Base class for all vault errors."""

    message: str = "vault error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class FormatError(VaultError):
    """Blob or record is structurally unreadable."""

    message = "vault data corrupted or unreadable"


class AuthFailure(VaultError):
    """Authentication tag did not verify (wrong passphrase or tampered data)."""

    message = "incorrect passphrase"

    def __init__(self):
        # Always the same message, whatever the cause.
        super().__init__(self.message)


class EntropyFailure(VaultError):
    """Secure random source is unavailable or misbehaving. Fatal, never retried."""

    message = "secure random source unavailable"


class VaultStateError(VaultError):
    """Operation is not valid in the current lifecycle state."""

    message = "operation not allowed in current vault state"


class VaultNotFoundError(VaultError):
    """No vault blob stored under the well-known key."""

    message = "no vault data found"


class VaultExistsError(VaultError):
    """A vault already exists and would be overwritten."""

    message = "a vault already exists"
