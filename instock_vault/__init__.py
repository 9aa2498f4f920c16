"""InStock Vault.

Encrypted local storage of the trading dashboard's user record.
"""
from .version import __version__
from .vault import LocalVault, VaultConfig, VaultLifecycle
from .data import UserData, PortfolioItem, AlertConfig, UserSettings, default_user_data

__all__ = (
    "__version__",
    "UserData",
    "PortfolioItem",
    "AlertConfig",
    "UserSettings",
    "default_user_data",
    "LocalVault",
    "VaultConfig",
    "VaultLifecycle",
)
