import pytest

from instock_vault.vault import MemoryStore, VaultConfig, VaultLifecycle


@pytest.fixture
def config():
    """Cheapest configuration the validators accept."""
    return VaultConfig()


@pytest.fixture
def lifecycle(config):
    """Create a fresh, locked VaultLifecycle."""
    return VaultLifecycle(config=config)


@pytest.fixture
def storage():
    """In-memory stand-in for local storage."""
    return MemoryStore()


@pytest.fixture
def record():
    return {"watchlist": ["TCS.NS"], "portfolio": [], "alerts": []}
