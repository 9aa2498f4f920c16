"""User record kept inside the vault.

Field names serialize in camelCase so records written by the browser
dashboard (``averagePrice``, ``userSettings``...) decode into these models.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .vault.codec import decode_record, encode_record


INITIAL_WATCHLIST = [
    'RELIANCE.NS',
    'TCS.NS',
    'HDFCBANK.NS',
    'INFY.NS',
    'TATAMOTORS.NS',
    'SBIN.NS',
    'ADANIENT.NS'
]


class _RecordModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PortfolioItem(_RecordModel):
    symbol: str
    quantity: float
    average_price: float


class AlertConfig(_RecordModel):
    symbol: str
    threshold_percent: float
    enabled: bool = True
    base_price: float


class UserSettings(_RecordModel):
    custom_api_key: Optional[str] = None


class UserData(_RecordModel):
    """Watchlist, portfolio, alerts and settings of one dashboard user."""

    watchlist: list[str] = Field(default_factory=list)
    portfolio: list[PortfolioItem] = Field(default_factory=list)
    alerts: list[AlertConfig] = Field(default_factory=list)
    user_settings: Optional[UserSettings] = None

    def to_bytes(self) -> bytes:
        return encode_record(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> "UserData":
        """Decode a sealed-record payload into ``UserData``.

        Raises:
            FormatError: If the payload is not a valid user record.
        """
        return decode_record(data, model=cls)


def default_user_data() -> UserData:
    """Record of a freshly created vault."""
    return UserData(watchlist=list(INITIAL_WATCHLIST))
