"""Normalized market snapshot record handed from the fetcher to the store."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from market_sync.schemas.coingecko import CoinMarketItem


class MarketRecord(BaseModel):
    """One asset's market state for a category at a fetch timestamp."""

    id: str
    symbol: str
    name: str
    category: str
    current_price: float
    market_cap: float
    total_volume: float
    market_cap_rank: Optional[int] = None
    price_change_percentage_1h: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_7d: Optional[float] = None
    price_change_percentage_14d: Optional[float] = None
    price_change_percentage_30d: Optional[float] = None
    price_change_percentage_200d: Optional[float] = None
    timestamp: datetime
    data_source: str = "coingecko"

    @classmethod
    def from_market_item(cls, item: CoinMarketItem, category: str, timestamp: datetime) -> "MarketRecord":
        return cls(
            id=item.id,
            symbol=item.symbol,
            name=item.name,
            category=category,
            current_price=item.current_price or 0,
            market_cap=item.market_cap or 0,
            total_volume=item.total_volume or 0,
            market_cap_rank=item.market_cap_rank,
            price_change_percentage_1h=item.price_change_percentage_1h_in_currency,
            price_change_percentage_24h=(
                item.price_change_percentage_24h_in_currency
                if item.price_change_percentage_24h_in_currency is not None
                else item.price_change_percentage_24h
            ),
            price_change_percentage_7d=item.price_change_percentage_7d_in_currency,
            price_change_percentage_14d=item.price_change_percentage_14d_in_currency,
            price_change_percentage_30d=item.price_change_percentage_30d_in_currency,
            price_change_percentage_200d=item.price_change_percentage_200d_in_currency,
            timestamp=timestamp,
        )

    def coin_row(self) -> dict:
        return {"id": self.id, "symbol": self.symbol, "name": self.name}

    def snapshot_row(self) -> dict:
        return self.model_dump(exclude={"id", "symbol", "name"}) | {"coin_id": self.id}
