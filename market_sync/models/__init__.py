from market_sync.models.base import Base
from market_sync.models.coins import Coin, CoinCategory, TokenCategory
from market_sync.models.market import MarketSnapshot
from market_sync.models.token_info import DexListing, TokenInfo, TokenTag
from market_sync.models.runs import SyncRun

__all__ = [
    "Base",
    "Coin",
    "CoinCategory",
    "TokenCategory",
    "MarketSnapshot",
    "TokenInfo",
    "TokenTag",
    "DexListing",
    "SyncRun",
]
