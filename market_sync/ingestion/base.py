"""Abstract source interface for ingestion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from market_sync.schemas.normalized import MarketRecord


class BaseSource(ABC):
    """Abstract base class for market data sources."""

    name: str

    @abstractmethod
    async def fetch(self, category: str) -> List[MarketRecord]:
        """Fetch every asset of ``category`` as normalized records sharing one timestamp."""
