"""Orchestration logic for fetching several categories."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from market_sync.core.errors import MarketSyncError
from market_sync.core.logging import get_logger
from market_sync.schemas.normalized import MarketRecord
from .base import BaseSource

log = get_logger("ingestion.runner")


@dataclass
class FetchResult:
    records: Dict[str, List[MarketRecord]] = field(default_factory=dict)
    failures: Dict[str, MarketSyncError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class IngestionRunner:
    """Fetches categories one after another; a failing category does not stop the rest."""

    def __init__(self, source: BaseSource):
        self.source = source

    async def run(self, categories: List[str]) -> FetchResult:
        result = FetchResult()

        for category in categories:
            try:
                records = await self.source.fetch(category)
            except MarketSyncError as exc:
                log.warning(f"Source={self.source.name} category={category} failed: {exc}")
                result.failures[category] = exc
                continue
            result.records[category] = records
            log.info(f"Source={self.source.name} category={category} fetched={len(records)}")
        return result
