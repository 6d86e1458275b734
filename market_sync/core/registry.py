"""Capability-keyed registry of long-running services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

from market_sync.core.errors import MissingDependencyError
from market_sync.core.logging import get_logger

log = get_logger("registry")


class Capability(str, Enum):
    MARKET_DATA = "market_data"
    TOKEN_INFO = "token_info"
    QUOTES = "quotes"


class BaseService(ABC):
    """A component the app starts on boot and stops on shutdown."""

    capability: Capability

    @abstractmethod
    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        return None


class ServiceRegistry:
    """Maps a ``Capability`` to the service providing it.

    Services are started in registration order and stopped in reverse.
    """

    def __init__(self) -> None:
        self._services: Dict[Capability, BaseService] = {}

    def register(self, service: BaseService) -> None:
        self._services[service.capability] = service
        log.debug(f"Registered service for {service.capability.value}")

    def get(self, capability: Capability) -> Optional[BaseService]:
        return self._services.get(capability)

    def require(self, capability: Capability) -> BaseService:
        service = self._services.get(capability)
        if service is None:
            raise MissingDependencyError(f"No service registered for {capability.value}")
        return service

    def services(self) -> List[BaseService]:
        return list(self._services.values())

    async def start_all(self) -> None:
        """Start every service; if one fails, stop the ones already started and re-raise."""
        started: List[BaseService] = []
        for service in self.services():
            try:
                await service.start()
            except Exception:
                log.error(f"Failed to start {type(service).__name__}, stopping {len(started)} started services")
                for running in reversed(started):
                    await running.stop()
                raise
            started.append(service)
            log.info(f"Started {type(service).__name__}")

    async def stop_all(self) -> None:
        for service in reversed(self.services()):
            await service.stop()
            log.info(f"Stopped {type(service).__name__}")
