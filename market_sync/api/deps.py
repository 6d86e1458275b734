"""API dependencies"""

from typing import Generator

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from market_sync.core.db import SessionLocal
from market_sync.core.errors import MissingDependencyError
from market_sync.core.registry import BaseService, Capability, ServiceRegistry


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_registry(request: Request) -> ServiceRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Services are not initialized")
    return registry


def require_service(registry: ServiceRegistry, capability: Capability) -> BaseService:
    """Resolve a service or answer 503."""
    try:
        return registry.require(capability)
    except MissingDependencyError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
