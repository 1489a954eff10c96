"""Dependency injection for FastAPI endpoints"""

from fastapi import Path, Request
from bank_sync.infrastructure.clients.notifications import LocalNotificationSource
from bank_sync.services.orchestrator import SyncOrchestrator
from bank_sync.services.registry import OrchestratorRegistry


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_registry(request: Request) -> OrchestratorRegistry:
    """Provide the application's per-user registry"""
    return request.app.state.registry


def get_notification_source(request: Request) -> LocalNotificationSource:
    """Provide the in-process change notification source"""
    return request.app.state.notifications


def get_orchestrator(request: Request, user_id: str = Path(..., min_length=1)) -> SyncOrchestrator:
    """Provide the orchestrator for the user in the path"""
    return get_registry(request).get(user_id)
