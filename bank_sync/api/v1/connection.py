"""Connection lifecycle endpoints - refresh, disconnect, link completion, app phase"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from bank_sync.api.v1.schemas import ConnectionResponse, LifecycleRequest, RefreshResponse
from bank_sync.api.dependencies import get_orchestrator, get_registry, get_request_id
from bank_sync.domain.models import AppLifecyclePhase, SyncStatus
from bank_sync.services.orchestrator import SyncOrchestrator
from bank_sync.services.registry import OrchestratorRegistry

router = APIRouter()


def _connection_response(orchestrator: SyncOrchestrator) -> ConnectionResponse:
    state = orchestrator.get_connection_state()
    return ConnectionResponse(
        user_id=orchestrator.user_id,
        status=state.status.value,
        linked=state.linked,
        reason=state.reason,
        recoverable=state.recoverable,
    )


@router.get("/users/{user_id}/connection", response_model=ConnectionResponse)
async def get_connection(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return _connection_response(orchestrator)


@router.post("/users/{user_id}/refresh", response_model=RefreshResponse)
async def refresh(
    request: Request,
    force: bool = Query(False, description="Bypass cache freshness and the update interval"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """
    Run a refresh for the user.

    Flow:
    1. Single-flight check (non-forced calls during a refresh are ignored)
    2. Credential and cache freshness checks
    3. Plan, fetch with retry, merge, detect recurring, persist
    4. Update connection state
    """
    outcome = await orchestrator.refresh(force=force)

    if outcome.status == SyncStatus.FAILED:
        state = orchestrator.get_connection_state()
        logging.warning(
            f"Refresh failed: {outcome.error_kind.value}",
            extra={"request_id": get_request_id(request), "user_id": orchestrator.user_id},
        )
        raise HTTPException(status_code=503, detail=state.reason or "Bank service unavailable")

    return RefreshResponse(
        status=outcome.status.value,
        strategy=outcome.strategy.value if outcome.strategy else None,
        fetched_count=outcome.fetched_count,
        total_count=outcome.total_count,
        suggestion_count=outcome.suggestion_count,
        connection=_connection_response(orchestrator),
    )


@router.post("/users/{user_id}/disconnect", response_model=ConnectionResponse)
async def disconnect(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Unlink the bank and drop every cached entry for the user"""
    await orchestrator.disconnect()
    return _connection_response(orchestrator)


@router.post("/users/{user_id}/link/complete", response_model=ConnectionResponse)
async def complete_link(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Confirm a finished link handshake; Unconfirmed if the aggregator never agrees"""
    await orchestrator.complete_link()
    return _connection_response(orchestrator)


@router.post("/users/{user_id}/lifecycle", status_code=204)
async def set_lifecycle(
    user_id: str,
    body: LifecycleRequest,
    registry: OrchestratorRegistry = Depends(get_registry),
):
    """Host lifecycle signal; logging out tears the user context down"""
    if body.phase == AppLifecyclePhase.LOGGED_OUT:
        await registry.logout(user_id)
    else:
        registry.get(user_id).set_lifecycle_phase(body.phase)
