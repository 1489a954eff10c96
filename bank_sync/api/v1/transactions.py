"""GET /v1/users/{user_id}/... - cached bank data read endpoints"""

from fastapi import APIRouter, Depends

from bank_sync.api.v1.schemas import (
    AccountSchema,
    AccountsResponse,
    RecurringResponse,
    RecurringSuggestionSchema,
    TransactionSchema,
    TransactionsResponse,
)
from bank_sync.api.dependencies import get_orchestrator
from bank_sync.services.orchestrator import SyncOrchestrator

router = APIRouter()


@router.get("/users/{user_id}/transactions", response_model=TransactionsResponse)
async def get_transactions(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """
    Cached transactions, newest first.

    Never triggers a fetch; during a refresh this may return the previous snapshot.
    """
    transactions = await orchestrator.get_cached_transactions()
    return TransactionsResponse(
        user_id=orchestrator.user_id,
        transactions=[TransactionSchema(**t.to_dict()) for t in transactions],
    )


@router.get("/users/{user_id}/recurring", response_model=RecurringResponse)
async def get_recurring(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    suggestions = await orchestrator.get_recurring_suggestions()
    return RecurringResponse(
        user_id=orchestrator.user_id,
        suggestions=[RecurringSuggestionSchema(**s.to_dict()) for s in suggestions],
    )


@router.get("/users/{user_id}/accounts", response_model=AccountsResponse)
async def get_accounts(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    accounts = await orchestrator.get_cached_accounts()
    return AccountsResponse(
        user_id=orchestrator.user_id,
        accounts=[AccountSchema(**a.to_dict()) for a in accounts],
    )
