"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from typing import Any, Dict, List, Optional

from bank_sync.domain.models import AppLifecyclePhase


class TransactionSchema(BaseModel):
    """Single cached bank transaction"""

    transaction_id: str
    account_id: str
    name: str
    amount: float
    date: date
    pending: bool
    category: List[str]


class TransactionsResponse(BaseModel):
    """Response for GET /v1/users/{user_id}/transactions"""

    user_id: str
    transactions: List[TransactionSchema]


class RecurringSuggestionSchema(BaseModel):
    name: str
    amount: float
    category: str
    frequency: str
    occurrences: int
    last_occurrence: date
    is_income: bool


class RecurringResponse(BaseModel):
    """Response for GET /v1/users/{user_id}/recurring"""

    user_id: str
    suggestions: List[RecurringSuggestionSchema]


class AccountSchema(BaseModel):
    account_id: str
    name: str
    type: str
    subtype: Optional[str] = None
    mask: Optional[str] = None
    current_balance: Optional[float] = None
    institution: Optional[str] = None


class AccountsResponse(BaseModel):
    """Response for GET /v1/users/{user_id}/accounts"""

    user_id: str
    accounts: List[AccountSchema]


class ConnectionResponse(BaseModel):
    """Connection health for a user"""

    user_id: str
    status: str
    linked: bool
    reason: Optional[str] = None
    recoverable: bool = False


class RefreshResponse(BaseModel):
    """Response for POST /v1/users/{user_id}/refresh"""

    status: str
    strategy: Optional[str] = None
    fetched_count: int
    total_count: int
    suggestion_count: int
    connection: ConnectionResponse


class LifecycleRequest(BaseModel):
    """Request body for POST /v1/users/{user_id}/lifecycle"""

    phase: AppLifecyclePhase


class WebhookRequest(BaseModel):
    """Aggregator change notification; the payload is opaque"""

    webhook_type: Optional[str] = None
    webhook_code: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)


class WebhookResponse(BaseModel):
    delivered: int
