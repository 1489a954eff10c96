"""Aggregator API HTTP client for bank accounts and transactions"""

import httpx
from datetime import date
from typing import Any, Dict, List, Optional, Protocol
from bank_sync.domain.models import Account, BankTransaction
from bank_sync.domain.exceptions import AggregatorError, AggregatorTimeoutError
from bank_sync.config import settings


class AggregatorClient(Protocol):
    """Remote bank-data API, scoped to one user"""

    async def is_connected(self) -> bool: ...

    async def list_accounts(self) -> List[Account]: ...

    async def list_transactions(self, start_date: date, end_date: date) -> List[BankTransaction]: ...

    async def disconnect(self) -> None: ...


def parse_transaction(txn: Dict[str, Any]) -> BankTransaction:
    """Map an aggregator transaction row; merchant_name wins over the raw name"""
    return BankTransaction(
        transaction_id=txn["transaction_id"],
        account_id=txn["account_id"],
        name=txn.get("merchant_name") or txn["name"],
        amount=float(txn["amount"]),
        date=date.fromisoformat(txn["date"]),
        pending=bool(txn.get("pending", False)),
        category=list(txn.get("category") or []),
    )


def parse_account(acct: Dict[str, Any]) -> Account:
    balances = acct.get("balances") or {}
    return Account(
        account_id=acct["account_id"],
        name=acct["name"],
        type=acct["type"],
        subtype=acct.get("subtype"),
        mask=acct.get("mask"),
        current_balance=balances.get("current"),
        institution=acct.get("institution"),
    )


class HttpAggregatorClient:
    """Client for the external aggregator API"""

    def __init__(
        self,
        user_id: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_id = user_id
        self.base_url = base_url or settings.aggregator_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def is_connected(self) -> bool:
        data = await self._request("GET", "status")
        return bool(data.get("connected", False))

    async def list_accounts(self) -> List[Account]:
        data = await self._request("GET", "accounts")
        try:
            return [parse_account(acct) for acct in data.get("accounts", [])]
        except (KeyError, ValueError, TypeError) as e:
            raise AggregatorError(f"Invalid account data from aggregator: {e}") from e

    async def list_transactions(self, start_date: date, end_date: date) -> List[BankTransaction]:
        """
        Fetch transactions within [start_date, end_date] (calendar dates).

        Raises:
            AggregatorError: On timeout, HTTP errors, or invalid response
        """
        data = await self._request(
            "GET",
            "transactions",
            params={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
        try:
            return [parse_transaction(txn) for txn in data.get("transactions", [])]
        except (KeyError, ValueError, TypeError) as e:
            raise AggregatorError(f"Invalid transaction data from aggregator: {e}") from e

    async def disconnect(self) -> None:
        await self._request("POST", "disconnect")

    async def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.base_url}/users/{self.user_id}/{path}",
                    params=params,
                )
                response.raise_for_status()
                if not response.content:
                    return {}
                return response.json()

            except httpx.TimeoutException as e:
                raise AggregatorTimeoutError(f"Aggregator timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                error_code = _error_code(e.response)
                raise AggregatorError(
                    f"Aggregator error: {e.response.status_code} {error_code or ''}".strip(),
                    status_code=e.response.status_code,
                    error_code=error_code,
                ) from e
            except httpx.RequestError as e:
                raise AggregatorError(f"Aggregator connection error: {e}") from e
            except ValueError as e:
                raise AggregatorError(f"Invalid JSON from aggregator: {e}") from e


def _error_code(response: httpx.Response) -> Optional[str]:
    """Plaid-style error body: {"error_code": "ITEM_LOGIN_REQUIRED", ...}"""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error_code")
    return None
