"""Error classification for failed aggregator calls"""

import asyncio
from typing import Optional

import httpx

from bank_sync.domain.exceptions import AggregatorError, AggregatorTimeoutError
from bank_sync.domain.models import ConnectionState, ConnectionStatus, ErrorKind

RECONNECT_REQUIRED = "reconnect required"
TEMPORARY_FAILURE = "temporary failure, retry later"

# Matched case-insensitively against the error code and message
CREDENTIAL_MARKERS = (
    "item_login_required",
    "invalid_access_token",
    "item_error",
    "access token",
    "login required",
    "unauthorized",
    "forbidden",
)
RATE_LIMIT_MARKERS = ("rate_limit", "rate limit", "too many requests")
PRODUCT_NOT_READY_MARKERS = ("product_not_ready", "not yet ready")
NETWORK_MARKERS = ("timeout", "timed out", "network", "connection", "econnreset", "enotfound", "service unavailable")


def _error_signal(exc: BaseException) -> str:
    parts = [str(exc)]
    error_code = getattr(exc, "error_code", None)
    if error_code:
        parts.append(error_code)
    return " ".join(parts).lower()


def _status_code(exc: BaseException) -> Optional[int]:
    if isinstance(exc, AggregatorError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Inspect an exception for markers of its failure class.

    Credential invalidation is checked first: a 401 carrying a rate-limit
    message is still a credential problem.
    """
    signal = _error_signal(exc)
    status = _status_code(exc)

    if status in (401, 403) or any(marker in signal for marker in CREDENTIAL_MARKERS):
        return ErrorKind.CREDENTIAL_EXPIRED
    if status == 429 or any(marker in signal for marker in RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if any(marker in signal for marker in PRODUCT_NOT_READY_MARKERS):
        return ErrorKind.PRODUCT_NOT_READY
    if isinstance(exc, (asyncio.TimeoutError, AggregatorTimeoutError, httpx.TransportError, ConnectionError)):
        return ErrorKind.TRANSIENT_NETWORK
    if (status is not None and status >= 500) or any(marker in signal for marker in NETWORK_MARKERS):
        return ErrorKind.TRANSIENT_NETWORK
    return ErrorKind.UNCLASSIFIED


def error_state_for(kind: ErrorKind, linked: bool) -> ConnectionState:
    """Map an error kind to the connection state the user should see"""
    if kind == ErrorKind.CREDENTIAL_EXPIRED:
        return ConnectionState(
            status=ConnectionStatus.ERROR,
            linked=linked,
            reason=RECONNECT_REQUIRED,
            recoverable=True,
        )
    return ConnectionState(
        status=ConnectionStatus.ERROR,
        linked=linked,
        reason=TEMPORARY_FAILURE,
        recoverable=False,
    )
