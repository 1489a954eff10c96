"""Unit tests for aggregator error classification"""

import asyncio
import pytest
from bank_sync.domain.classification import (
    RECONNECT_REQUIRED,
    TEMPORARY_FAILURE,
    classify_error,
    error_state_for,
)
from bank_sync.domain.exceptions import AggregatorError, AggregatorTimeoutError
from bank_sync.domain.models import ConnectionStatus, ErrorKind


@pytest.mark.parametrize(
    "exc",
    [
        AggregatorError("Aggregator error: 400", status_code=400, error_code="ITEM_LOGIN_REQUIRED"),
        AggregatorError("Aggregator error: 400", status_code=400, error_code="INVALID_ACCESS_TOKEN"),
        AggregatorError("Aggregator error: 401", status_code=401),
        AggregatorError("Aggregator error: 403", status_code=403),
        RuntimeError("the access token has expired"),
        RuntimeError("Unauthorized"),
    ],
)
def test_credential_errors(exc):
    assert classify_error(exc) == ErrorKind.CREDENTIAL_EXPIRED


def test_rate_limit_errors():
    assert classify_error(AggregatorError("Aggregator error: 429", status_code=429)) == ErrorKind.RATE_LIMITED
    assert classify_error(RuntimeError("RATE_LIMIT_EXCEEDED")) == ErrorKind.RATE_LIMITED
    assert classify_error(RuntimeError("Too many requests")) == ErrorKind.RATE_LIMITED


def test_product_not_ready():
    exc = AggregatorError("Aggregator error: 400", status_code=400, error_code="PRODUCT_NOT_READY")
    assert classify_error(exc) == ErrorKind.PRODUCT_NOT_READY


def test_network_errors():
    assert classify_error(asyncio.TimeoutError()) == ErrorKind.TRANSIENT_NETWORK
    assert classify_error(AggregatorTimeoutError("Aggregator timeout after 10.0s")) == ErrorKind.TRANSIENT_NETWORK
    assert classify_error(AggregatorError("Aggregator error: 503", status_code=503)) == ErrorKind.TRANSIENT_NETWORK
    assert classify_error(ConnectionResetError("peer reset")) == ErrorKind.TRANSIENT_NETWORK


def test_unclassified():
    assert classify_error(ValueError("something odd")) == ErrorKind.UNCLASSIFIED


def test_credential_error_state_is_recoverable():
    state = error_state_for(ErrorKind.CREDENTIAL_EXPIRED, linked=True)

    assert state.status == ConnectionStatus.ERROR
    assert state.recoverable is True
    assert state.reason == RECONNECT_REQUIRED
    assert state.linked is True


@pytest.mark.parametrize("kind", [ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_NETWORK, ErrorKind.UNCLASSIFIED])
def test_other_error_states_are_not_recoverable(kind):
    state = error_state_for(kind, linked=True)

    assert state.recoverable is False
    assert state.reason == TEMPORARY_FAILURE
    assert state.linked is True
