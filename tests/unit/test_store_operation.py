"""
Unit tests for translating store outages into TransientStoreError
"""
import json
from types import SimpleNamespace
import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from crewmate.core.db import store_operation
from crewmate.core.error_handlers import ErrorHandler
from crewmate.core.exceptions import ErrorCode, TransientStoreError


class _URL:
    path = "/connections/requests"


class _Request:
    url = _URL()
    method = "POST"
    state = SimpleNamespace(request_id="req-7")


def failing(error: Exception):
    @store_operation("send_connection_request")
    async def operation():
        raise error
    return operation


@pytest.mark.asyncio
async def test_operational_error_becomes_503_envelope():
    with pytest.raises(TransientStoreError) as exc_info:
        await failing(OperationalError("x", {}, Exception("database is locked")))()

    error = exc_info.value
    assert error.status_code == 503
    assert error.details == {"operation": "send_connection_request", "error": "database is locked"}
    assert isinstance(error.__cause__, OperationalError)

    response = await ErrorHandler().handle_crewmate_exception(_Request(), error)
    assert response.status_code == 503
    payload = json.loads(response.body)
    assert payload["status"] == "error"
    assert payload["error"]["error_code"] == ErrorCode.STORE_UNAVAILABLE.value


@pytest.mark.asyncio
async def test_invalidated_connection_becomes_transient():
    with pytest.raises(TransientStoreError) as exc_info:
        await failing(DBAPIError("x", {}, Exception("server closed"), connection_invalidated=True))()

    assert exc_info.value.details == {"operation": "send_connection_request"}


@pytest.mark.asyncio
async def test_other_store_errors_propagate_unchanged():
    plain = DBAPIError("x", {}, Exception("syntax"))
    with pytest.raises(DBAPIError) as exc_info:
        await failing(plain)()
    assert exc_info.value is plain

    integrity = IntegrityError("x", {}, Exception("UNIQUE constraint failed"))
    with pytest.raises(IntegrityError) as exc_info:
        await failing(integrity)()
    assert exc_info.value is integrity


@pytest.mark.asyncio
async def test_results_pass_through():
    @store_operation("list_blocked")
    async def operation(value):
        return value * 2

    assert await operation(21) == 42
    assert operation.__name__ == "operation"
