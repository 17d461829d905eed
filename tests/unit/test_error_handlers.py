"""
Unit tests for the error envelope and per-code counters
"""
import json
from types import SimpleNamespace
import pytest
from fastapi import HTTPException

from crewmate.core.error_handlers import ErrorHandler
from crewmate.core.exceptions import ConflictError, ErrorCode, NotFoundError


class _URL:
    path = "/plans/1"


class _Request:
    url = _URL()
    method = "POST"
    state = SimpleNamespace(request_id="req-1")


def body(response):
    return json.loads(response.body)


@pytest.mark.asyncio
async def test_crewmate_exception_becomes_error_envelope():
    handler = ErrorHandler()

    response = await handler.handle_crewmate_exception(_Request(), NotFoundError("Plan", 1))

    assert response.status_code == 404
    payload = body(response)
    assert payload["status"] == "error"
    assert payload["data"] is None
    assert payload["error"]["error_code"] == ErrorCode.NOT_FOUND.value
    assert payload["error"]["details"] == {"resource": "Plan", "id": 1}
    assert payload["error"]["request_id"] == "req-1"


@pytest.mark.asyncio
async def test_http_exception_maps_status_to_code():
    handler = ErrorHandler()

    response = await handler.handle_http_exception(_Request(), HTTPException(status_code=404, detail="Not Found"))

    assert response.status_code == 404
    assert body(response)["error"]["error_code"] == ErrorCode.NOT_FOUND.value


@pytest.mark.asyncio
async def test_unexpected_exception_is_internal_error():
    handler = ErrorHandler()

    response = await handler.handle_generic_exception(_Request(), RuntimeError("boom"))

    assert response.status_code == 500
    assert body(response)["error"]["error_code"] == ErrorCode.INTERNAL_SERVER_ERROR.value


@pytest.mark.asyncio
async def test_error_statistics_count_by_code():
    handler = ErrorHandler()
    await handler.handle_crewmate_exception(_Request(), ConflictError("already connected"))
    await handler.handle_crewmate_exception(_Request(), ConflictError("already connected"))
    await handler.handle_crewmate_exception(_Request(), NotFoundError("User", 3))

    stats = handler.get_error_statistics()

    assert stats["error_counts"][ErrorCode.CONFLICT.value] == 2
    assert stats["error_counts"][ErrorCode.NOT_FOUND.value] == 1
    assert stats["total_errors"] == 3
