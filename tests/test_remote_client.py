"""Tests for the httpx remote client."""

import asyncio
import json
import math

import httpx

from macro_tracker.adapters.remote_client import HttpxRemoteClient
from macro_tracker.domain.errors import (
    AuthFailureKind,
    AuthRejection,
    RequestRejected,
    TransientSyncError,
)
from macro_tracker.domain.nutrition import DEFAULT_GOALS, Goals
from macro_tracker.domain.results import Err, Ok
from tests.conftest import make_entry


def _client(handler) -> HttpxRemoteClient:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxRemoteClient(
        base_url="http://api.test", http_client=httpx.AsyncClient(transport=transport)
    )


def test_fetch_user_data_defaults_absent_fields() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"dailyEntries": [{"id": 3, "calories": 10}]})

    client = _client(handler)
    client.set_auth_token("tok")

    result = asyncio.run(client.fetch_user_data())

    assert isinstance(result, Ok)
    assert result.value.custom_foods == []
    assert result.value.goals == DEFAULT_GOALS
    assert result.value.daily_entries[0].id == 3
    assert seen[0].headers["Authorization"] == "Bearer tok"
    assert seen[0].url.path == "/api/user/data"


def test_fetch_keeps_unreadable_numbers_as_nan() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"dailyEntries": [{"id": 1, "calories": None, "protein": 1}]}
        )

    result = asyncio.run(_client(handler).fetch_user_data())

    assert isinstance(result, Ok)
    entry = result.value.daily_entries[0]
    assert math.isnan(entry.calories)


def test_push_sends_only_provided_fields() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content.decode()))
        return httpx.Response(200, json={"message": "Data saved successfully"})

    client = _client(handler)
    result = asyncio.run(
        client.push_user_data(
            daily_entries=[make_entry(id=5)], goals=Goals(2000, 150, 200, 70)
        )
    )

    assert isinstance(result, Ok)
    assert set(bodies[0]) == {"dailyEntries", "goals"}
    assert bodies[0]["dailyEntries"][0]["mealTime"] == "12:30"
    assert bodies[0]["goals"] == {
        "calories": 2000,
        "protein": 150,
        "carbs": 200,
        "fat": 70,
    }


def test_status_codes_map_to_error_kinds() -> None:
    statuses = iter([401, 403, 400, 503])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={"error": "Goals must be an object"})

    client = _client(handler)
    results = [
        asyncio.run(client.push_user_data(goals=DEFAULT_GOALS)) for _ in range(4)
    ]

    assert all(isinstance(result, Err) for result in results)
    assert isinstance(results[0].error, AuthRejection)
    assert isinstance(results[1].error, AuthRejection)
    assert isinstance(results[2].error, RequestRejected)
    assert results[2].error.message == "Goals must be an object"
    assert isinstance(results[3].error, TransientSyncError)
    assert results[3].error.status_code == 503


def test_timeout_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    result = asyncio.run(_client(handler).fetch_user_data())

    assert isinstance(result, Err)
    assert isinstance(result.error, TransientSyncError)


def test_connection_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    result = asyncio.run(_client(handler).delete_entry(4))

    assert isinstance(result, Err)
    assert isinstance(result.error, TransientSyncError)


def test_delete_entry_path() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"message": "Entry deleted successfully"})

    result = asyncio.run(_client(handler).delete_entry(42))

    assert isinstance(result, Ok)
    assert seen == [("DELETE", "/api/user/daily-entry/42")]


def test_login_returns_session() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content.decode()) == {
            "username": "alice",
            "password": "secret123",
        }
        return httpx.Response(
            200,
            json={
                "message": "Login successful",
                "token": "tok",
                "user": {"id": "1", "username": "alice"},
            },
        )

    result = asyncio.run(_client(handler).login("alice", "secret123"))

    assert isinstance(result, Ok)
    assert result.value.token == "tok"
    assert result.value.user.username == "alice"


def test_auth_failures_are_distinguishable() -> None:
    statuses = iter([401, 409, 429, 400, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses), json={"error": "nope"})

    client = _client(handler)
    kinds = [
        asyncio.run(client.login("alice", "secret123")).error.kind for _ in range(5)
    ]

    assert kinds == [
        AuthFailureKind.INVALID_CREDENTIALS,
        AuthFailureKind.USERNAME_TAKEN,
        AuthFailureKind.RATE_LIMITED,
        AuthFailureKind.VALIDATION,
        AuthFailureKind.NETWORK,
    ]


def test_auth_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    result = asyncio.run(_client(handler).register("alice", "secret123"))

    assert isinstance(result, Err)
    assert result.error.kind is AuthFailureKind.NETWORK


def test_health_check() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "healthy", "timestamp": "now"})

    result = asyncio.run(_client(handler).health_check())

    assert isinstance(result, Ok)
    assert result.value["status"] == "healthy"


def test_push_with_non_finite_values_returns_error_without_sending() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    result = asyncio.run(
        _client(handler).push_user_data(daily_entries=[make_entry(calories=math.nan)])
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, TransientSyncError)
    assert seen == []
