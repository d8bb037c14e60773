"""HTTP client for the remote user-data store."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from macro_tracker.domain.errors import (
    NETWORK_ERROR_MESSAGE,
    AuthFailure,
    AuthFailureKind,
    AuthRejection,
    RequestRejected,
    SyncError,
    TransientSyncError,
)
from macro_tracker.domain.models import AuthSession, UserRecord
from macro_tracker.domain.nutrition import (
    CalculatorData,
    DailyEntry,
    FoodItem,
    Goals,
    UserData,
)
from macro_tracker.domain.payloads import (
    calculator_to_payload,
    entry_to_payload,
    food_to_payload,
    goals_to_payload,
    user_data_from_payload,
)
from macro_tracker.domain.results import Err, Ok

_logger = logging.getLogger(__name__)

_AUTH_FAILURE_KINDS = {
    400: AuthFailureKind.VALIDATION,
    401: AuthFailureKind.INVALID_CREDENTIALS,
    409: AuthFailureKind.USERNAME_TAKEN,
    429: AuthFailureKind.RATE_LIMITED,
}

ENCODING_ERROR_MESSAGE = "Some of your data could not be sent. Please try again."


class RemoteSyncClient(Protocol):
    """Authenticated reads and writes of a user's full dataset."""

    def set_auth_token(self, token: str | None) -> None:
        """Attach or clear the bearer credential."""

    async def fetch_user_data(self) -> Ok[UserData] | Err[SyncError]:
        """Fetch the full dataset."""

    async def push_user_data(
        self,
        custom_foods: list[FoodItem] | None = None,
        daily_entries: list[DailyEntry] | None = None,
        goals: Goals | None = None,
        calculator_data: CalculatorData | None = None,
    ) -> Ok[None] | Err[SyncError]:
        """Replace the provided collections on the remote store."""

    async def delete_entry(self, entry_id: int) -> Ok[None] | Err[SyncError]:
        """Delete a single daily entry."""


class AuthClient(Protocol):
    """Credential exchange with the remote store."""

    async def login(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Exchange credentials for a session."""

    async def register(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Create an account and return its session."""


@dataclass
class HttpxRemoteClient(RemoteSyncClient, AuthClient):
    """httpx-backed remote client. Never retries; failures are returned."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 10.0
    _token: str | None = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls, base_url: str, timeout_seconds: float = 10.0
    ) -> "HttpxRemoteClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    def set_auth_token(self, token: str | None) -> None:
        """Attach or clear the bearer credential used on later requests."""
        self._token = token

    async def fetch_user_data(self) -> Ok[UserData] | Err[SyncError]:
        """Fetch the full dataset; absent fields take their defaults."""
        result = await self._request("GET", "/api/user/data")
        if isinstance(result, Err):
            return result
        payload = result.value
        if not isinstance(payload, dict):
            return Err(TransientSyncError("Unexpected response from server."))
        return Ok(user_data_from_payload(payload))

    async def push_user_data(
        self,
        custom_foods: list[FoodItem] | None = None,
        daily_entries: list[DailyEntry] | None = None,
        goals: Goals | None = None,
        calculator_data: CalculatorData | None = None,
    ) -> Ok[None] | Err[SyncError]:
        """Send only the provided collections; each replaces the stored one."""
        payload: dict[str, object] = {}
        if custom_foods is not None:
            payload["customFoods"] = [food_to_payload(food) for food in custom_foods]
        if daily_entries is not None:
            payload["dailyEntries"] = [
                entry_to_payload(entry) for entry in daily_entries
            ]
        if goals is not None:
            payload["goals"] = goals_to_payload(goals)
        if calculator_data is not None:
            payload["calculatorData"] = calculator_to_payload(calculator_data)
        result = await self._request("POST", "/api/user/data", json=payload)
        if isinstance(result, Err):
            return result
        return Ok(None)

    async def delete_entry(self, entry_id: int) -> Ok[None] | Err[SyncError]:
        """Delete one daily entry by id."""
        result = await self._request("DELETE", f"/api/user/daily-entry/{entry_id}")
        if isinstance(result, Err):
            return result
        return Ok(None)

    async def health_check(self) -> Ok[dict[str, object]] | Err[SyncError]:
        """Return the server's health payload."""
        result = await self._request("GET", "/api/health")
        if isinstance(result, Err):
            return result
        payload = result.value
        return Ok(payload if isinstance(payload, dict) else {})

    async def login(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Exchange credentials for a session."""
        return await self._authenticate("/api/auth/login", username, password)

    async def register(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Create an account and return its session."""
        return await self._authenticate("/api/auth/register", username, password)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _authenticate(
        self, path: str, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}",
                json={"username": username, "password": password},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            _logger.warning("Auth POST %s failed: %s", path, exc)
            return Err(AuthFailure(AuthFailureKind.NETWORK, NETWORK_ERROR_MESSAGE))

        body = _json_or_none(response)
        if response.is_success and isinstance(body, dict):
            session = _session_from_payload(body)
            if session is not None:
                return Ok(session)
            return Err(
                AuthFailure(AuthFailureKind.NETWORK, "Unexpected response from server.")
            )
        kind = _AUTH_FAILURE_KINDS.get(response.status_code, AuthFailureKind.NETWORK)
        message = _error_message(body) or NETWORK_ERROR_MESSAGE
        _logger.info(
            "Auth POST %s rejected (%s): %s", path, response.status_code, message
        )
        return Err(AuthFailure(kind, message))

    async def _request(
        self, method: str, path: str, json: dict[str, object] | None = None
    ) -> Ok[object] | Err[SyncError]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            request = self.http_client.build_request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except (TypeError, ValueError) as exc:
            _logger.error("API %s %s payload not encodable: %s", method, path, exc)
            return Err(TransientSyncError(ENCODING_ERROR_MESSAGE))
        try:
            response = await self.http_client.send(request)
        except httpx.TimeoutException as exc:
            _logger.warning("API %s %s timed out: %s", method, path, exc)
            return Err(TransientSyncError("The server took too long to respond."))
        except httpx.HTTPError as exc:
            _logger.warning("API %s %s failed: %s", method, path, exc)
            return Err(TransientSyncError(NETWORK_ERROR_MESSAGE))

        body = _json_or_none(response)
        status_code = response.status_code
        if response.is_success:
            return Ok(body)
        message = _error_message(body) or NETWORK_ERROR_MESSAGE
        _logger.warning(
            "API %s %s error (status=%s): %s", method, path, status_code, message
        )
        if status_code in {401, 403}:
            return Err(AuthRejection(message, status_code))
        if 400 <= status_code < 500:
            return Err(RequestRejected(message, status_code))
        return Err(TransientSyncError(message, status_code))


def _json_or_none(response: httpx.Response) -> object | None:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body: object) -> str | None:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
    return None


def _session_from_payload(body: dict[str, object]) -> AuthSession | None:
    token = body.get("token")
    user = body.get("user")
    if not isinstance(token, str) or not isinstance(user, dict):
        return None
    return AuthSession(
        token=token,
        user=UserRecord(
            id=str(user.get("id", "")), username=str(user.get("username", ""))
        ),
    )
