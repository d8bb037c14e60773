"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from itertools import count

import jwt
import pytest

from macro_tracker.adapters.remote_client import AuthClient, RemoteSyncClient
from macro_tracker.config import ClientSettings, ServerSettings
from macro_tracker.containers import AppContainer
from macro_tracker.domain.errors import (
    AuthFailure,
    AuthFailureKind,
    SyncError,
)
from macro_tracker.domain.models import AccountRecord, AuthSession, UserRecord
from macro_tracker.domain.nutrition import (
    DEFAULT_GOALS,
    CalculatorData,
    DailyEntry,
    FoodItem,
    Goals,
    UserData,
)
from macro_tracker.domain.results import Err, Ok
from macro_tracker.services.accounts import AccountRepository, AccountService
from macro_tracker.services.cache import InMemoryCache
from macro_tracker.services.rate_limit import AuthRateLimiter
from macro_tracker.services.tokens import TokenService
from macro_tracker.services.user_data import UserDataRepository, UserDataService

TEST_SECRET = "test-secret"


def make_entry(**overrides: object) -> DailyEntry:
    """Build a valid daily entry, overriding any field."""
    values: dict[str, object] = {
        "id": 1,
        "food_id": 1,
        "name": "Chicken Breast",
        "portion_size": 100.0,
        "unit": "g",
        "calories": 165.0,
        "protein": 31.0,
        "carbs": 0.0,
        "fat": 3.6,
        "date": "2024-05-01",
        "meal_time": "12:30",
    }
    values.update(overrides)
    return DailyEntry(**values)  # type: ignore[arg-type]


def make_token(expires_at: datetime, user_id: str = "user-1") -> str:
    """Encode a signed token with the given expiry."""
    return jwt.encode(
        {"sub": user_id, "username": "alice", "exp": int(expires_at.timestamp())},
        TEST_SECRET,
        algorithm="HS256",
    )


@dataclass
class FakeRemoteClient(RemoteSyncClient):
    """Remote client that keeps the dataset in memory and assigns ids on push."""

    stored: UserData = field(default_factory=lambda: UserData([], []))
    token: str | None = None
    pushes: list[dict[str, object]] = field(default_factory=list)
    fetch_count: int = 0
    fetch_errors: list[SyncError] = field(default_factory=list)
    push_errors: list[SyncError] = field(default_factory=list)
    push_gate: asyncio.Event | None = None
    deleted: list[int] = field(default_factory=list)
    _ids: count = field(default_factory=lambda: count(1000))

    def set_auth_token(self, token: str | None) -> None:
        self.token = token

    async def fetch_user_data(self) -> Ok[UserData] | Err[SyncError]:
        self.fetch_count += 1
        await asyncio.sleep(0)
        if self.fetch_errors:
            return Err(self.fetch_errors.pop(0))
        return Ok(self.stored)

    async def push_user_data(
        self,
        custom_foods: list[FoodItem] | None = None,
        daily_entries: list[DailyEntry] | None = None,
        goals: Goals | None = None,
        calculator_data: CalculatorData | None = None,
    ) -> Ok[None] | Err[SyncError]:
        self.pushes.append(
            {
                "custom_foods": custom_foods,
                "daily_entries": daily_entries,
                "goals": goals,
                "calculator_data": calculator_data,
            }
        )
        if self.push_gate is not None:
            await self.push_gate.wait()
        else:
            await asyncio.sleep(0)
        if self.push_errors:
            return Err(self.push_errors.pop(0))
        self.stored = UserData(
            custom_foods=(
                [replace(food, id=next(self._ids)) for food in custom_foods]
                if custom_foods is not None
                else self.stored.custom_foods
            ),
            daily_entries=(
                [replace(entry, id=next(self._ids)) for entry in daily_entries]
                if daily_entries is not None
                else self.stored.daily_entries
            ),
            goals=goals if goals is not None else self.stored.goals,
            calculator_data=calculator_data or self.stored.calculator_data,
        )
        return Ok(None)

    async def delete_entry(self, entry_id: int) -> Ok[None] | Err[SyncError]:
        self.deleted.append(entry_id)
        return Ok(None)


@dataclass
class FakeAuthClient(AuthClient):
    """Auth client backed by a dict of passwords; issues real signed tokens."""

    passwords: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    failure: AuthFailure | None = None

    async def login(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        self.calls.append(("login", username))
        if self.failure is not None:
            return Err(self.failure)
        if self.passwords.get(username) != password:
            return Err(
                AuthFailure(AuthFailureKind.INVALID_CREDENTIALS, "Incorrect password.")
            )
        return Ok(self._session(username))

    async def register(
        self, username: str, password: str
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        self.calls.append(("register", username))
        if self.failure is not None:
            return Err(self.failure)
        if username in self.passwords:
            return Err(
                AuthFailure(AuthFailureKind.USERNAME_TAKEN, "Username already taken.")
            )
        self.passwords[username] = password
        return Ok(self._session(username))

    def _session(self, username: str) -> AuthSession:
        user = UserRecord(id=f"id-{username}", username=username)
        token = TokenService(secret=TEST_SECRET).issue(user)
        return AuthSession(token=token, user=user)


@dataclass
class InMemoryAccountRepository(AccountRepository):
    """In-memory account repository for tests."""

    accounts: dict[str, AccountRecord] = field(default_factory=dict)
    _ids: count = field(default_factory=lambda: count(1))

    def find_by_username(self, username: str) -> AccountRecord | None:
        return self.accounts.get(username.lower())

    def create_account(self, username: str, password_hash: str) -> AccountRecord:
        account = AccountRecord(
            id=str(next(self._ids)),
            username=username.lower(),
            password_hash=password_hash,
        )
        self.accounts[account.username] = account
        return account


@dataclass
class InMemoryUserDataRepository(UserDataRepository):
    """In-memory user data repository that assigns ids like the database."""

    foods: dict[str, list[FoodItem]] = field(default_factory=dict)
    entries: dict[str, list[DailyEntry]] = field(default_factory=dict)
    goals: dict[str, Goals] = field(default_factory=dict)
    calculator: dict[str, CalculatorData] = field(default_factory=dict)
    _ids: count = field(default_factory=lambda: count(1))

    def get_user_data(self, user_id: str) -> UserData:
        return UserData(
            custom_foods=list(self.foods.get(user_id, [])),
            daily_entries=list(self.entries.get(user_id, [])),
            goals=self.goals.get(user_id, DEFAULT_GOALS),
            calculator_data=self.calculator.get(user_id),
        )

    def replace_custom_foods(self, user_id: str, foods: list[FoodItem]) -> None:
        self.foods[user_id] = [replace(food, id=next(self._ids)) for food in foods]

    def replace_daily_entries(self, user_id: str, entries: list[DailyEntry]) -> None:
        self.entries[user_id] = [
            replace(entry, id=next(self._ids)) for entry in entries
        ]

    def upsert_goals(self, user_id: str, goals: Goals) -> None:
        self.goals[user_id] = goals

    def upsert_calculator_data(self, user_id: str, data: CalculatorData) -> None:
        self.calculator[user_id] = data

    def delete_daily_entry(self, user_id: str, entry_id: int) -> bool:
        entries = self.entries.get(user_id, [])
        remaining = [entry for entry in entries if entry.id != entry_id]
        self.entries[user_id] = remaining
        return len(remaining) != len(entries)


@pytest.fixture
def server_settings() -> ServerSettings:
    return ServerSettings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        jwt_secret=TEST_SECRET,
        password_hash_rounds=4,
    )


@pytest.fixture
def client_settings(tmp_path) -> ClientSettings:
    return ClientSettings(
        api_base_url="http://testserver",
        autosave_debounce_seconds=0.01,
        local_cache_path=str(tmp_path / "cache.json"),
    )


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret=TEST_SECRET)


@pytest.fixture
def account_repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def user_data_repository() -> InMemoryUserDataRepository:
    return InMemoryUserDataRepository()


@pytest.fixture
def account_service(
    account_repository: InMemoryAccountRepository, token_service: TokenService
) -> AccountService:
    return AccountService(
        repository=account_repository, tokens=token_service, hash_rounds=4
    )


@pytest.fixture
def container(
    server_settings: ServerSettings,
    account_service: AccountService,
    user_data_repository: InMemoryUserDataRepository,
    token_service: TokenService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=server_settings,
        account_service=account_service,
        user_data_service=UserDataService(user_data_repository),
        token_service=token_service,
        rate_limiter=AuthRateLimiter(InMemoryCache()),
        close_resources=close_resources,
    )


@pytest.fixture
def remote_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def auth_client() -> FakeAuthClient:
    return FakeAuthClient(passwords={"alice": "secret123"})


@pytest.fixture
def past() -> datetime:
    return datetime.now(tz=UTC) - timedelta(days=1)


@pytest.fixture
def future() -> datetime:
    return datetime.now(tz=UTC) + timedelta(days=1)
