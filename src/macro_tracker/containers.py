"""Dependency container wiring for the remote store and the tracker client."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from macro_tracker.adapters.json_file_cache import JsonFileLocalCache
from macro_tracker.adapters.remote_client import HttpxRemoteClient
from macro_tracker.adapters.supabase_account_repository import (
    SupabaseAccountRepository,
)
from macro_tracker.adapters.supabase_user_data_repository import (
    SupabaseUserDataRepository,
)
from macro_tracker.config import ClientSettings, ServerSettings
from macro_tracker.services.accounts import AccountService
from macro_tracker.services.cache import InMemoryCache
from macro_tracker.services.local_cache import LocalCache
from macro_tracker.services.rate_limit import AuthRateLimiter
from macro_tracker.services.reconciliation import ReconciliationController
from macro_tracker.services.sessions import SessionLifecycleManager
from macro_tracker.services.tokens import TokenService
from macro_tracker.services.user_data import UserDataService


@dataclass
class AppContainer:
    """Holds dependencies of the remote store API."""

    settings: ServerSettings
    account_service: AccountService
    user_data_service: UserDataService
    token_service: TokenService
    rate_limiter: AuthRateLimiter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: ServerSettings | None = None) -> AppContainer:
    """Create the default API container backed by Supabase."""
    resolved_settings = settings or ServerSettings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    token_service = TokenService(
        secret=resolved_settings.jwt_secret,
        ttl_days=resolved_settings.token_ttl_days,
    )
    account_service = AccountService(
        repository=SupabaseAccountRepository(supabase_client),
        tokens=token_service,
        hash_rounds=resolved_settings.password_hash_rounds,
    )
    user_data_service = UserDataService(SupabaseUserDataRepository(supabase_client))
    rate_limiter = AuthRateLimiter(
        cache=InMemoryCache(),
        max_attempts=resolved_settings.auth_rate_limit_attempts,
        window_seconds=resolved_settings.auth_rate_limit_window_seconds,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        account_service=account_service,
        user_data_service=user_data_service,
        token_service=token_service,
        rate_limiter=rate_limiter,
        close_resources=close_resources,
    )


@dataclass
class ClientContainer:
    """Holds the tracker client's long-lived objects."""

    settings: ClientSettings
    local_cache: LocalCache
    remote_client: HttpxRemoteClient
    controller: ReconciliationController
    session_manager: SessionLifecycleManager
    close_resources: Callable[[], Awaitable[None]]


def build_client_container(
    settings: ClientSettings | None = None,
    local_cache: LocalCache | None = None,
    remote_client: HttpxRemoteClient | None = None,
) -> ClientContainer:
    """Create the tracker client and connect session changes to the controller.

    Call ``session_manager.initialize()`` from a running event loop to start.
    """
    resolved_settings = settings or ClientSettings()
    cache = local_cache or JsonFileLocalCache.create(resolved_settings.local_cache_path)
    client = remote_client or HttpxRemoteClient.create(
        resolved_settings.api_base_url,
        timeout_seconds=resolved_settings.request_timeout_seconds,
    )
    session_manager = SessionLifecycleManager(
        storage=cache,
        remote_client=client,
        auth_client=client,
        check_interval_seconds=resolved_settings.token_check_interval_seconds,
    )
    controller = ReconciliationController(
        remote_client=client,
        local_cache=cache,
        autosave_delay_seconds=resolved_settings.autosave_debounce_seconds,
        on_auth_rejected=session_manager.handle_auth_rejection,
    )
    session_manager.add_listener(controller.handle_session_change)

    async def close_resources() -> None:
        await controller.close()
        await session_manager.close()
        await client.close()

    return ClientContainer(
        settings=resolved_settings,
        local_cache=cache,
        remote_client=client,
        controller=controller,
        session_manager=session_manager,
        close_resources=close_resources,
    )
