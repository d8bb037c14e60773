"""Session state machine for the authenticated client."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from macro_tracker.adapters.remote_client import AuthClient, RemoteSyncClient
from macro_tracker.domain.errors import AuthFailure, AuthFailureKind, AuthRejection
from macro_tracker.domain.models import AuthSession, UserRecord
from macro_tracker.domain.results import Err, Ok
from macro_tracker.domain.sessions import TOKEN_KEY, USER_KEY, SessionState
from macro_tracker.services.local_cache import LocalCache
from macro_tracker.services.tokens import is_token_expired
from macro_tracker.services.validation import (
    format_validation_errors,
    validate_credentials,
)

_logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionState], Awaitable[None]]
_AuthAction = Callable[[str, str], Awaitable[Ok[AuthSession] | Err[AuthFailure]]]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionLifecycleManager:
    """Owns the auth token and moves between session states.

    Listeners are awaited in registration order on every transition; the
    reconciliation controller uses this to switch its persistence target.
    """

    storage: LocalCache
    remote_client: RemoteSyncClient
    auth_client: AuthClient
    check_interval_seconds: float = 60.0
    clock: Callable[[], datetime] = field(default=_utc_now)
    state: SessionState = field(default=SessionState.UNINITIALIZED, init=False)
    token: str | None = field(default=None, init=False, repr=False)
    user: UserRecord | None = field(default=None, init=False)
    _listeners: list[SessionListener] = field(default_factory=list, init=False)
    _expiry_task: "asyncio.Task[None] | None" = field(default=None, init=False)

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def add_listener(self, listener: SessionListener) -> None:
        """Register a coroutine called with each new state."""
        self._listeners.append(listener)

    async def initialize(self) -> SessionState:
        """Restore a persisted session, if it is still usable."""
        stored_token = self.storage.get(TOKEN_KEY)
        stored_user = _user_from_json(self.storage.get(USER_KEY))
        if not stored_token or stored_user is None:
            if stored_token or self.storage.get(USER_KEY):
                _logger.info("Incomplete stored session, clearing it")
                self._purge()
            await self._set_state(SessionState.UNAUTHENTICATED)
            return self.state

        if is_token_expired(stored_token, self.clock()):
            _logger.info("Token expired, logging out")
            self._purge()
            await self._set_state(SessionState.UNAUTHENTICATED)
            return self.state

        self.token = stored_token
        self.user = stored_user
        self.remote_client.set_auth_token(stored_token)
        self.state = SessionState.AUTHENTICATED

        verification = await self.remote_client.fetch_user_data()
        if isinstance(verification, Err):
            if isinstance(verification.error, AuthRejection):
                _logger.info("Token invalid on server, logging out")
                await self.logout()
                return self.state
            _logger.warning(
                "Could not confirm session with server, continuing offline: %s",
                verification.error.message,
            )

        self._start_expiry_checks()
        await self._notify(SessionState.AUTHENTICATED)
        return self.state

    async def login(
        self, username: str, password: str
    ) -> Ok[UserRecord] | Err[AuthFailure]:
        """Log in with credentials checked locally first."""
        return await self._sign_in(self.auth_client.login, username, password)

    async def register(
        self, username: str, password: str
    ) -> Ok[UserRecord] | Err[AuthFailure]:
        """Register a new account and log into it."""
        return await self._sign_in(self.auth_client.register, username, password)

    async def logout(self) -> None:
        """Forget the session and switch to the unauthenticated state."""
        self._stop_expiry_checks()
        self.token = None
        self.user = None
        self._purge()
        self.remote_client.set_auth_token(None)
        await self._set_state(SessionState.UNAUTHENTICATED)

    async def handle_auth_rejection(self) -> None:
        """Force a logout after the server rejected the session."""
        if self.is_authenticated:
            _logger.info("Session rejected by server, logging out")
            await self.logout()

    async def check_expiry(self) -> bool:
        """Log out if the current token has expired; return True if it did."""
        if self.token is None:
            return False
        if not is_token_expired(self.token, self.clock()):
            return False
        _logger.info("Token expired during session, logging out")
        await self.logout()
        return True

    async def close(self) -> None:
        """Stop background expiry checks."""
        self._stop_expiry_checks()

    async def _sign_in(
        self, action: _AuthAction, username: str, password: str
    ) -> Ok[UserRecord] | Err[AuthFailure]:
        validation = validate_credentials(username, password)
        if not validation.is_valid:
            return Err(
                AuthFailure(
                    AuthFailureKind.VALIDATION,
                    format_validation_errors(validation.errors),
                )
            )

        result = await action(username.strip(), password)
        if isinstance(result, Err):
            return result

        session = result.value
        self.token = session.token
        self.user = session.user
        self.storage.set(TOKEN_KEY, session.token)
        self.storage.set(
            USER_KEY,
            json.dumps({"id": session.user.id, "username": session.user.username}),
        )
        self.remote_client.set_auth_token(session.token)
        self.state = SessionState.AUTHENTICATED
        self._start_expiry_checks()
        await self._notify(SessionState.AUTHENTICATED)
        return Ok(session.user)

    async def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        self.state = state
        await self._notify(state)

    async def _notify(self, state: SessionState) -> None:
        for listener in list(self._listeners):
            await listener(state)

    def _purge(self) -> None:
        self.storage.remove(TOKEN_KEY)
        self.storage.remove(USER_KEY)

    def _start_expiry_checks(self) -> None:
        self._stop_expiry_checks()
        self._expiry_task = asyncio.get_running_loop().create_task(
            self._watch_expiry()
        )

    def _stop_expiry_checks(self) -> None:
        task = self._expiry_task
        self._expiry_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _watch_expiry(self) -> None:
        while self.token is not None:
            await asyncio.sleep(self.check_interval_seconds)
            if await self.check_expiry():
                return


def _user_from_json(raw: str | None) -> UserRecord | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or "id" not in data or "username" not in data:
        return None
    return UserRecord(id=str(data["id"]), username=str(data["username"]))
