"""Account registration and login for the remote store."""

import logging
from dataclasses import dataclass
from typing import Protocol

import bcrypt

from macro_tracker.domain.errors import AuthFailure, AuthFailureKind
from macro_tracker.domain.models import AccountRecord, AuthSession
from macro_tracker.domain.results import Err, Ok
from macro_tracker.services.tokens import TokenService
from macro_tracker.services.validation import validate_credentials

_logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = (
    "Incorrect password. Please check your password and try again."
)
USERNAME_TAKEN_MESSAGE = (
    "This username is already taken. Please choose a different one."
)
RATE_LIMITED_MESSAGE = (
    "Too many login attempts. For security reasons, please wait 5 minutes "
    "before trying again."
)
REQUIRED_FIELDS_MESSAGE = "Username and password are required"

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


class AccountRepository(Protocol):
    """Persistence interface for accounts."""

    def find_by_username(self, username: str) -> AccountRecord | None:
        """Return the account for a username, ignoring case."""

    def create_account(self, username: str, password_hash: str) -> AccountRecord:
        """Create and return a new account."""


@dataclass
class AccountService:
    """Registers accounts and exchanges credentials for tokens."""

    repository: AccountRepository
    tokens: TokenService
    hash_rounds: int = 12

    def register(
        self, username: str | None, password: str | None
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Create an account and issue a token for it."""
        if not username or not password:
            return Err(AuthFailure(AuthFailureKind.VALIDATION, REQUIRED_FIELDS_MESSAGE))
        validation = validate_credentials(username, password)
        if not validation.is_valid:
            return Err(AuthFailure(AuthFailureKind.VALIDATION, validation.errors[0]))

        normalized = username.strip().lower()
        if self.repository.find_by_username(normalized) is not None:
            return Err(
                AuthFailure(AuthFailureKind.USERNAME_TAKEN, USERNAME_TAKEN_MESSAGE)
            )

        password_hash = bcrypt.hashpw(
            _password_bytes(password), bcrypt.gensalt(rounds=self.hash_rounds)
        ).decode()
        account = self.repository.create_account(normalized, password_hash)
        _logger.info("Registered account %s", account.id)
        user = account.to_user()
        return Ok(AuthSession(token=self.tokens.issue(user), user=user))

    def login(
        self, username: str | None, password: str | None
    ) -> Ok[AuthSession] | Err[AuthFailure]:
        """Check credentials and issue a token."""
        if not username or not password:
            return Err(AuthFailure(AuthFailureKind.VALIDATION, REQUIRED_FIELDS_MESSAGE))

        account = self.repository.find_by_username(username.strip().lower())
        if account is None or not bcrypt.checkpw(
            _password_bytes(password), account.password_hash.encode()
        ):
            return Err(
                AuthFailure(
                    AuthFailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE
                )
            )
        user = account.to_user()
        return Ok(AuthSession(token=self.tokens.issue(user), user=user))


def _password_bytes(password: str) -> bytes:
    return password.encode()[:_BCRYPT_MAX_BYTES]
