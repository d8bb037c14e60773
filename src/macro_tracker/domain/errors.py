"""Error values returned by the client-side layers."""

from dataclasses import dataclass
from enum import StrEnum

NETWORK_ERROR_MESSAGE = (
    "Unable to connect to server. Please check your internet connection."
)


@dataclass(frozen=True)
class ValidationError:
    """Input rejected before any state change or I/O."""

    errors: tuple[str, ...]

    @property
    def message(self) -> str:
        return ". ".join(self.errors)


@dataclass(frozen=True)
class TransientSyncError:
    """Network failure, timeout or server error during a sync call."""

    message: str
    status_code: int | None = None


@dataclass(frozen=True)
class RequestRejected:
    """The remote store refused a malformed request (4xx)."""

    message: str
    status_code: int


@dataclass(frozen=True)
class AuthRejection:
    """The session itself is no longer accepted by the remote store."""

    message: str
    status_code: int


@dataclass(frozen=True)
class EntryNotFound:
    """A removal targeted an entry that is not in local state."""

    entry_id: int

    @property
    def message(self) -> str:
        return "Entry not found. Please refresh and try again."


SyncError = TransientSyncError | RequestRejected | AuthRejection
MutationError = ValidationError | EntryNotFound | SyncError


class AuthFailureKind(StrEnum):
    """Distinguishable reasons a login or registration failed."""

    INVALID_CREDENTIALS = "invalid_credentials"
    USERNAME_TAKEN = "username_taken"
    RATE_LIMITED = "rate_limited"
    VALIDATION = "validation"
    NETWORK = "network"


@dataclass(frozen=True)
class AuthFailure:
    """Login or registration failure with a user-facing message."""

    kind: AuthFailureKind
    message: str
