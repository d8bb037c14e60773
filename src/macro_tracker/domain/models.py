"""Domain models for user accounts."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserRecord:
    """Public identity of an account."""

    id: str
    username: str


@dataclass(frozen=True)
class AccountRecord:
    """Represents an account stored in the database."""

    id: str
    username: str
    password_hash: str

    def to_user(self) -> UserRecord:
        """Return the public part of the account."""
        return UserRecord(id=self.id, username=self.username)


@dataclass(frozen=True)
class AuthSession:
    """A signed token together with the user it was issued for."""

    token: str
    user: UserRecord
