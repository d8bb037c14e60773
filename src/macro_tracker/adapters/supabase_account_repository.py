"""Supabase-backed account repository."""

from dataclasses import dataclass

from supabase import Client

from macro_tracker.domain.models import AccountRecord
from macro_tracker.services.accounts import AccountRepository


@dataclass
class SupabaseAccountRepository(AccountRepository):
    """Supabase implementation for account persistence."""

    client: Client

    def find_by_username(self, username: str) -> AccountRecord | None:
        """Return the account for a username; usernames are stored lower-case."""
        response = (
            self.client.table("users")
            .select("id, username, password_hash")
            .eq("username", username.lower())
            .limit(1)
            .execute()
        )
        if response.data:
            return _parse_account(response.data[0])
        return None

    def create_account(self, username: str, password_hash: str) -> AccountRecord:
        """Create a new account row and return it."""
        response = (
            self.client.table("users")
            .insert({"username": username.lower(), "password_hash": password_hash})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create user in Supabase")
        return _parse_account(response.data[0])


def _parse_account(row: dict[str, object]) -> AccountRecord:
    return AccountRecord(
        id=str(row["id"]),
        username=str(row["username"]),
        password_hash=str(row["password_hash"]),
    )
