"""Pydantic models for API request bodies."""

from pydantic import BaseModel


class CredentialsBody(BaseModel):
    """Login or registration payload."""

    username: str | None = None
    password: str | None = None
