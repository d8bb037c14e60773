"""Domain models for authentication sessions."""

from enum import StrEnum


class SessionState(StrEnum):
    """Lifecycle states of the client session."""

    UNINITIALIZED = "uninitialized"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


TOKEN_KEY = "authToken"
USER_KEY = "authUser"
