"""Authentication endpoints and the bearer-token dependency."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Header, HTTPException, Request, status

from macro_tracker.api.models import CredentialsBody  # noqa: TC001
from macro_tracker.domain.errors import AuthFailure, AuthFailureKind
from macro_tracker.domain.models import AuthSession, UserRecord
from macro_tracker.domain.results import Err
from macro_tracker.services.accounts import RATE_LIMITED_MESSAGE

if TYPE_CHECKING:
    from macro_tracker.containers import AppContainer

router = APIRouter(prefix="/api/auth", tags=["auth"])
_logger = logging.getLogger(__name__)

_FAILURE_STATUS = {
    AuthFailureKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    AuthFailureKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthFailureKind.USERNAME_TAKEN: status.HTTP_409_CONFLICT,
    AuthFailureKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
}


def require_user(
    request: Request, authorization: str | None = Header(default=None)
) -> UserRecord:
    """Resolve the bearer token to a user or reject the request."""
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required"
        )
    container: AppContainer = request.app.state.container
    user = container.token_service.verify(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        )
    return user


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: CredentialsBody, request: Request) -> dict[str, object]:
    """Create an account and return a session token."""
    container: AppContainer = request.app.state.container
    client_key = _client_key(request)
    if container.rate_limiter.is_limited(client_key):
        raise _failure(AuthFailure(AuthFailureKind.RATE_LIMITED, RATE_LIMITED_MESSAGE))
    result = container.account_service.register(body.username, body.password)
    if isinstance(result, Err):
        container.rate_limiter.record_failure(client_key)
        raise _failure(result.error)
    container.rate_limiter.reset(client_key)
    return _session_body(result.value, "User created successfully")


@router.post("/login")
def login(body: CredentialsBody, request: Request) -> dict[str, object]:
    """Exchange credentials for a session token."""
    container: AppContainer = request.app.state.container
    client_key = _client_key(request)
    if container.rate_limiter.is_limited(client_key):
        raise _failure(AuthFailure(AuthFailureKind.RATE_LIMITED, RATE_LIMITED_MESSAGE))
    result = container.account_service.login(body.username, body.password)
    if isinstance(result, Err):
        container.rate_limiter.record_failure(client_key)
        _logger.info("Failed login from %s", client_key)
        raise _failure(result.error)
    container.rate_limiter.reset(client_key)
    return _session_body(result.value, "Login successful")


def _failure(failure: AuthFailure) -> HTTPException:
    status_code = _FAILURE_STATUS.get(
        failure.kind, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return HTTPException(status_code=status_code, detail=failure.message)


def _session_body(session: AuthSession, message: str) -> dict[str, object]:
    return {
        "message": message,
        "token": session.token,
        "user": {"id": session.user.id, "username": session.user.username},
    }


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"
