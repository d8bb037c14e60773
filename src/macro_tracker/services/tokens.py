"""Signed bearer tokens.

The server issues and verifies HS256 tokens. The client only ever reads the
``exp`` claim without checking the signature, to skip a round trip when a
stored token has obviously expired.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import jwt

from macro_tracker.domain.models import UserRecord

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class TokenService:
    """Issues and verifies signed session tokens."""

    secret: str
    algorithm: str = "HS256"
    ttl_days: int = 7
    clock: Callable[[], datetime] = field(default=_utc_now)

    def issue(self, user: UserRecord) -> str:
        """Issue a token for the user."""
        now = self.clock()
        payload = {
            "sub": user.id,
            "username": user.username,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(days=self.ttl_days)).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> UserRecord | None:
        """Return the token's user if the signature and expiry check out."""
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except jwt.PyJWTError as exc:
            _logger.info("Rejected token: %s", exc)
            return None
        expires_at = claims.get("exp")
        if not isinstance(expires_at, int | float):
            return None
        if expires_at <= self.clock().timestamp():
            return None
        user_id = claims.get("sub")
        username = claims.get("username")
        if not user_id or not isinstance(username, str):
            return None
        return UserRecord(id=str(user_id), username=username)


def decode_expiry(token: str) -> datetime | None:
    """Read the expiry claim without verifying the signature.

    Raises ``jwt.DecodeError`` for tokens that are not JWTs.
    """
    claims = jwt.decode(token, options={"verify_signature": False})
    expires_at = claims.get("exp")
    if not isinstance(expires_at, int | float):
        return None
    return datetime.fromtimestamp(expires_at, tz=UTC)


def is_token_expired(token: str, now: datetime) -> bool:
    """Return True if the token is expired or cannot be decoded locally.

    A token without an ``exp`` claim is left to the server to judge.
    """
    try:
        expires_at = decode_expiry(token)
    except jwt.PyJWTError:
        _logger.warning("Stored token could not be decoded")
        return True
    if expires_at is None:
        return False
    return expires_at <= now
