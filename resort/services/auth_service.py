"""Staff console authentication: admin token in, short-lived bearer sessions out."""

from __future__ import annotations

import secrets
import time
from typing import Callable, Optional

from resort.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base staff-console authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when a login token or bearer session is not accepted."""


class AuthService:
    """Issues bearer sessions to staff who present the admin token."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._sessions: dict[str, float] = {}

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def login(self, provided_admin_token: str) -> str:
        expected = self._settings.admin_token
        if not expected:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured; staff login is disabled."
            )
        if not secrets.compare_digest(provided_admin_token.encode(), expected.encode()):
            raise InvalidAdminTokenError("Invalid admin token")
        self._drop_expired()
        session_token = secrets.token_urlsafe(32)
        self._sessions[session_token] = self._clock() + self._settings.session_ttl_seconds
        return session_token

    def logout(self, bearer_token: str) -> None:
        self._sessions.pop(bearer_token, None)

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        self._drop_expired()
        for session_token in self._sessions:
            if secrets.compare_digest(bearer_token.encode(), session_token.encode()):
                return
        raise InvalidAdminTokenError("Invalid or expired bearer token. Login first.")

    def _drop_expired(self) -> None:
        now = self._clock()
        for session_token, expires_at in list(self._sessions.items()):
            if expires_at <= now:
                del self._sessions[session_token]
