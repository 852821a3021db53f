"""
Authentication abstraction for a GoTrue-compatible auth service and an
in-memory test implementation.

The auth service owns credentials and sessions. This module only forwards
sign-up, sign-in, session lookup and password flows to it.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when the auth service rejects a request."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: str
    metadata: dict = field(default_factory=dict)


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser
    token_type: str = "bearer"
    expires_in: int = 3600
    refresh_token: Optional[str] = None


class AuthClient(Protocol):
    """Operations the API needs from the auth service."""

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def get_user(self, access_token: str) -> AuthUser:
        ...

    def request_password_reset(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        ...

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        ...


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class InMemoryAuthClient:
    """Test double for the auth service."""

    min_password_length = 6

    def __init__(self):
        self.users: Dict[str, AuthUser] = {}
        self.passwords: Dict[str, str] = {}
        self.sessions: Dict[str, str] = {}
        self.reset_requests: list[tuple[str, Optional[str]]] = []
        self._lock = threading.Lock()

    def _find_by_email(self, email: str) -> Optional[AuthUser]:
        normalized = email.strip().lower()
        for user in self.users.values():
            if user.email == normalized:
                return user
        return None

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        if not email or "@" not in email:
            raise AuthError("Unable to validate email address: invalid format", 422)
        if len(password or "") < self.min_password_length:
            raise AuthError(
                f"Password should be at least {self.min_password_length} characters",
                422,
            )
        with self._lock:
            if self._find_by_email(email):
                raise AuthError("User already registered", 422)
            user = AuthUser(
                id=uuid.uuid4().hex,
                email=email.strip().lower(),
                metadata=dict(metadata or {}),
            )
            self.users[user.id] = user
            self.passwords[user.id] = _hash_password(password)
        return user

    def sign_in(self, email: str, password: str) -> AuthSession:
        user = self._find_by_email(email or "")
        if not user or self.passwords.get(user.id) != _hash_password(password or ""):
            raise AuthError("Invalid login credentials", 400)
        token = uuid.uuid4().hex
        self.sessions[token] = user.id
        return AuthSession(access_token=token, user=user)

    def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)

    def get_user(self, access_token: str) -> AuthUser:
        user_id = self.sessions.get(access_token)
        if not user_id or user_id not in self.users:
            raise AuthError("Invalid or expired session", 401)
        return self.users[user_id]

    def request_password_reset(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        # Unknown emails are accepted silently so callers cannot probe accounts.
        self.reset_requests.append((email.strip().lower(), redirect_to))

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        user = self.get_user(access_token)
        if len(new_password or "") < self.min_password_length:
            raise AuthError(
                f"Password should be at least {self.min_password_length} characters",
                422,
            )
        self.passwords[user.id] = _hash_password(new_password)
        return user

    def reset(self) -> None:
        """Clear all users and sessions (useful in tests)."""
        self.users.clear()
        self.passwords.clear()
        self.sessions.clear()
        self.reset_requests.clear()


@dataclass
class GoTrueAuthClient:
    """
    HTTP client for a GoTrue-compatible auth service (e.g. Supabase Auth).
    """

    base_url: str
    api_key: str
    timeout: float = 10.0

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {"apikey": self.api_key, "Content-Type": "application/json"}
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/auth/v1/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = self._session.request(
                method,
                self._url(path),
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.exception("Auth service request %s %s failed", method, path)
            raise AuthError("Auth service unavailable", 503) from exc

        if response.status_code >= 400:
            raise AuthError(_error_message(response), response.status_code)
        if not response.content:
            return {}
        return response.json()

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        body = self._request(
            "POST",
            "signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        # With email confirmation disabled the service returns a session.
        return _parse_user(body.get("user") or body)

    def sign_in(self, email: str, password: str) -> AuthSession:
        body = self._request(
            "POST",
            "token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return AuthSession(
            access_token=body["access_token"],
            user=_parse_user(body["user"]),
            token_type=body.get("token_type", "bearer"),
            expires_in=int(body.get("expires_in", 3600)),
            refresh_token=body.get("refresh_token"),
        )

    def sign_out(self, access_token: str) -> None:
        self._request("POST", "logout", access_token=access_token)

    def get_user(self, access_token: str) -> AuthUser:
        body = self._request("GET", "user", access_token=access_token)
        return _parse_user(body)

    def request_password_reset(
        self, email: str, redirect_to: Optional[str] = None
    ) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._request("POST", "recover", json={"email": email}, params=params)

    def update_password(self, access_token: str, new_password: str) -> AuthUser:
        body = self._request(
            "PUT",
            "user",
            access_token=access_token,
            json={"password": new_password},
        )
        return _parse_user(body)


def _parse_user(body: dict) -> AuthUser:
    if not body or "id" not in body:
        raise AuthError("Auth service returned no user", 502)
    return AuthUser(
        id=body["id"],
        email=body.get("email") or "",
        metadata=body.get("user_metadata") or {},
    )


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"Auth service error ({response.status_code})"
    if not isinstance(payload, dict):
        return f"Auth service error ({response.status_code})"
    for key in ("msg", "error_description", "message", "error"):
        if payload.get(key):
            return str(payload[key])
    return f"Auth service error ({response.status_code})"


def session_expires_at(session: AuthSession) -> float:
    return time.time() + session.expires_in
