"""
Auth abstraction for the hosted GoTrue endpoint and an in-memory test implementation.

Only identity lives here. Roles are always read from the `users` table.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


class AuthError(Exception):
    """Raised when the auth backend rejects credentials or is unreachable."""


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None

    def as_dict(self) -> dict:
        return {"id": self.id, "email": self.email}


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser


class AuthClient(Protocol):
    """Defines the operations the service needs from the auth backend."""

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...


def _hash_password(password: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()


@dataclass
class InMemoryAuthClient:
    """Test double for the auth backend."""

    accounts: Dict[str, dict] = field(default_factory=dict)
    sessions: Dict[str, AuthUser] = field(default_factory=dict)

    def register(self, user_id: str, email: str, password: str) -> AuthUser:
        salt = secrets.token_hex(8)
        self.accounts[email.lower()] = {
            "user": AuthUser(id=user_id, email=email),
            "salt": salt,
            "password_hash": _hash_password(password, salt),
        }
        return AuthUser(id=user_id, email=email)

    def issue_token(self, user: AuthUser) -> str:
        """Create a session directly, skipping the password check."""
        token = secrets.token_urlsafe(24)
        self.sessions[token] = user
        return token

    def reset(self) -> None:
        self.accounts.clear()
        self.sessions.clear()

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        if not access_token:
            return None
        return self.sessions.get(access_token)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get((email or "").lower())
        if not account or account["password_hash"] != _hash_password(
            password, account["salt"]
        ):
            raise AuthError("Invalid login credentials")
        user = account["user"]
        return AuthSession(access_token=self.issue_token(user), user=user)

    def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)


@dataclass
class GoTrueAuthClient:
    """
    HTTP client for a GoTrue-compatible auth service (Supabase Auth).
    """

    base_url: str
    anon_key: str

    def _headers(self, access_token: Optional[str] = None) -> dict:
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.anon_key}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/auth/v1/{path}"

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        if not access_token:
            return None
        try:
            response = requests.get(
                self._url("user"),
                headers=self._headers(access_token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth service unreachable: {e}") from e
        if response.status_code in (401, 403):
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise AuthError(f"Auth service error: {e}") from e
        payload = response.json()
        return AuthUser(id=payload["id"], email=payload.get("email"))

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = requests.post(
                self._url("token"),
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth service unreachable: {e}") from e
        if response.status_code >= 400:
            try:
                message = response.json().get("error_description") or response.text
            except ValueError:
                message = response.text
            raise AuthError(message or "Invalid login credentials")
        payload = response.json()
        user = payload.get("user") or {}
        return AuthSession(
            access_token=payload["access_token"],
            user=AuthUser(id=user["id"], email=user.get("email")),
        )

    def sign_out(self, access_token: str) -> None:
        try:
            response = requests.post(
                self._url("logout"),
                headers=self._headers(access_token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise AuthError(f"Auth service unreachable: {e}") from e
        if response.status_code >= 400 and response.status_code not in (401, 403):
            logger.warning("Sign-out returned %s", response.status_code)
