"""GoTrue (Supabase Auth) over HTTP.

GoTrueAuthProvider is the auth source the SessionSynchronizer is wired to:
it owns the persisted session, re-validates users server-side, and publishes
an AuthEvent for every session change it makes. GoTrueAdmin wraps the
service-role admin endpoints used by account provisioning.

Both share the same request path: apikey header, optional bearer token,
and retry with exponential backoff on transient transport errors. HTTP error
statuses are not retried; they are mapped onto the auth error taxonomy.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
import jwt as pyjwt
from schoolhub_shared.auth_models import AuthUser, Session
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from schoolhub_auth.errors import AuthRequestError, SessionInvalidError
from schoolhub_auth.events import AuthEventChannel, SessionRefreshed, SignedOut, Subscription
from schoolhub_auth.jwt import read_claims
from schoolhub_auth.storage import SessionStore, get_store

# GoTrue answers these for a revoked token or a user deleted upstream.
_INVALID_SESSION_STATUSES = {401, 403, 404}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


class _GoTrueHTTP:
    """HTTP client lifecycle and retrying request helper."""

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not supabase_url:
            raise ValueError("A Supabase project URL is required")
        if not api_key:
            raise ValueError("A Supabase API key is required")
        self.auth_url = supabase_url.rstrip("/") + "/auth/v1"
        self._api_key = api_key
        self._client = client
        self.request_count = 0

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.auth_url,
                headers={"apikey": self._api_key},
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"apikey": self._api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.request_count += 1
        return await self._get_client().request(method, path, headers=headers, **kwargs)


class GoTrueAuthProvider(_GoTrueHTTP):
    """Session source backed by GoTrue and a persisted SessionStore."""

    def __init__(
        self,
        supabase_url: str,
        anon_key: str,
        store: SessionStore | None = None,
        channel: AuthEventChannel | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(supabase_url, anon_key, client)
        self.store = store or get_store()
        self.channel = channel or AuthEventChannel()

    @classmethod
    def from_env(cls, **kwargs: Any) -> GoTrueAuthProvider:
        """Build from SUPABASE_URL and SUPABASE_ANON_KEY."""
        url = os.environ.get("SUPABASE_URL", "")
        key = os.environ.get("SUPABASE_ANON_KEY", "")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must both be set")
        return cls(url, key, **kwargs)

    def subscribe(self) -> Subscription:
        return self.channel.subscribe()

    async def _adopt(self, payload: dict[str, Any]) -> Session:
        session = Session.from_gotrue(payload)
        await self.store.save(session)
        self.channel.publish(SessionRefreshed(session=session))
        return session

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code != 200:
            raise AuthRequestError(response.status_code, _error_message(response))
        return await self._adopt(response.json())

    async def refresh_session(self, session: Session) -> Session:
        if not session.refresh_token:
            raise SessionInvalidError("Session has no refresh token")
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        if response.status_code in (400, *_INVALID_SESSION_STATUSES):
            raise SessionInvalidError(_error_message(response))
        if response.status_code != 200:
            raise AuthRequestError(response.status_code, _error_message(response))
        return await self._adopt(response.json())

    async def get_session(self) -> Session | None:
        """Return the persisted session, refreshing it first if it has expired."""
        session = await self.store.load()
        if session is None:
            return None

        if session.user is None:
            try:
                session = session.model_copy(update={"user": read_claims(session.access_token)})
            except pyjwt.PyJWTError:
                await self.store.clear()
                return None

        if not session.is_expired():
            return session
        if not session.refresh_token:
            await self.store.clear()
            return None
        try:
            return await self.refresh_session(session)
        except SessionInvalidError:
            await self.store.clear()
            return None

    async def get_user(self, session: Session) -> AuthUser:
        """Ask GoTrue who owns this session. Raises SessionInvalidError if nobody does."""
        response = await self._request("GET", "/user", token=session.access_token)
        if response.status_code in _INVALID_SESSION_STATUSES:
            raise SessionInvalidError(_error_message(response))
        if response.status_code != 200:
            raise AuthRequestError(response.status_code, _error_message(response))
        return AuthUser.from_gotrue(response.json())

    async def sign_out(self, scope: str = "global") -> None:
        """End the session. The local copy is cleared even if the remote call fails.

        scope="local" skips the server call entirely.
        """
        session = await self.store.load()
        try:
            if session is not None and scope != "local":
                response = await self._request(
                    "POST", "/logout", token=session.access_token, params={"scope": scope}
                )
                if (
                    response.status_code >= 400
                    and response.status_code not in _INVALID_SESSION_STATUSES
                ):
                    raise AuthRequestError(response.status_code, _error_message(response))
        finally:
            await self.store.clear()
            self.channel.publish(SignedOut())


class GoTrueAdmin(_GoTrueHTTP):
    """Service-role admin API. Never hand this key to a browser."""

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(supabase_url, service_role_key, client)
        self._service_role_key = service_role_key

    @classmethod
    def from_env(cls, **kwargs: Any) -> GoTrueAdmin:
        url = os.environ.get("SUPABASE_URL", "")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must both be set")
        return cls(url, key, **kwargs)

    async def create_user(
        self,
        email: str,
        password: str,
        user_metadata: dict[str, Any] | None = None,
        app_metadata: dict[str, Any] | None = None,
        email_confirm: bool = True,
    ) -> AuthUser:
        response = await self._request(
            "POST",
            "/admin/users",
            token=self._service_role_key,
            json={
                "email": email,
                "password": password,
                "email_confirm": email_confirm,
                "user_metadata": user_metadata or {},
                "app_metadata": app_metadata or {},
            },
        )
        if response.status_code not in (200, 201):
            raise AuthRequestError(response.status_code, _error_message(response))
        return AuthUser.from_gotrue(response.json())

    async def delete_user(self, user_id: str) -> None:
        response = await self._request(
            "DELETE", f"/admin/users/{user_id}", token=self._service_role_key
        )
        if response.status_code >= 400 and response.status_code != 404:
            raise AuthRequestError(response.status_code, _error_message(response))

    async def send_password_reset(self, email: str, redirect_to: str | None = None) -> None:
        """Email a recovery link so the account owner can choose a password."""
        params = {"redirect_to": redirect_to} if redirect_to else None
        response = await self._request("POST", "/recover", params=params, json={"email": email})
        if response.status_code >= 400:
            raise AuthRequestError(response.status_code, _error_message(response))
