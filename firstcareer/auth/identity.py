from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

import jwt
import requests
from fastapi import Request

from firstcareer.config import Config


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


class AuthProviderError(RuntimeError):
    """The auth provider could not be reached or answered unexpectedly."""


class TokenRejectedError(AuthProviderError):
    """The provider answered, but does not accept the credential."""


class TokenExpiredError(TokenRejectedError):
    pass


@dataclass(frozen=True)
class Identity:
    id: str
    email: str


@dataclass(frozen=True)
class Credentials:
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def empty(self) -> bool:
        return not self.access_token and not self.refresh_token


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    identity: Identity


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one request's credentials.

    `refreshed` is set when the provider issued new tokens; they must be written back
    to the client as-is.
    """

    identity: Identity | None = None
    refreshed: SessionTokens | None = None


class AuthProvider(Protocol):
    def get_user(self, access_token: str) -> Identity: ...

    def refresh_session(self, refresh_token: str) -> SessionTokens: ...

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens: ...

    def sign_out(self, access_token: str) -> None: ...


def _identity_from_user(user: Any) -> Identity:
    if not isinstance(user, dict) or not user.get("id"):
        raise AuthProviderError("auth_user_missing_id")
    return Identity(id=str(user["id"]), email=str(user.get("email") or ""))


def _session_from_payload(payload: Any) -> SessionTokens:
    if not isinstance(payload, dict):
        raise AuthProviderError("auth_session_not_object")
    access = payload.get("access_token")
    refresh = payload.get("refresh_token")
    if not access or not refresh:
        raise AuthProviderError("auth_session_missing_tokens")
    return SessionTokens(
        access_token=str(access),
        refresh_token=str(refresh),
        expires_in=int(payload.get("expires_in") or 3600),
        identity=_identity_from_user(payload.get("user")),
    )


class SupabaseAuthProvider:
    """Thin REST client for the Supabase Auth (GoTrue) endpoints we need."""

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        jwt_secret: str | None = None,
        jwt_audience: str = "authenticated",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self._base = f"{base_url.rstrip('/')}/auth/v1"
        self._anon_key = anon_key
        self._jwt_secret = jwt_secret
        self._jwt_audience = jwt_audience
        self._timeout = timeout
        self._http = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: Config) -> "SupabaseAuthProvider":
        return cls(
            base_url=cfg.SUPABASE_URL,
            anon_key=cfg.SUPABASE_ANON_KEY,
            jwt_secret=cfg.SUPABASE_JWT_SECRET,
            jwt_audience=cfg.SUPABASE_JWT_AUDIENCE,
            timeout=cfg.AUTH_HTTP_TIMEOUT_SECONDS,
        )

    def _headers(self, access_token: str | None = None) -> Dict[str, str]:
        h = {"apikey": self._anon_key, "Content-Type": "application/json"}
        h["Authorization"] = f"Bearer {access_token or self._anon_key}"
        return h

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        try:
            return self._http.request(method, f"{self._base}{path}", timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise AuthProviderError(f"auth_unreachable: {e}") from e

    def _token_grant(self, grant_type: str, body: Dict[str, Any]) -> SessionTokens:
        r = self._request("POST", "/token", params={"grant_type": grant_type}, json=body, headers=self._headers())
        if r.status_code in (400, 401, 403):
            raise TokenRejectedError(f"auth_{grant_type}_rejected: {r.text}")
        if r.status_code != 200:
            raise AuthProviderError(f"auth_{grant_type}_error {r.status_code}: {r.text}")
        return _session_from_payload(r.json())

    def get_user(self, access_token: str) -> Identity:
        if self._jwt_secret:
            try:
                claims = jwt.decode(
                    access_token,
                    self._jwt_secret,
                    algorithms=["HS256"],
                    audience=self._jwt_audience,
                )
            except jwt.ExpiredSignatureError as e:
                raise TokenExpiredError("token_expired") from e
            except jwt.InvalidTokenError as e:
                raise TokenRejectedError("token_invalid") from e
            sub = claims.get("sub")
            if not sub:
                raise TokenRejectedError("token_missing_sub")
            return Identity(id=str(sub), email=str(claims.get("email") or ""))

        r = self._request("GET", "/user", headers=self._headers(access_token))
        if r.status_code in (401, 403):
            raise TokenRejectedError("token_rejected")
        if r.status_code != 200:
            raise AuthProviderError(f"auth_user_error {r.status_code}: {r.text}")
        return _identity_from_user(r.json())

    def refresh_session(self, refresh_token: str) -> SessionTokens:
        return self._token_grant("refresh_token", {"refresh_token": refresh_token})

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        return self._token_grant("password", {"email": email, "password": password})

    def sign_out(self, access_token: str) -> None:
        r = self._request("POST", "/logout", headers=self._headers(access_token))
        if r.status_code not in (200, 204, 401):
            raise AuthProviderError(f"auth_logout_error {r.status_code}: {r.text}")


def read_credentials(request: Request, cfg: Config) -> Credentials:
    """Pull session credentials off a request.

    `Authorization: Bearer <jwt>` wins over the access-token cookie; the refresh token
    only ever travels in its cookie.
    """
    token: str | None = None
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip() or None
    if not token:
        token = request.cookies.get(cfg.AUTH_COOKIE_NAME) or None
    refresh = request.cookies.get(cfg.AUTH_REFRESH_COOKIE_NAME) or None
    return Credentials(access_token=token, refresh_token=refresh)


def resolve(provider: AuthProvider, credentials: Credentials) -> Resolution:
    """Resolve the caller's identity. Never raises.

    Provider failures are logged and treated as anonymous. A rejected or expired access
    token is retried once through the refresh token when one is present.
    """
    if credentials.empty:
        return Resolution()

    if credentials.access_token:
        try:
            return Resolution(identity=provider.get_user(credentials.access_token))
        except TokenRejectedError as e:
            if not credentials.refresh_token:
                _debug(f"access token not accepted: {e}")
                return Resolution()
        except Exception as e:
            _debug(f"identity lookup failed: {e!r}")
            return Resolution()

    assert credentials.refresh_token is not None
    try:
        tokens = provider.refresh_session(credentials.refresh_token)
    except Exception as e:
        _debug(f"session refresh failed: {e!r}")
        return Resolution()
    return Resolution(identity=tokens.identity, refreshed=tokens)
