import time

import jwt
import pytest
from starlette.requests import Request

from conftest import USER, FakeAuth
from firstcareer.auth.identity import (
    AuthProviderError,
    Credentials,
    SupabaseAuthProvider,
    TokenExpiredError,
    TokenRejectedError,
    read_credentials,
    resolve,
)
from firstcareer.config import Config

SECRET = "super-secret-jwt-token-with-at-least-32-characters"


def _token(**overrides):
    now = int(time.time())
    claims = {"sub": "abc-123", "email": "a@example.com", "aud": "authenticated", "iat": now, "exp": now + 600}
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm="HS256")


def _provider():
    return SupabaseAuthProvider(base_url="http://supabase.invalid", anon_key="anon", jwt_secret=SECRET)


def _request(headers=None, cookies=None):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


def test_local_jwt_verification():
    ident = _provider().get_user(_token())
    assert ident.id == "abc-123"
    assert ident.email == "a@example.com"


def test_local_jwt_expired():
    with pytest.raises(TokenExpiredError):
        _provider().get_user(_token(exp=int(time.time()) - 60))


def test_local_jwt_wrong_secret_or_audience():
    bad = jwt.encode({"sub": "x", "aud": "authenticated"}, "another-secret-that-is-long-enough-123", algorithm="HS256")
    with pytest.raises(TokenRejectedError):
        _provider().get_user(bad)
    with pytest.raises(TokenRejectedError):
        _provider().get_user(_token(aud="service_role"))


def test_unreachable_provider_raises_provider_error():
    p = SupabaseAuthProvider(base_url="http://127.0.0.1:9", anon_key="anon", timeout=0.5)
    with pytest.raises(AuthProviderError):
        p.get_user("whatever")


def test_read_credentials_prefers_bearer_over_cookie():
    cfg = Config()
    req = _request(
        headers={"Authorization": "Bearer from-header"},
        cookies={cfg.AUTH_COOKIE_NAME: "from-cookie", cfg.AUTH_REFRESH_COOKIE_NAME: "r1"},
    )
    creds = read_credentials(req, cfg)
    assert creds.access_token == "from-header"
    assert creds.refresh_token == "r1"

    creds2 = read_credentials(_request(cookies={cfg.AUTH_COOKIE_NAME: "from-cookie"}), cfg)
    assert creds2.access_token == "from-cookie"
    assert creds2.refresh_token is None


def test_resolve_without_credentials_is_anonymous():
    auth = FakeAuth([USER])
    res = resolve(auth, Credentials())
    assert res.identity is None
    assert auth.get_user_calls == 0


def test_resolve_valid_token():
    res = resolve(FakeAuth([USER]), Credentials(access_token=f"tok-{USER.id}"))
    assert res.identity == USER
    assert res.refreshed is None


def test_resolve_refreshes_expired_token():
    auth = FakeAuth([USER])
    auth.expired.add(f"tok-{USER.id}")
    auth.refresh_tokens["r"] = USER
    res = resolve(auth, Credentials(access_token=f"tok-{USER.id}", refresh_token="r"))
    assert res.identity == USER
    assert res.refreshed is not None
    assert res.refreshed.access_token == f"tok-{USER.id}-new"


def test_resolve_refresh_only():
    auth = FakeAuth([USER])
    auth.refresh_tokens["r"] = USER
    res = resolve(auth, Credentials(refresh_token="r"))
    assert res.identity == USER


def test_resolve_rejected_token_without_refresh_is_anonymous():
    res = resolve(FakeAuth([USER]), Credentials(access_token="garbage"))
    assert res.identity is None


def test_resolve_never_raises_on_provider_outage():
    auth = FakeAuth([USER])
    auth.down = True
    assert resolve(auth, Credentials(access_token=f"tok-{USER.id}", refresh_token="r")).identity is None
    assert resolve(auth, Credentials(refresh_token="r")).identity is None


def test_resolve_rejected_refresh_is_anonymous():
    auth = FakeAuth([USER])
    auth.expired.add(f"tok-{USER.id}")
    res = resolve(auth, Credentials(access_token=f"tok-{USER.id}", refresh_token="unknown"))
    assert res.identity is None
    assert res.refreshed is None
