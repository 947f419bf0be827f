"""Shared fixtures: a temp SQLite account store and an in-memory auth provider."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from firstcareer.api.server import create_app
from firstcareer.auth.accounts import AccountStore
from firstcareer.auth.identity import AuthProviderError, Identity, SessionTokens, TokenExpiredError, TokenRejectedError
from firstcareer.config import Config
from firstcareer.db import connect, init_db
from firstcareer.util.time import utcnow_iso

ADMIN = Identity(id="u-admin", email="admin@example.com")
USER = Identity(id="u-user", email="user@example.com")
BLOCKED = Identity(id="u-blocked", email="blocked@example.com")
BLOCKED_ADMIN = Identity(id="u-blocked-admin", email="blocked-admin@example.com")
ORPHAN = Identity(id="u-orphan", email="orphan@example.com")  # signed in, no users row


class FakeAuth:
    """Stands in for Supabase Auth. Access token "tok-<id>" resolves to that identity."""

    def __init__(self, identities: List[Identity]):
        self.identities = {f"tok-{i.id}": i for i in identities}
        self.expired: set[str] = set()
        self.refresh_tokens: Dict[str, Identity] = {}
        self.passwords: Dict[Tuple[str, str], Identity] = {}
        self.signed_out: List[str] = []
        self.down = False
        self.get_user_calls = 0

    def _check(self) -> None:
        if self.down:
            raise AuthProviderError("auth_unreachable: connection refused")

    def get_user(self, access_token: str) -> Identity:
        self.get_user_calls += 1
        self._check()
        if access_token in self.expired:
            raise TokenExpiredError("token_expired")
        ident = self.identities.get(access_token)
        if ident is None:
            raise TokenRejectedError("token_rejected")
        return ident

    def _session(self, ident: Identity) -> SessionTokens:
        return SessionTokens(
            access_token=f"tok-{ident.id}-new",
            refresh_token=f"ref-{ident.id}-new",
            expires_in=3600,
            identity=ident,
        )

    def refresh_session(self, refresh_token: str) -> SessionTokens:
        self._check()
        ident = self.refresh_tokens.get(refresh_token)
        if ident is None:
            raise TokenRejectedError("refresh_rejected")
        return self._session(ident)

    def sign_in_with_password(self, email: str, password: str) -> SessionTokens:
        self._check()
        ident = self.passwords.get((email, password))
        if ident is None:
            raise TokenRejectedError("invalid_grant")
        return self._session(ident)

    def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


def insert_user(
    dsn: str,
    user_id: str,
    email: str,
    *,
    role: str = "user",
    blocked_at: Optional[str] = None,
    full_name: Optional[str] = None,
    date_created: Optional[str] = None,
) -> None:
    now = utcnow_iso()
    with connect(dsn) as conn:
        conn.execute(
            """
            INSERT INTO users (id, email, full_name, role, blocked_at, date_created, updated_at)
            VALUES (?,?,?,?,?,?,?)
            """,
            (user_id, email, full_name, role, blocked_at, date_created or now, now),
        )


def get_row(dsn: str, user_id: str):
    with connect(dsn) as conn:
        row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        return dict(row) if row is not None else None


def bearer(identity: Identity) -> Dict[str, str]:
    return {"Authorization": f"Bearer tok-{identity.id}"}


@pytest.fixture
def cfg(tmp_path) -> Config:
    c = Config(
        DB_DSN=str(tmp_path / "accounts.sqlite"),
        SUPABASE_JWT_SECRET=None,
        CORS_ALLOW_ORIGINS="",
        FRONTEND_DIST_DIR=None,
        STRIPE_SECRET_KEY=None,
        PROTECTED_ROUTE_PREFIXES=("/builder", "/success"),
        BLOCKED_ADMIN_POLICY="block_wins",
        AUTH_COOKIE_SECURE=False,
    )
    init_db(c.DB_DSN)
    insert_user(c.DB_DSN, ADMIN.id, ADMIN.email, role="admin", full_name="Ada Admin")
    insert_user(c.DB_DSN, USER.id, USER.email, full_name="Uma User")
    insert_user(c.DB_DSN, BLOCKED.id, BLOCKED.email, blocked_at="2026-01-01T00:00:00Z")
    insert_user(c.DB_DSN, BLOCKED_ADMIN.id, BLOCKED_ADMIN.email, role="admin", blocked_at="2026-01-01T00:00:00Z")
    return c


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth([ADMIN, USER, BLOCKED, BLOCKED_ADMIN, ORPHAN])


@pytest.fixture
def accounts(cfg) -> AccountStore:
    return AccountStore(cfg.DB_DSN)


@pytest.fixture
def app(cfg, auth, accounts):
    a = create_app(cfg, auth=auth, accounts=accounts)

    # Stand-in for the frontend pages so allowed navigation has something to hit.
    @a.get("/{page_path:path}")
    def _page(page_path: str):
        return {"page": "/" + page_path}

    return a


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)
