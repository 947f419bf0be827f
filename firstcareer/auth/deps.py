from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, Response

from .accounts import AccountAttributes
from .cookies import set_session_cookies
from .gate import ALLOW, AccessDecision, Outcome
from .identity import Identity, Resolution, read_credentials, resolve


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


@dataclass(frozen=True)
class AdminUser:
    id: str
    email: str
    role: str

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "role": self.role}


def admin_api_decision(identity: Identity | None, attributes: AccountAttributes | None) -> AccessDecision:
    """Admin data endpoints: only a stored role of "admin" gets through."""
    if identity is None:
        return AccessDecision(Outcome.FORBIDDEN, reason="unauthenticated")
    if attributes is None or not attributes.is_admin:
        return AccessDecision(Outcome.FORBIDDEN, reason="not_admin")
    return ALLOW


def _services(request: Request):
    state = request.app.state
    cfg = getattr(state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg, state.auth, state.accounts


def _authorize(request: Request) -> tuple[Optional[AdminUser], AccessDecision, Resolution]:
    cfg, auth, accounts = _services(request)
    resolution = resolve(auth, read_credentials(request, cfg))
    identity = resolution.identity
    attributes = accounts.lookup(identity.id) if identity is not None else None
    decision = admin_api_decision(identity, attributes)
    if not decision.allowed:
        return None, decision, resolution
    assert identity is not None and attributes is not None
    return AdminUser(id=identity.id, email=identity.email, role=attributes.role), decision, resolution


def authorize(request: Request) -> Optional[AdminUser]:
    """The admin behind this request, or None.

    Auth-provider and account-store failures read as "not an admin". An app built
    without `state.cfg` is a wiring error and raises HTTPException(500).
    """
    admin, _, _ = _authorize(request)
    return admin


def require_admin(request: Request, response: Response) -> AdminUser:
    """FastAPI dependency for /api/admin/* endpoints.

    401 when nobody is signed in, 403 when the caller is not an admin (including when
    the account store could not be read).
    """
    admin, decision, resolution = _authorize(request)
    if resolution.refreshed is not None:
        set_session_cookies(response, resolution.refreshed, request.app.state.cfg)
        # `response` is dropped when an HTTPException is raised; the error handler
        # writes the session from here instead.
        request.state.refreshed_session = resolution.refreshed
    if admin is None:
        if decision.reason == "unauthenticated":
            raise HTTPException(status_code=401, detail="Unauthorized")
        raise HTTPException(status_code=403, detail="Forbidden")
    return admin


def ensure_not_self(admin: AdminUser, target_id: str, action: str) -> None:
    """Reject an admin acting on their own account before anything is written."""
    if str(target_id) == admin.id:
        raise HTTPException(status_code=400, detail=f"Cannot {action} your own admin account")
