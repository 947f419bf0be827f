"""Page-level access gate.

Every navigable path (not /api/*, not static assets) is classified, the caller is
resolved, and one decision comes out:

- /admin/login is always reachable.
- /admin/* needs an identity whose account row says role=admin. No row, or a failed
  lookup, means no admin: this branch fails closed.
- Any other signed-in request to a non-exempt path is sent to /blocked when the
  account carries blocked_at.
- Protected app routes need an identity; /login and /signup bounce signed-in users to
  /dashboard; everything else is public.

Outside the admin branch a missing account row reads as an ordinary, non-blocked
user, and any unexpected error lets the request through (fail open). The admin data
endpoints are guarded again, fail-closed, in `firstcareer.auth.deps`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterable, Optional
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from .accounts import AccountAttributes
from .cookies import set_session_cookies
from .identity import Identity, Resolution, read_credentials, resolve
from .routes import DEFAULT_PROTECTED_PREFIXES, RouteClass, classify, is_blocked_exempt, is_gated_path

LOGIN_PATH = "/login"
ADMIN_LOGIN_PATH = "/admin/login"
DASHBOARD_PATH = "/dashboard"
BLOCKED_PATH = "/blocked"

POLICY_BLOCK_WINS = "block_wins"
POLICY_ADMIN_EXEMPT = "admin_exempt"


def _debug(msg: str) -> None:
    print(f"[gate] {msg}")


class Outcome(str, enum.Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_ADMIN_LOGIN = "redirect_admin_login"
    REDIRECT_DASHBOARD = "redirect_dashboard"
    REDIRECT_BLOCKED = "redirect_blocked"
    # Only produced by the admin data API guard (`deps.admin_api_decision`).
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class AccessDecision:
    outcome: Outcome
    target: str | None = None
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


ALLOW = AccessDecision(Outcome.ALLOW)


def login_redirect_target(path: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'redirect': path})}"


Lookup = Callable[[str], Optional[AccountAttributes]]


def decide(
    path: str,
    identity: Identity | None,
    lookup: Lookup,
    *,
    protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES,
    blocked_admin_policy: str = POLICY_BLOCK_WINS,
) -> AccessDecision:
    """Compute the decision for one request. Calls `lookup` at most once."""
    route = classify(path, protected_prefixes)

    if route is RouteClass.ADMIN_LOGIN:
        return ALLOW

    if route is RouteClass.ADMIN:
        if identity is None:
            return AccessDecision(Outcome.REDIRECT_ADMIN_LOGIN, ADMIN_LOGIN_PATH, "unauthenticated")
        attrs = lookup(identity.id)
        if attrs is None or not attrs.is_admin:
            return AccessDecision(Outcome.REDIRECT_DASHBOARD, DASHBOARD_PATH, "not_admin")
        if attrs.is_blocked and blocked_admin_policy == POLICY_BLOCK_WINS:
            return AccessDecision(Outcome.REDIRECT_BLOCKED, BLOCKED_PATH, "blocked")
        return ALLOW

    if identity is not None and not is_blocked_exempt(path):
        attrs = lookup(identity.id)
        if attrs is not None and attrs.is_blocked:
            if not (attrs.is_admin and blocked_admin_policy == POLICY_ADMIN_EXEMPT):
                return AccessDecision(Outcome.REDIRECT_BLOCKED, BLOCKED_PATH, "blocked")

    if route is RouteClass.PROTECTED_APP and identity is None:
        return AccessDecision(Outcome.REDIRECT_LOGIN, login_redirect_target(path), "unauthenticated")

    if route is RouteClass.AUTH_ENTRY and identity is not None:
        return AccessDecision(Outcome.REDIRECT_DASHBOARD, DASHBOARD_PATH, "already_signed_in")

    return ALLOW


def evaluate(
    path: str,
    identity: Identity | None,
    lookup: Lookup,
    *,
    protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES,
    blocked_admin_policy: str = POLICY_BLOCK_WINS,
) -> AccessDecision:
    """`decide`, but an unexpected error lets the request through.

    Admin routes are the exception: an error there sends the caller to /dashboard.
    """
    try:
        return decide(
            path,
            identity,
            lookup,
            protected_prefixes=protected_prefixes,
            blocked_admin_policy=blocked_admin_policy,
        )
    except Exception as e:
        user_id = identity.id if identity is not None else None
        if classify(path, protected_prefixes) is RouteClass.ADMIN:
            _debug(f"decision failed path={path} user_id={user_id}: {e!r}; denying")
            return AccessDecision(Outcome.REDIRECT_DASHBOARD, DASHBOARD_PATH, "gate_error")
        _debug(f"decision failed path={path} user_id={user_id}: {e!r}; allowing")
        return AccessDecision(Outcome.ALLOW, reason="gate_error")


def decision_response(decision: AccessDecision) -> Response:
    """Redirect for a page decision that is not an allow."""
    return RedirectResponse(decision.target or "/", status_code=307)


class AccessGateMiddleware(BaseHTTPMiddleware):
    """Applies the gate to page requests.

    Services come from `request.app.state` (`cfg`, `auth`, `accounts`) so they are
    built once per process and can be swapped in tests.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not is_gated_path(path):
            return await call_next(request)

        resolution = Resolution()
        try:
            state = request.app.state
            cfg = state.cfg
            resolution = await run_in_threadpool(resolve, state.auth, read_credentials(request, cfg))
            decision = await run_in_threadpool(
                evaluate,
                path,
                resolution.identity,
                state.accounts.lookup,
                protected_prefixes=cfg.PROTECTED_ROUTE_PREFIXES,
                blocked_admin_policy=cfg.BLOCKED_ADMIN_POLICY,
            )
        except Exception as e:
            _debug(f"gate failed path={path}: {e!r}; allowing")
            return await call_next(request)

        identity = resolution.identity
        if decision.allowed:
            response = await call_next(request)
        else:
            _debug(
                f"{decision.outcome.value} path={path} -> {decision.target} "
                f"user_id={identity.id if identity else None} reason={decision.reason}"
            )
            response = decision_response(decision)

        if resolution.refreshed is not None:
            set_session_cookies(response, resolution.refreshed, cfg)
        return response
