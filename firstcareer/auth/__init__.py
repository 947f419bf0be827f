"""Authentication / authorization helpers.

Identity comes from Supabase Auth; authorization attributes (role, blocked_at) come
from our `users` table. Two call sites use them:

- `AccessGateMiddleware`: page navigation. Redirects, and fails open on errors
  everywhere except the /admin branch.
- `require_admin`: the /api/admin/* data endpoints. Always fails closed.

Credentials are read from `Authorization: Bearer <token>` or the httpOnly session
cookies. A refreshed session is written back to the client on the way out.
"""

from .accounts import AccountAttributes, AccountStore
from .deps import AdminUser, authorize, ensure_not_self, require_admin
from .gate import AccessDecision, AccessGateMiddleware, Outcome, decide, evaluate
from .identity import Identity, SupabaseAuthProvider, resolve
from .routes import RouteClass, classify

__all__ = [
    "AccountAttributes",
    "AccountStore",
    "AdminUser",
    "authorize",
    "ensure_not_self",
    "require_admin",
    "AccessDecision",
    "AccessGateMiddleware",
    "Outcome",
    "decide",
    "evaluate",
    "Identity",
    "SupabaseAuthProvider",
    "resolve",
    "RouteClass",
    "classify",
]
