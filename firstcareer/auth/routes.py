from __future__ import annotations

import enum
from typing import Iterable, Tuple

DEFAULT_PROTECTED_PREFIXES: Tuple[str, ...] = ("/builder", "/success")

AUTH_ENTRY_PREFIXES: Tuple[str, ...] = ("/login", "/signup")

ADMIN_LOGIN_PATH = "/admin/login"

# Paths the page gate never sees. /api/* endpoints run their own admin guard.
_UNGATED_PREFIXES: Tuple[str, ...] = ("/api/", "/static/", "/_next/static/", "/_next/image")
_UNGATED_EXACT: Tuple[str, ...] = ("/api", "/health", "/favicon.ico")
_ASSET_EXTENSIONS: Tuple[str, ...] = (".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp")


class RouteClass(str, enum.Enum):
    ADMIN_LOGIN = "admin_login"
    ADMIN = "admin"
    PROTECTED_APP = "protected_app"
    AUTH_ENTRY = "auth_entry"
    PUBLIC = "public"


def classify(path: str, protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES) -> RouteClass:
    """Classify a request path. Total over strings; first matching rule wins."""
    p = path or ""
    if p == ADMIN_LOGIN_PATH or p.startswith(ADMIN_LOGIN_PATH + "/"):
        return RouteClass.ADMIN_LOGIN
    if p.startswith("/admin"):
        return RouteClass.ADMIN
    if any(p.startswith(prefix) for prefix in protected_prefixes):
        return RouteClass.PROTECTED_APP
    if p.startswith(AUTH_ENTRY_PREFIXES):
        return RouteClass.AUTH_ENTRY
    return RouteClass.PUBLIC


def is_blocked_exempt(path: str) -> bool:
    """Pages a blocked account can still reach."""
    return path in ("/blocked", "/") or path.startswith(AUTH_ENTRY_PREFIXES)


def is_gated_path(path: str) -> bool:
    p = path or ""
    if p in _UNGATED_EXACT or p.startswith(_UNGATED_PREFIXES):
        return False
    return not p.lower().endswith(_ASSET_EXTENSIONS)
