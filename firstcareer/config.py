import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

# A local .env (if any) fills in whatever the process environment leaves unset.
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    raw = os.environ.get(name, default) or ""
    return tuple(p.strip() for p in raw.split(",") if p.strip())


BLOCKED_ADMIN_POLICIES = ("block_wins", "admin_exempt")


def _env(name: str, default: str = ""):
    """Dataclass field whose default is read from env var `name` when a Config is built."""
    return field(default_factory=lambda: os.environ.get(name, default))


def _env_optional(name: str):
    """Like _env, but blank or unset reads as None."""
    return field(default_factory=lambda: (os.environ.get(name) or "").strip() or None)


def _env_flag(name: str, default: bool):
    return field(default_factory=lambda: _env_bool(name, default) is not False)


def _cookie_secure_default() -> bool:
    explicit = _env_bool("AUTH_COOKIE_SECURE", None)
    if explicit is not None:
        return explicit
    return os.environ.get("PUBLIC_APP_URL", "http://localhost:3000").lower().startswith("https://")


@dataclass(frozen=True)
class Config:
    """Process-wide settings, read from the environment each time a Config is built.

    Secrets (Supabase keys, Stripe, Resend) come from env or .env only.
    """

    # -----------------
    # Core
    # -----------------
    # Account store. Point FCS_DATABASE_URL (or DATABASE_URL) at the Supabase
    # Postgres instance; a SQLite path is accepted for local development.
    DB_DSN: str = field(
        default_factory=lambda: (
            os.environ.get("FCS_DATABASE_URL")
            or os.environ.get("DATABASE_URL")
            or os.environ.get("FCS_DB_PATH", "./firstcareer.sqlite")
        )
    )

    # -----------------
    # Auth provider (Supabase Auth)
    # -----------------
    SUPABASE_URL: str = _env("SUPABASE_URL", "http://localhost:54321")
    SUPABASE_ANON_KEY: str = _env("SUPABASE_ANON_KEY")
    # When set, access tokens are verified locally (HS256) instead of calling /auth/v1/user.
    SUPABASE_JWT_SECRET: str | None = _env_optional("SUPABASE_JWT_SECRET")
    SUPABASE_JWT_AUDIENCE: str = _env("SUPABASE_JWT_AUDIENCE", "authenticated")
    AUTH_HTTP_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: float(os.environ.get("AUTH_HTTP_TIMEOUT_SECONDS", "10"))
    )

    # Session cookies
    AUTH_COOKIE_NAME: str = _env("AUTH_COOKIE_NAME", "fcs_access_token")
    AUTH_REFRESH_COOKIE_NAME: str = _env("AUTH_REFRESH_COOKIE_NAME", "fcs_refresh_token")
    AUTH_REFRESH_COOKIE_MAX_AGE_DAYS: int = field(
        default_factory=lambda: int(os.environ.get("AUTH_REFRESH_COOKIE_MAX_AGE_DAYS", "30"))
    )
    AUTH_COOKIE_DOMAIN: str | None = _env_optional("AUTH_COOKIE_DOMAIN")
    AUTH_COOKIE_PATH: str = _env("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = _env("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none

    # If AUTH_COOKIE_SECURE is unset, we default to secure cookies when PUBLIC_APP_URL is https.
    PUBLIC_APP_URL: str = _env("PUBLIC_APP_URL", "http://localhost:3000")
    AUTH_COOKIE_SECURE: bool = field(default_factory=_cookie_secure_default)

    # -----------------
    # Page gate
    # -----------------
    # Path prefixes that require a signed-in user.
    PROTECTED_ROUTE_PREFIXES: Tuple[str, ...] = field(
        default_factory=lambda: _env_list("PROTECTED_ROUTE_PREFIXES", "/builder,/success")
    )
    # What happens when an account is both admin and blocked:
    # - block_wins: the blocked flag applies everywhere, /admin included
    # - admin_exempt: the admin role skips the blocked check
    BLOCKED_ADMIN_POLICY: str = field(
        default_factory=lambda: os.environ.get("BLOCKED_ADMIN_POLICY", "block_wins").strip().lower()
    )

    # Optional: serve a built SPA from this directory behind the gate.
    FRONTEND_DIST_DIR: str | None = _env_optional("FRONTEND_DIST_DIR")

    # -----------------
    # CORS (development)
    # -----------------
    CORS_ALLOW_ORIGINS: str = _env("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    # -----------------
    # Billing (Stripe)
    # -----------------
    STRIPE_SECRET_KEY: str | None = _env_optional("STRIPE_SECRET_KEY")

    # -----------------
    # Email (Resend). Only reported by the admin settings endpoint.
    # -----------------
    RESEND_API_KEY: str | None = _env_optional("RESEND_API_KEY")
    RESEND_FROM_EMAIL: str = _env("RESEND_FROM_EMAIL")
    RESEND_FROM_NAME: str = _env("RESEND_FROM_NAME")
    EMAIL_VERIFICATION_ENABLED: bool = _env_flag("EMAIL_VERIFICATION_ENABLED", True)
    EMAIL_INVOICE_ENABLED: bool = _env_flag("EMAIL_INVOICE_ENABLED", True)
    EMAIL_BAN_ENABLED: bool = _env_flag("EMAIL_BAN_ENABLED", True)
    EMAIL_DELETE_ENABLED: bool = _env_flag("EMAIL_DELETE_ENABLED", True)

    def __post_init__(self) -> None:
        if self.BLOCKED_ADMIN_POLICY not in BLOCKED_ADMIN_POLICIES:
            raise ValueError(f"invalid BLOCKED_ADMIN_POLICY: {self.BLOCKED_ADMIN_POLICY!r}")


def load_config() -> Config:
    return Config()
