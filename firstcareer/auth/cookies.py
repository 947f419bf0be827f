from __future__ import annotations

from starlette.responses import Response

from firstcareer.config import Config

from .identity import SessionTokens


def cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def set_session_cookies(response: Response, tokens: SessionTokens, cfg: Config) -> None:
    """Write a (new or refreshed) provider session onto the response as httpOnly cookies."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    secure = cookie_secure(cfg)
    common = dict(httponly=True, samesite=samesite, secure=secure, path=cfg.AUTH_COOKIE_PATH, domain=cfg.AUTH_COOKIE_DOMAIN)

    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=tokens.access_token,
        max_age=max(1, int(tokens.expires_in)),
        **common,
    )
    response.set_cookie(
        key=cfg.AUTH_REFRESH_COOKIE_NAME,
        value=tokens.refresh_token,
        max_age=int(cfg.AUTH_REFRESH_COOKIE_MAX_AGE_DAYS) * 86400,
        **common,
    )


def clear_session_cookies(response: Response, cfg: Config) -> None:
    for name in (cfg.AUTH_COOKIE_NAME, cfg.AUTH_REFRESH_COOKIE_NAME):
        response.delete_cookie(key=name, path=cfg.AUTH_COOKIE_PATH, domain=cfg.AUTH_COOKIE_DOMAIN)
