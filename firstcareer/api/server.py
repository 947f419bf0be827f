from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.background import BackgroundTask
from starlette.exceptions import HTTPException as StarletteHTTPException

from firstcareer.admin import crud
from firstcareer.auth import AccessGateMiddleware, AccountStore, AdminUser, SupabaseAuthProvider, ensure_not_self, require_admin
from firstcareer.auth.cookies import clear_session_cookies, set_session_cookies
from firstcareer.auth.identity import AuthProvider, TokenRejectedError, read_credentials
from firstcareer.billing.stripe_billing import empty_revenue_summary, list_payments, revenue_summary
from firstcareer.config import Config, load_config
from firstcareer.db import connect, init_db


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def _store_error(op: str, e: Exception) -> HTTPException:
    _debug(f"{op} failed: {e!r}")
    return HTTPException(status_code=500, detail=f"store_error: {e}")


def _sign_out_quietly(auth: AuthProvider, access_token: str) -> None:
    try:
        auth.sign_out(access_token)
    except Exception as e:
        _debug(f"sign out failed: {e!r}")


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Admin session
# -----------------------------


class AdminLoginRequest(BaseModel):
    email: str
    password: str


@router.post("/api/admin/login")
def admin_login(payload: AdminLoginRequest, request: Request, response: Response) -> Any:
    """Password sign-in for the back-office.

    The provider session is only kept when the account row says admin; otherwise it is
    signed out again (in the background) and the caller gets a 403.
    """
    cfg = _cfg(request)
    auth = request.app.state.auth
    email = (payload.email or "").strip()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required.")

    try:
        tokens = auth.sign_in_with_password(email, payload.password)
    except TokenRejectedError:
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    except Exception as e:
        _debug(f"admin sign-in failed: {e!r}")
        raise HTTPException(status_code=500, detail="Sign-in failed. Please try again.")

    attrs = request.app.state.accounts.lookup(tokens.identity.id)
    if attrs is None or not attrs.is_admin:
        return JSONResponse(
            {"error": "This account does not have admin access."},
            status_code=403,
            background=BackgroundTask(_sign_out_quietly, auth, tokens.access_token),
        )

    set_session_cookies(response, tokens, cfg)
    admin = AdminUser(id=tokens.identity.id, email=tokens.identity.email, role=attrs.role)
    return {"user": admin.as_dict()}


@router.post("/api/admin/logout")
def admin_logout(request: Request, response: Response) -> Dict[str, Any]:
    cfg = _cfg(request)
    creds = read_credentials(request, cfg)
    if creds.access_token:
        _sign_out_quietly(request.app.state.auth, creds.access_token)
    clear_session_cookies(response, cfg)
    return {"ok": True}


@router.get("/api/admin/me")
def admin_me(admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    return {"user": admin.as_dict()}


# -----------------------------
# Users
# -----------------------------


@router.get("/api/admin/users")
def admin_list_users(
    request: Request,
    page: str = Query("1"),
    per_page: str = Query("20", alias="perPage"),
    search: str = Query(""),
    _admin: AdminUser = Depends(require_admin),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    p, pp = crud.clamp_page(page, per_page)
    try:
        with connect(cfg.DB_DSN) as conn:
            users, total = crud.list_users(conn, page=p, per_page=pp, search=search)
    except Exception as e:
        raise _store_error("list_users", e)
    return {"users": users, "total": total, "page": p, "perPage": pp}


@router.get("/api/admin/users/{user_id}")
def admin_get_user(user_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            detail = crud.get_user_detail(conn, user_id)
    except Exception as e:
        raise _store_error("get_user", e)
    if detail is None:
        raise HTTPException(status_code=404, detail="User not found")
    return detail


@router.patch("/api/admin/users/{user_id}")
def admin_update_user(
    user_id: str,
    request: Request,
    body: Dict[str, Any] = Body(...),
    admin: AdminUser = Depends(require_admin),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    updates = crud.clean_user_updates(body)
    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if updates.get("role") == "user":
        ensure_not_self(admin, user_id, "demote")

    try:
        with connect(cfg.DB_DSN) as conn:
            user = crud.update_user(conn, user_id, updates)
    except Exception as e:
        raise _store_error("update_user", e)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.delete("/api/admin/users/{user_id}")
def admin_delete_user(user_id: str, request: Request, admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    ensure_not_self(admin, user_id, "delete")
    try:
        with connect(cfg.DB_DSN) as conn:
            deleted = crud.delete_user(conn, user_id)
    except Exception as e:
        raise _store_error("delete_user", e)
    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True}


@router.post("/api/admin/users/{user_id}/block")
def admin_block_user(user_id: str, request: Request, admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    ensure_not_self(admin, user_id, "block")
    try:
        with connect(cfg.DB_DSN) as conn:
            user = crud.set_blocked(conn, user_id, True)
    except Exception as e:
        raise _store_error("block_user", e)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/api/admin/users/{user_id}/unblock")
def admin_unblock_user(user_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            user = crud.set_blocked(conn, user_id, False)
    except Exception as e:
        raise _store_error("unblock_user", e)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# -----------------------------
# Resumes / roadmaps
# -----------------------------


@router.get("/api/admin/resumes/{resume_id}")
def admin_get_resume(resume_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            resume = crud.get_resume(conn, resume_id)
    except Exception as e:
        raise _store_error("get_resume", e)
    if resume is None:
        raise HTTPException(status_code=404, detail="Resume not found")
    return resume


@router.delete("/api/admin/resumes/{resume_id}")
def admin_delete_resume(resume_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            deleted = crud.delete_resume(conn, resume_id)
    except Exception as e:
        raise _store_error("delete_resume", e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Resume not found")
    return {"success": True}


@router.get("/api/admin/roadmaps")
def admin_list_roadmaps(
    request: Request,
    page: str = Query("1"),
    per_page: str = Query("20", alias="perPage"),
    user_id: str = Query("", alias="userId"),
    _admin: AdminUser = Depends(require_admin),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    p, pp = crud.clamp_page(page, per_page)
    try:
        with connect(cfg.DB_DSN) as conn:
            roadmaps, total = crud.list_roadmaps(conn, page=p, per_page=pp, user_id=user_id.strip())
    except Exception as e:
        raise _store_error("list_roadmaps", e)
    return {"roadmaps": roadmaps, "total": total, "page": p, "perPage": pp}


@router.get("/api/admin/roadmaps/{roadmap_id}")
def admin_get_roadmap(roadmap_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            roadmap = crud.get_roadmap(conn, roadmap_id)
    except Exception as e:
        raise _store_error("get_roadmap", e)
    if roadmap is None:
        raise HTTPException(status_code=404, detail="Roadmap not found")
    return roadmap


@router.delete("/api/admin/roadmaps/{roadmap_id}")
def admin_delete_roadmap(roadmap_id: str, request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            deleted = crud.delete_roadmap(conn, roadmap_id)
    except Exception as e:
        raise _store_error("delete_roadmap", e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Roadmap not found")
    return {"success": True}


# -----------------------------
# Payments / analytics (Stripe)
# -----------------------------


@router.get("/api/admin/payments")
def admin_payments(
    request: Request,
    page: str = Query("1"),
    per_page: str = Query("20", alias="perPage"),
    status: str = Query(""),
    starting_after: Optional[str] = Query(None),
    _admin: AdminUser = Depends(require_admin),
) -> Dict[str, Any]:
    cfg = _cfg(request)
    p, pp = crud.clamp_page(page, per_page)
    try:
        return list_payments(cfg, page=p, per_page=pp, status=status.strip(), starting_after=starting_after or None)
    except Exception as e:
        _debug(f"payments listing failed: {e!r}")
        return {"payments": [], "total": 0, "page": 1, "perPage": 20}


@router.get("/api/admin/analytics")
def admin_analytics(request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    cfg = _cfg(request)
    try:
        with connect(cfg.DB_DSN) as conn:
            stats = crud.account_stats(conn)
    except Exception as e:
        _debug(f"analytics failed: {e!r}")
        raise HTTPException(status_code=500, detail="Failed to load analytics")

    try:
        revenue = revenue_summary(cfg)
    except Exception as e:
        # Stripe not configured or unreachable: revenue stays at zero.
        _debug(f"analytics revenue unavailable: {e!r}")
        revenue = empty_revenue_summary()

    return {**stats, **revenue}


# -----------------------------
# Settings
# -----------------------------


def _email_settings(cfg: Config) -> Dict[str, Any]:
    return {
        "resendConfigured": bool(cfg.RESEND_API_KEY),
        "fromEmail": cfg.RESEND_FROM_EMAIL,
        "fromName": cfg.RESEND_FROM_NAME,
        "emailVerificationEnabled": cfg.EMAIL_VERIFICATION_ENABLED,
        "emailInvoiceEnabled": cfg.EMAIL_INVOICE_ENABLED,
        "emailBanEnabled": cfg.EMAIL_BAN_ENABLED,
        "emailDeleteEnabled": cfg.EMAIL_DELETE_ENABLED,
    }


@router.get("/api/admin/settings")
def admin_get_settings(request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    return {"email": _email_settings(_cfg(request))}


@router.patch("/api/admin/settings")
def admin_update_settings(request: Request, _admin: AdminUser = Depends(require_admin)) -> Dict[str, Any]:
    # Settings are environment-driven; the body is accepted and ignored.
    return {
        "message": (
            "Settings are read from environment. To change email config, set RESEND_API_KEY, "
            "RESEND_FROM_EMAIL, RESEND_FROM_NAME and optional EMAIL_*_ENABLED in your deployment."
        ),
        "email": _email_settings(_cfg(request)),
    }


# -----------------------------
# App
# -----------------------------


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=getattr(exc, "headers", None))
    refreshed = getattr(request.state, "refreshed_session", None)
    if refreshed is not None:
        set_session_cookies(response, refreshed, request.app.state.cfg)
    return response


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    msg = str(errors[0].get("msg")) if errors else "invalid_request"
    return JSONResponse({"error": msg}, status_code=400)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    init_db(app.state.cfg.DB_DSN)
    yield


def create_app(
    cfg: Config | None = None,
    *,
    auth: AuthProvider | None = None,
    accounts: AccountStore | None = None,
) -> FastAPI:
    """Build the app with its process-wide services.

    The auth provider client and account store are created once here and shared via
    `app.state`; pass substitutes to run against fakes.
    """
    cfg = cfg or load_config()
    app = FastAPI(title="FirstCareerSteps", version="0.1.0", lifespan=_lifespan)
    app.state.cfg = cfg
    app.state.auth = auth or SupabaseAuthProvider.from_config(cfg)
    app.state.accounts = accounts or AccountStore(cfg.DB_DSN)

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    app.add_middleware(AccessGateMiddleware)
    # CORS is mainly needed for local development (frontend dev server -> API).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(router)

    if cfg.FRONTEND_DIST_DIR:
        app.mount("/", StaticFiles(directory=cfg.FRONTEND_DIST_DIR, html=True), name="frontend")

    return app


app = create_app()
