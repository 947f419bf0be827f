from __future__ import annotations

from typing import Any, Dict, List, Optional

from firstcareer.config import Config
from firstcareer.util.time import ts_to_iso


def _debug(msg: str) -> None:
    print(f"[billing] {msg}")


def _get_stripe(cfg: Config):
    try:
        import stripe  # type: ignore
    except Exception as e:
        raise RuntimeError(
            "Billing views need the 'stripe' package. Install stripe and try again."
        ) from e

    if not cfg.STRIPE_SECRET_KEY:
        raise RuntimeError("stripe_secret_key_missing")

    stripe.api_key = cfg.STRIPE_SECRET_KEY
    return stripe


def _field(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    getter = getattr(obj, "get", None)
    if callable(getter):
        return getter(key)
    return getattr(obj, key, None)


def session_to_payment(session: Any) -> Dict[str, Any]:
    """Flatten a Checkout Session into the row shape the admin UI lists."""
    email = _field(_field(session, "customer_details"), "email") or _field(session, "customer_email") or ""
    return {
        "id": str(_field(session, "id") or ""),
        "email": str(email),
        "amount": int(_field(session, "amount_total") or 0),
        "currency": str(_field(session, "currency") or "usd"),
        "status": str(_field(session, "payment_status") or _field(session, "status") or "unknown"),
        "created_at": ts_to_iso(_field(session, "created")),
    }


def list_checkout_sessions(cfg: Config, *, limit: int = 100, starting_after: str | None = None) -> List[Any]:
    stripe = _get_stripe(cfg)
    params: Dict[str, Any] = {"limit": max(1, min(100, int(limit)))}
    if starting_after:
        params["starting_after"] = starting_after
    result = stripe.checkout.Session.list(**params)
    data = list(_field(result, "data") or [])
    _debug(f"checkout sessions fetched n={len(data)} starting_after={starting_after}")
    return data


def list_payments(
    cfg: Config,
    *,
    page: int,
    per_page: int,
    status: str = "",
    starting_after: Optional[str] = None,
) -> Dict[str, Any]:
    """One Stripe page (up to 3x per_page sessions), filtered and paginated locally."""
    sessions = list_checkout_sessions(cfg, limit=min(100, per_page * 3), starting_after=starting_after)
    payments = [session_to_payment(s) for s in sessions]
    if status:
        payments = [p for p in payments if p["status"] == status]
    start = (page - 1) * per_page
    return {
        "payments": payments[start : start + per_page],
        "total": len(payments),
        "page": page,
        "perPage": per_page,
    }


def revenue_summary(cfg: Config, *, limit: int = 100, recent: int = 10) -> Dict[str, Any]:
    """Totals over the latest Checkout Sessions. Amounts are in the smallest currency unit."""
    total_revenue = 0
    success = 0
    failed = 0
    rows: List[Dict[str, Any]] = []
    for s in list_checkout_sessions(cfg, limit=limit):
        complete = _field(s, "status") == "complete"
        paid = _field(s, "payment_status") == "paid"
        amount = int(_field(s, "amount_total") or 0)
        if complete and paid and amount:
            total_revenue += amount
            success += 1
        elif complete and not paid:
            failed += 1
        row = session_to_payment(s)
        row["status"] = str(_field(s, "payment_status") or "unknown")
        rows.append(row)

    rows.sort(key=lambda r: r["created_at"], reverse=True)
    return {
        "totalRevenue": total_revenue,
        "paymentsSuccess": success,
        "paymentsFailed": failed,
        "recentPayments": rows[:recent],
    }


def empty_revenue_summary() -> Dict[str, Any]:
    return {"totalRevenue": 0, "paymentsSuccess": 0, "paymentsFailed": 0, "recentPayments": []}
