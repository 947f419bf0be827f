from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from firstcareer.db import row_to_dict, rows_to_dicts
from firstcareer.util.time import days_ago_iso, utcnow_iso

USER_LIST_COLUMNS = "id, email, full_name, role, blocked_at, date_created"
EDITABLE_USER_FIELDS = ("full_name", "email", "role", "linkedin_link")
ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")


def clamp_page(page: Any, per_page: Any) -> Tuple[int, int]:
    """page >= 1, 10 <= per_page <= 50. Garbage falls back to the defaults."""
    try:
        p = int(page)
    except (TypeError, ValueError):
        p = 1
    try:
        pp = int(per_page)
    except (TypeError, ValueError):
        pp = 20
    return max(1, p), min(50, max(10, pp))


def _placeholders(n: int) -> str:
    return ",".join(["?"] * n)


def _count(conn: Any, sql: str, params: Tuple[Any, ...] = ()) -> int:
    row = conn.execute(sql, params).fetchone()
    return int(row["n"] or 0) if row is not None else 0


# -----------------------------
# Users
# -----------------------------


def get_user(conn: Any, user_id: str) -> Optional[Dict[str, Any]]:
    return row_to_dict(conn.execute("SELECT * FROM users WHERE id=?", (str(user_id),)).fetchone())


def get_user_by_email(conn: Any, email: str) -> Optional[Dict[str, Any]]:
    e = (email or "").strip().lower()
    if not e:
        return None
    return row_to_dict(conn.execute("SELECT * FROM users WHERE LOWER(email)=?", (e,)).fetchone())


def list_users(conn: Any, *, page: int, per_page: int, search: str = "") -> Tuple[List[Dict[str, Any]], int]:
    """Newest accounts first, each annotated with resume/roadmap counts and subscription status."""
    where = ""
    params: List[Any] = []
    q = (search or "").strip()
    if q:
        where = "WHERE LOWER(email) LIKE ? OR LOWER(COALESCE(full_name,'')) LIKE ?"
        like = f"%{q.lower()}%"
        params.extend([like, like])

    total = _count(conn, f"SELECT COUNT(*) AS n FROM users {where}", tuple(params))
    rows = conn.execute(
        f"""
        SELECT {USER_LIST_COLUMNS}
        FROM users
        {where}
        ORDER BY date_created DESC
        LIMIT ? OFFSET ?
        """,
        (*params, per_page, (page - 1) * per_page),
    ).fetchall()
    users = rows_to_dicts(rows)
    if not users:
        return [], total

    ids = [u["id"] for u in users]
    marks = _placeholders(len(ids))
    resume_counts = {
        r["user_id"]: int(r["n"])
        for r in conn.execute(
            f"SELECT user_id, COUNT(*) AS n FROM resumes WHERE user_id IN ({marks}) GROUP BY user_id",
            tuple(ids),
        ).fetchall()
    }
    roadmap_counts = {
        r["user_id"]: int(r["n"])
        for r in conn.execute(
            f"SELECT user_id, COUNT(*) AS n FROM career_roadmaps WHERE user_id IN ({marks}) GROUP BY user_id",
            tuple(ids),
        ).fetchall()
    }
    sub_status = {
        r["user_id"]: r["status"]
        for r in conn.execute(
            f"SELECT user_id, status FROM subscriptions WHERE user_id IN ({marks})",
            tuple(ids),
        ).fetchall()
    }

    for u in users:
        u["resumesCount"] = resume_counts.get(u["id"], 0)
        u["roadmapsCount"] = roadmap_counts.get(u["id"], 0)
        u["subscriptionStatus"] = sub_status.get(u["id"])
    return users, total


def get_user_detail(conn: Any, user_id: str) -> Optional[Dict[str, Any]]:
    user = get_user(conn, user_id)
    if user is None:
        return None
    uid = str(user_id)
    profile = row_to_dict(conn.execute("SELECT * FROM profile WHERE user_id=?", (uid,)).fetchone())
    resumes = conn.execute(
        "SELECT id, title, status, created_at FROM resumes WHERE user_id=? ORDER BY created_at DESC LIMIT 10",
        (uid,),
    ).fetchall()
    roadmaps = conn.execute(
        "SELECT id, career_name, created_at FROM career_roadmaps WHERE user_id=? ORDER BY created_at DESC LIMIT 10",
        (uid,),
    ).fetchall()
    sub = row_to_dict(conn.execute("SELECT * FROM subscriptions WHERE user_id=?", (uid,)).fetchone())
    return {
        "user": user,
        "profile": profile,
        "resumes": rows_to_dicts(resumes),
        "roadmaps": rows_to_dicts(roadmaps),
        "subscription": sub,
    }


def clean_user_updates(body: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only fields an admin may edit, with the right types."""
    updates: Dict[str, Any] = {}
    for key in EDITABLE_USER_FIELDS:
        value = body.get(key)
        if key == "role":
            if value in ("user", "admin"):
                updates[key] = value
        elif isinstance(value, str):
            updates[key] = value
    return updates


def update_user(conn: Any, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    fields = [(k, updates[k]) for k in EDITABLE_USER_FIELDS if k in updates]
    if not fields:
        raise ValueError("no_valid_fields")
    fields.append(("updated_at", utcnow_iso()))
    sets = ", ".join([f"{k}=?" for k, _ in fields])
    cur = conn.execute(f"UPDATE users SET {sets} WHERE id=?", (*[v for _, v in fields], str(user_id)))
    if cur.rowcount == 0:
        return None
    return get_user(conn, user_id)


def set_blocked(conn: Any, user_id: str, blocked: bool) -> Optional[Dict[str, Any]]:
    now = utcnow_iso()
    cur = conn.execute(
        "UPDATE users SET blocked_at=?, updated_at=? WHERE id=?",
        (now if blocked else None, now, str(user_id)),
    )
    if cur.rowcount == 0:
        return None
    return get_user(conn, user_id)


def delete_user(conn: Any, user_id: str) -> bool:
    cur = conn.execute("DELETE FROM users WHERE id=?", (str(user_id),))
    return cur.rowcount > 0


def _owner_summary(conn: Any, user_id: str) -> Optional[Dict[str, Any]]:
    return row_to_dict(
        conn.execute("SELECT id, email, full_name FROM users WHERE id=?", (str(user_id),)).fetchone()
    )


# -----------------------------
# Resumes
# -----------------------------


def get_resume(conn: Any, resume_id: str) -> Optional[Dict[str, Any]]:
    resume = row_to_dict(conn.execute("SELECT * FROM resumes WHERE id=?", (str(resume_id),)).fetchone())
    if resume is None:
        return None
    resume["users"] = _owner_summary(conn, resume["user_id"])
    return resume


def delete_resume(conn: Any, resume_id: str) -> bool:
    return conn.execute("DELETE FROM resumes WHERE id=?", (str(resume_id),)).rowcount > 0


# -----------------------------
# Career roadmaps
# -----------------------------


def list_roadmaps(conn: Any, *, page: int, per_page: int, user_id: str = "") -> Tuple[List[Dict[str, Any]], int]:
    where = ""
    params: List[Any] = []
    if user_id:
        where = "WHERE user_id=?"
        params.append(user_id)

    total = _count(conn, f"SELECT COUNT(*) AS n FROM career_roadmaps {where}", tuple(params))
    rows = rows_to_dicts(
        conn.execute(
            f"""
            SELECT id, user_id, career_name, infographic_url, milestone_roadmap_url, created_at, updated_at
            FROM career_roadmaps
            {where}
            ORDER BY created_at DESC
            LIMIT ? OFFSET ?
            """,
            (*params, per_page, (page - 1) * per_page),
        ).fetchall()
    )

    owner_ids = sorted({r["user_id"] for r in rows})
    owners: Dict[str, Dict[str, Any]] = {}
    if owner_ids:
        for u in conn.execute(
            f"SELECT id, email, full_name FROM users WHERE id IN ({_placeholders(len(owner_ids))})",
            tuple(owner_ids),
        ).fetchall():
            owners[u["id"]] = dict(u)

    for r in rows:
        owner = owners.get(r["user_id"]) or {}
        r["user_email"] = owner.get("email")
        r["user_name"] = owner.get("full_name")
    return rows, total


def get_roadmap(conn: Any, roadmap_id: str) -> Optional[Dict[str, Any]]:
    roadmap = row_to_dict(conn.execute("SELECT * FROM career_roadmaps WHERE id=?", (str(roadmap_id),)).fetchone())
    if roadmap is None:
        return None
    roadmap["users"] = _owner_summary(conn, roadmap["user_id"])
    return roadmap


def delete_roadmap(conn: Any, roadmap_id: str) -> bool:
    return conn.execute("DELETE FROM career_roadmaps WHERE id=?", (str(roadmap_id),)).rowcount > 0


# -----------------------------
# Analytics
# -----------------------------


def account_stats(conn: Any, *, recent_days: int = 7, recent_limit: int = 5) -> Dict[str, Any]:
    since = days_ago_iso(recent_days)
    statuses = ACTIVE_SUBSCRIPTION_STATUSES
    recent = conn.execute(
        "SELECT id, email, full_name, date_created FROM users ORDER BY date_created DESC LIMIT ?",
        (recent_limit,),
    ).fetchall()
    return {
        "totalUsers": _count(conn, "SELECT COUNT(*) AS n FROM users"),
        "newSignups7d": _count(conn, "SELECT COUNT(*) AS n FROM users WHERE date_created >= ?", (since,)),
        "blockedCount": _count(conn, "SELECT COUNT(*) AS n FROM users WHERE blocked_at IS NOT NULL"),
        "totalResumes": _count(conn, "SELECT COUNT(*) AS n FROM resumes"),
        "totalRoadmaps": _count(conn, "SELECT COUNT(*) AS n FROM career_roadmaps"),
        "activeSubscriptions": _count(
            conn,
            f"SELECT COUNT(*) AS n FROM subscriptions WHERE status IN ({_placeholders(len(statuses))})",
            statuses,
        ),
        "recentSignups": rows_to_dicts(recent),
    }
