from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from firstcareer.db import connect

ROLES = ("user", "admin")


def _debug(msg: str) -> None:
    print(f"[accounts] {msg}")


@dataclass(frozen=True)
class AccountAttributes:
    id: str
    role: str
    blocked_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_blocked(self) -> bool:
        return self.blocked_at is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AccountAttributes":
        """Map a store row to a typed record.

        Unknown roles collapse to "user"; an empty blocked_at counts as not blocked.
        A row without an id is rejected.
        """
        d = dict(row)
        user_id = d.get("id")
        if not user_id:
            raise ValueError("account_row_missing_id")
        role = str(d.get("role") or "").strip().lower()
        if role not in ROLES:
            role = "user"
        blocked = d.get("blocked_at")
        return cls(id=str(user_id), role=role, blocked_at=str(blocked) if blocked else None)


class AccountStore:
    """Read side of the `users` table as seen by the access gate."""

    def __init__(self, db_dsn: str):
        self.db_dsn = db_dsn

    def fetch_attributes(self, user_id: str) -> Optional[AccountAttributes]:
        """Single-row read by primary key. Store errors propagate."""
        with connect(self.db_dsn) as conn:
            row = conn.execute(
                "SELECT id, role, blocked_at FROM users WHERE id=?",
                (str(user_id),),
            ).fetchone()
        if row is None:
            return None
        return AccountAttributes.from_row(row)

    def lookup(self, user_id: str) -> Optional[AccountAttributes]:
        """Like fetch_attributes, but any failure reads as "no record"."""
        try:
            return self.fetch_attributes(user_id)
        except Exception as e:
            _debug(f"lookup failed user_id={user_id}: {e!r}")
            return None
