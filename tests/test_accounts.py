import pytest

from conftest import ADMIN, BLOCKED, USER
from firstcareer.auth.accounts import AccountAttributes, AccountStore


def test_from_row_maps_known_fields():
    a = AccountAttributes.from_row({"id": "x", "role": "admin", "blocked_at": None, "extra": 1})
    assert a == AccountAttributes(id="x", role="admin", blocked_at=None)
    assert a.is_admin and not a.is_blocked


@pytest.mark.parametrize("role", [None, "", "superuser", "Admin ", "ADMIN"])
def test_from_row_defaults_unknown_roles(role):
    a = AccountAttributes.from_row({"id": "x", "role": role})
    assert a.role in ("user", "admin")
    if role is None or role.strip().lower() != "admin":
        assert a.role == "user"


def test_from_row_empty_blocked_at_is_not_blocked():
    assert not AccountAttributes.from_row({"id": "x", "role": "user", "blocked_at": ""}).is_blocked


def test_from_row_rejects_missing_id():
    with pytest.raises(ValueError):
        AccountAttributes.from_row({"role": "admin"})


def test_lookup_reads_single_row(accounts):
    assert accounts.lookup(ADMIN.id).is_admin
    assert accounts.lookup(BLOCKED.id).is_blocked
    u = accounts.lookup(USER.id)
    assert u.role == "user" and not u.is_blocked
    assert accounts.lookup("missing") is None


def test_lookup_swallows_store_errors(tmp_path):
    # No schema at this path: the query fails, lookup reports "no record".
    store = AccountStore(str(tmp_path / "empty.sqlite"))
    assert store.lookup(ADMIN.id) is None
    with pytest.raises(Exception):
        store.fetch_attributes(ADMIN.id)
