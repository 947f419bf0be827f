import pytest

from firstcareer.auth.accounts import AccountAttributes
from firstcareer.auth.gate import AccessDecision, Outcome, decide, decision_response, evaluate
from firstcareer.auth.identity import Identity

ME = Identity(id="me", email="me@example.com")

ADMIN_PATHS = ["/admin", "/admin/users", "/admin/resumes/1", "/admin/settings"]
NON_EXEMPT_PATHS = ["/dashboard", "/builder/step-2", "/success", "/career-roadmap", "/resume/9"]
EXEMPT_PATHS = ["/blocked", "/", "/login", "/login/magic", "/signup"]


def lookup_of(attrs):
    calls = []

    def lookup(user_id):
        calls.append(user_id)
        return attrs

    lookup.calls = calls
    return lookup


def attrs(role="user", blocked_at=None):
    return AccountAttributes(id=ME.id, role=role, blocked_at=blocked_at)


def boom(_user_id):
    raise RuntimeError("store down")


def test_admin_login_always_allowed_without_lookup():
    lookup = lookup_of(None)
    assert decide("/admin/login", None, lookup).outcome is Outcome.ALLOW
    assert decide("/admin/login", ME, lookup).outcome is Outcome.ALLOW
    assert lookup.calls == []


@pytest.mark.parametrize("path", ADMIN_PATHS)
def test_admin_route_anonymous_goes_to_admin_login(path):
    d = decide(path, None, lookup_of(None))
    assert d.outcome is Outcome.REDIRECT_ADMIN_LOGIN
    assert d.target == "/admin/login"


@pytest.mark.parametrize("path", ADMIN_PATHS)
@pytest.mark.parametrize("record", [None, attrs("user"), attrs("user", "2026-01-01T00:00:00Z")])
def test_admin_route_never_allows_non_admin(path, record):
    d = decide(path, ME, lookup_of(record))
    assert d.outcome in (Outcome.REDIRECT_DASHBOARD, Outcome.REDIRECT_ADMIN_LOGIN)
    assert d.outcome is Outcome.REDIRECT_DASHBOARD


@pytest.mark.parametrize("path", ADMIN_PATHS)
def test_admin_route_allows_unblocked_admin(path):
    lookup = lookup_of(attrs("admin"))
    assert decide(path, ME, lookup).outcome is Outcome.ALLOW
    assert lookup.calls == [ME.id]


@pytest.mark.parametrize("path", NON_EXEMPT_PATHS)
def test_blocked_user_redirected_everywhere_not_exempt(path):
    d = decide(path, ME, lookup_of(attrs(blocked_at="2026-02-02T00:00:00Z")))
    assert d.outcome is Outcome.REDIRECT_BLOCKED
    assert d.target == "/blocked"


@pytest.mark.parametrize("path", EXEMPT_PATHS)
def test_blocked_user_reaches_exempt_pages(path):
    lookup = lookup_of(attrs(blocked_at="2026-02-02T00:00:00Z"))
    d = decide(path, ME, lookup)
    assert d.outcome is not Outcome.REDIRECT_BLOCKED
    assert lookup.calls == []


def test_blocked_check_runs_before_auth_entry_and_protected_rules():
    lookup = lookup_of(attrs(blocked_at="2026-02-02T00:00:00Z"))
    assert decide("/builder", ME, lookup).outcome is Outcome.REDIRECT_BLOCKED
    # /login is exempt from the blocked check, so the auth-entry rule applies.
    assert decide("/login", ME, lookup).outcome is Outcome.REDIRECT_DASHBOARD


def test_protected_route_anonymous_redirects_to_login_with_original_path():
    d = decide("/builder/step-1", None, lookup_of(None))
    assert d.outcome is Outcome.REDIRECT_LOGIN
    assert d.target == "/login?redirect=%2Fbuilder%2Fstep-1"


def test_protected_route_signed_in_allowed():
    assert decide("/builder/step-1", ME, lookup_of(attrs())).outcome is Outcome.ALLOW


@pytest.mark.parametrize("path", ["/login", "/signup"])
def test_auth_entry(path):
    assert decide(path, None, lookup_of(None)).outcome is Outcome.ALLOW
    d = decide(path, ME, lookup_of(attrs()))
    assert d.outcome is Outcome.REDIRECT_DASHBOARD
    assert d.target == "/dashboard"


def test_public_routes_allowed():
    assert decide("/", None, lookup_of(None)).outcome is Outcome.ALLOW
    assert decide("/career-roadmap", ME, lookup_of(attrs())).outcome is Outcome.ALLOW


def test_missing_record_reads_as_ordinary_user_outside_admin():
    assert decide("/dashboard", ME, lookup_of(None)).outcome is Outcome.ALLOW
    assert decide("/builder", ME, lookup_of(None)).outcome is Outcome.ALLOW


def test_anonymous_never_triggers_lookup():
    lookup = lookup_of(attrs(blocked_at="x"))
    for path in NON_EXEMPT_PATHS:
        decide(path, None, lookup)
    assert lookup.calls == []


def test_evaluate_fails_open_on_store_exception():
    d = evaluate("/dashboard", ME, boom)
    assert d.outcome is Outcome.ALLOW
    assert d.reason == "gate_error"


def test_evaluate_fails_closed_on_admin_routes():
    d = evaluate("/admin/users", ME, boom)
    assert d.outcome is Outcome.REDIRECT_DASHBOARD
    assert d.target == "/dashboard"


def test_decide_propagates_store_exception():
    with pytest.raises(RuntimeError):
        decide("/dashboard", ME, boom)


# Blocked admin: explicit policy, both settings pinned.


def test_blocked_admin_policy_block_wins():
    blocked_admin = attrs("admin", "2026-03-03T00:00:00Z")
    assert decide("/admin/users", ME, lookup_of(blocked_admin), blocked_admin_policy="block_wins").outcome is Outcome.REDIRECT_BLOCKED
    assert decide("/dashboard", ME, lookup_of(blocked_admin), blocked_admin_policy="block_wins").outcome is Outcome.REDIRECT_BLOCKED


def test_blocked_admin_policy_admin_exempt():
    blocked_admin = attrs("admin", "2026-03-03T00:00:00Z")
    assert decide("/admin/users", ME, lookup_of(blocked_admin), blocked_admin_policy="admin_exempt").outcome is Outcome.ALLOW
    assert decide("/dashboard", ME, lookup_of(blocked_admin), blocked_admin_policy="admin_exempt").outcome is Outcome.ALLOW
    # The exemption is for admins only.
    blocked_user = attrs("user", "2026-03-03T00:00:00Z")
    assert decide("/dashboard", ME, lookup_of(blocked_user), blocked_admin_policy="admin_exempt").outcome is Outcome.REDIRECT_BLOCKED


@pytest.mark.parametrize(
    "decision",
    [
        decide("/builder/x", None, lookup_of(None)),
        decide("/admin/users", None, lookup_of(None)),
        decide("/dashboard", ME, lookup_of(attrs(blocked_at="2026-01-01T00:00:00Z"))),
    ],
)
def test_decision_response_is_a_temporary_redirect_to_the_target(decision):
    r = decision_response(decision)
    assert r.status_code == 307
    assert r.headers["location"] == decision.target


def test_decision_response_without_target_goes_home():
    assert decision_response(AccessDecision(Outcome.REDIRECT_DASHBOARD)).headers["location"] == "/"
