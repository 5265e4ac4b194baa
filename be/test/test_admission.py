import pytest
from sqlalchemy import func, select

from common.db import db, unit_of_work
from common.errors import InvalidArgument, QuotaExceeded, RateLimited
from models.quota import RateWindow
from services.admission import AdmissionControl, get_quota_ledger
from services.admission.rate_limiter import RateLimiter

T0 = 1_700_000_000_000  # aligned to a 1s window


def _windows(user_id):
    return db.session.scalar(select(func.count()).select_from(RateWindow).where(RateWindow.user_id == user_id))


# ------------------------------
# 限流
# ------------------------------
def test_rate_limit_boundary(app):
    limiter = RateLimiter(window_ms=1000)
    with unit_of_work():
        assert limiter.hit("u1", 2, now_ms=T0) == 1
        assert limiter.hit("u1", 2, now_ms=T0 + 500) == 2
    with pytest.raises(RateLimited):
        with unit_of_work():
            limiter.hit("u1", 2, now_ms=T0 + 999)

    # the rejected request is not counted
    count = db.session.scalar(select(RateWindow.request_count).where(RateWindow.user_id == "u1"))
    assert count == 2

    with unit_of_work():
        assert limiter.hit("u1", 2, now_ms=T0 + 1000) == 1


def test_rate_limit_is_per_user(app):
    limiter = RateLimiter(window_ms=1000)
    with unit_of_work():
        limiter.hit("u1", 1, now_ms=T0)
        assert limiter.hit("u2", 1, now_ms=T0) == 1


def test_zero_rate_limit_blocks_everything(app):
    with pytest.raises(RateLimited):
        RateLimiter().hit("u1", 0, now_ms=T0)


def test_old_windows_are_swept(app):
    limiter = RateLimiter(window_ms=1000, retention_windows=60)
    with unit_of_work():
        limiter.hit("u1", 5, now_ms=T0)
        limiter.hit("u1", 5, now_ms=T0 + 30_000)
    assert _windows("u1") == 2

    with unit_of_work():
        limiter.hit("u1", 5, now_ms=T0 + 61_000)
    # T0 fell out of the retention horizon; T0 + 30s did not
    assert _windows("u1") == 2
    starts = db.session.scalars(select(RateWindow.window_start).where(RateWindow.user_id == "u1")).all()
    assert T0 not in starts


def test_window_start_alignment():
    limiter = RateLimiter(window_ms=1000)
    assert limiter.window_start(T0 + 1) == T0
    assert limiter.window_start(T0 + 999) == T0
    assert limiter.window_start(T0 + 1000) == T0 + 1000


# ------------------------------
# 配额
# ------------------------------
def test_quota_created_with_defaults(app):
    ledger = get_quota_ledger()
    with unit_of_work():
        quota = ledger.get_or_create("u1")
        assert quota.storage_used == 0
        assert quota.storage_limit == app.config['DEFAULT_STORAGE_LIMIT']
        assert quota.rate_limit == app.config['DEFAULT_RATE_LIMIT']


def test_quota_check_rejects_overflow(app):
    ledger = get_quota_ledger()
    with unit_of_work():
        ledger.set_limits("u1", storage_limit=100)
        ledger.adjust_usage("u1", 60)
    with unit_of_work():
        ledger.check("u1", 40)
    with pytest.raises(QuotaExceeded) as exc:
        with unit_of_work():
            ledger.check("u1", 41)
    assert "Storage quota exceeded" in exc.value.msg


def test_adjust_usage_clamps_at_zero(app):
    ledger = get_quota_ledger()
    with unit_of_work():
        ledger.adjust_usage("u1", 10)
        ledger.adjust_usage("u1", -25)
    assert ledger.get_usage("u1") == 0

    # first adjustment for an unknown user creates the row
    with unit_of_work():
        ledger.adjust_usage("u2", -5)
    assert ledger.get_usage("u2") == 0


def test_set_limits_rejects_negative(app):
    with pytest.raises(InvalidArgument):
        with unit_of_work():
            get_quota_ledger().set_limits("u1", storage_limit=-1)


# ------------------------------
# 准入控制
# ------------------------------
def test_admission_counts_request_even_if_operation_fails(app):
    clock = [T0 / 1000]
    gate = AdmissionControl(get_quota_ledger(), RateLimiter(clock=lambda: clock[0]))
    with unit_of_work():
        get_quota_ledger().set_limits("u1", rate_limit=2)

    gate.admit("u1")
    with pytest.raises(RuntimeError):
        with unit_of_work():
            raise RuntimeError("operation failed")
    gate.admit("u1")
    with pytest.raises(RateLimited):
        gate.admit("u1")

    clock[0] += 1
    gate.admit("u1")


def test_admission_checks_quota_before_rate_limit(app):
    gate = AdmissionControl(get_quota_ledger(), RateLimiter())
    with unit_of_work():
        get_quota_ledger().set_limits("u1", storage_limit=10)

    with pytest.raises(QuotaExceeded):
        gate.admit("u1", charge=11, now_ms=T0)
    assert _windows("u1") == 0


def test_charged_admission_reads_quota_once(app, monkeypatch):
    ledger = get_quota_ledger()
    gate = AdmissionControl(ledger, RateLimiter())
    with unit_of_work():
        ledger.set_limits("u1", rate_limit=1)

    calls = []
    original = ledger.get_or_create
    monkeypatch.setattr(ledger, "get_or_create", lambda *a, **kw: calls.append(a) or original(*a, **kw))

    gate.admit("u1", charge=5, now_ms=T0)
    assert len(calls) == 1
    with pytest.raises(RateLimited):
        gate.admit("u1", charge=5, now_ms=T0 + 10)
    assert _windows("u1") == 1
