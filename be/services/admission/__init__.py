import logging
from functools import wraps

from flask import current_app

from common.db import unit_of_work
from services.admission.quota import QuotaLedger
from services.admission.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class AdmissionControl:
    """Quota + rate-limit gate evaluated before a mutating operation proceeds.

    The rate-limit hit commits on its own, so requests that later fail still
    use up their window budget. Quota is pre-checked here to fail fast and
    re-checked under lock inside the operation's own transaction.
    """

    def __init__(self, ledger: QuotaLedger, limiter: RateLimiter):
        self.ledger = ledger
        self.limiter = limiter

    def admit(self, user_id: str, charge: int = 0, now_ms: int = None):
        with unit_of_work():
            if charge:
                quota = self.ledger.check(user_id, charge)
            else:
                quota = self.ledger.get_or_create(user_id)
            self.limiter.hit(user_id, quota.rate_limit, now_ms=now_ms)


def get_quota_ledger() -> QuotaLedger:
    config = current_app.config
    return QuotaLedger(config['DEFAULT_STORAGE_LIMIT'], config['DEFAULT_RATE_LIMIT'])


def get_rate_limiter() -> RateLimiter:
    limiter = current_app.extensions.get('rate_limiter')
    if limiter is None:
        config = current_app.config
        limiter = RateLimiter(config['RATE_LIMIT_WINDOW_MS'], config['RATE_LIMIT_RETENTION_WINDOWS'])
        current_app.extensions['rate_limiter'] = limiter
    return limiter


def get_admission() -> AdmissionControl:
    return AdmissionControl(get_quota_ledger(), get_rate_limiter())


def rate_limited(fn):
    """Run the admission gate for the first argument (the user id) before ``fn``."""
    @wraps(fn)
    def wrapper(user_id, *args, **kwargs):
        get_admission().admit(user_id)
        return fn(user_id, *args, **kwargs)
    return wrapper


__all__ = [
    "AdmissionControl",
    "QuotaLedger",
    "RateLimiter",
    "get_admission",
    "get_quota_ledger",
    "get_rate_limiter",
    "rate_limited",
]
