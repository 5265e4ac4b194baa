import logging
import time

from sqlalchemy import delete

from common.db import db, upsert
from common.errors import RateLimited
from models.quota import RateWindow

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window request counter, one RateWindow row per (user, window start).

    Bursts straddling a window boundary can reach twice the limit; that is
    the accepted cost of fixed windows.
    """

    def __init__(self, window_ms: int = 1000, retention_windows: int = 60, clock=time.time):
        self.window_ms = window_ms
        self.retention_ms = window_ms * retention_windows
        self.clock = clock

    def window_start(self, now_ms: int) -> int:
        return (now_ms // self.window_ms) * self.window_ms

    def hit(self, user_id: str, limit: int, now_ms: int = None) -> int:
        """Count one request against the current window; returns the new count.

        Raises RateLimited without counting when the window is already full.
        The insert-or-increment and the limit test are one statement, so
        concurrent requests cannot both squeeze past the limit.
        """
        if now_ms is None:
            now_ms = int(self.clock() * 1000)
        if limit <= 0:
            raise RateLimited("Rate limit exceeded. No requests allowed.")
        start = self.window_start(now_ms)

        count_col = RateWindow.__table__.c.request_count
        stmt = (
            upsert(RateWindow)
            .values(user_id=user_id, window_start=start, request_count=1)
            .on_conflict_do_update(
                index_elements=[RateWindow.__table__.c.user_id, RateWindow.__table__.c.window_start],
                set_={'request_count': count_col + 1},
                where=count_col < limit,
            )
            .returning(count_col)
        )
        count = db.session.execute(stmt).scalar_one_or_none()
        if count is None:
            logger.warning("rate limit hit for user %s (%d per %d ms)", user_id, limit, self.window_ms)
            raise RateLimited(f"Rate limit exceeded. Maximum {limit} requests per second.")

        if count == 1:
            # first request in a new window: sweep this user's stale windows
            self.sweep(user_id, now_ms)
        return count

    def sweep(self, user_id: str, now_ms: int) -> int:
        cutoff = now_ms - self.retention_ms
        result = db.session.execute(
            delete(RateWindow).where(RateWindow.user_id == user_id, RateWindow.window_start < cutoff)
        )
        return result.rowcount
