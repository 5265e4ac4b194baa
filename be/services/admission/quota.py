import logging

from sqlalchemy import select

from common.db import db, floor_at_zero, upsert
from common.errors import InvalidArgument, QuotaExceeded
from models.base import utcnow
from models.quota import Quota
from utils.format import format_bytes

logger = logging.getLogger(__name__)


class QuotaLedger:
    """Per-user byte ledger.

    Every counter change is an INSERT ... ON CONFLICT DO UPDATE evaluated by
    the database, never a read-modify-write in Python.
    """

    def __init__(self, default_storage_limit: int, default_rate_limit: int):
        self.default_storage_limit = default_storage_limit
        self.default_rate_limit = default_rate_limit

    def _defaults(self, user_id, storage_used=0):
        return dict(
            user_id=user_id,
            storage_used=storage_used,
            storage_limit=self.default_storage_limit,
            rate_limit=self.default_rate_limit,
            updated_at=utcnow(),
        )

    def ensure(self, user_id: str):
        """Create the user's quota row with system defaults if it is missing."""
        stmt = upsert(Quota).values(**self._defaults(user_id)).on_conflict_do_nothing(
            index_elements=[Quota.__table__.c.user_id]
        )
        db.session.execute(stmt)

    def get_or_create(self, user_id: str, lock: bool = False) -> Quota:
        self.ensure(user_id)
        query = select(Quota).where(Quota.user_id == user_id).execution_options(populate_existing=True)
        if lock:
            # serialises check-then-charge for one user on PostgreSQL; a no-op on SQLite
            query = query.with_for_update()
        return db.session.scalars(query).one()

    def check(self, user_id: str, delta: int, lock: bool = False) -> Quota:
        """Raise QuotaExceeded if charging ``delta`` more bytes would pass the limit."""
        quota = self.get_or_create(user_id, lock=lock)
        if quota.storage_used + delta > quota.storage_limit:
            logger.warning("quota exceeded for user %s: used=%d limit=%d requested=%d",
                           user_id, quota.storage_used, quota.storage_limit, delta)
            raise QuotaExceeded(
                f"Storage quota exceeded. Used: {format_bytes(quota.storage_used)}, "
                f"Limit: {format_bytes(quota.storage_limit)}, Requested: {format_bytes(delta)}"
            )
        return quota

    def adjust_usage(self, user_id: str, delta: int):
        """Add ``delta`` (may be negative) to the user's charged bytes, never going below zero."""
        if delta == 0:
            return
        used = Quota.__table__.c.storage_used
        stmt = upsert(Quota).values(**self._defaults(user_id, storage_used=max(0, delta))).on_conflict_do_update(
            index_elements=[Quota.__table__.c.user_id],
            set_={'storage_used': floor_at_zero(used + delta), 'updated_at': utcnow()},
        )
        db.session.execute(stmt)

    def get_usage(self, user_id: str) -> int:
        used = db.session.scalar(select(Quota.storage_used).where(Quota.user_id == user_id))
        return used or 0

    def set_limits(self, user_id: str, storage_limit: int = None, rate_limit: int = None) -> Quota:
        if storage_limit is not None and storage_limit < 0:
            raise InvalidArgument("storage_limit must not be negative")
        if rate_limit is not None and rate_limit < 0:
            raise InvalidArgument("rate_limit must not be negative")
        quota = self.get_or_create(user_id)
        if storage_limit is not None:
            quota.storage_limit = storage_limit
        if rate_limit is not None:
            quota.rate_limit = rate_limit
        db.session.flush()
        return quota
