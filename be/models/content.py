from sqlalchemy import func, select, update

from common.db import db, upsert
from models.base import utcnow


class ContentObject(db.Model):
    """内容对象表 - 按内容哈希去重，多个 Asset 共享同一行并记录引用计数"""
    __tablename__ = 'content_objects'

    hash = db.Column(db.String(64), primary_key=True)  # SHA-256 hex digest
    size = db.Column(db.BigInteger, nullable=False)
    blob_key = db.Column(db.String(512), nullable=False)
    ref_count = db.Column(db.Integer, default=1, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    @classmethod
    def increment_ref(cls, content_hash: str, size: int, blob_key: str) -> int:
        """Insert at ref_count 1 or add one reference; returns the new count.

        A single INSERT ... ON CONFLICT DO UPDATE, so two first uploads of the
        same hash can never both create the row at count 1.
        """
        table = cls.__table__
        stmt = (
            upsert(cls)
            .values(hash=content_hash, size=size, blob_key=blob_key, ref_count=1, created_at=utcnow())
            .on_conflict_do_update(
                index_elements=[table.c.hash],
                set_={'ref_count': table.c.ref_count + 1},
            )
            .returning(table.c.ref_count)
        )
        return db.session.execute(stmt).scalar_one()

    @classmethod
    def decrement_ref(cls, content_hash: str):
        """Remove one reference; returns (new_count, blob_key) or None if the hash is unknown.

        When the count reaches zero the row is deleted in the same transaction.
        The UPDATE locks the row, so of several concurrent releases exactly one
        observes zero and deletes it.
        """
        table = cls.__table__
        stmt = (
            update(table)
            .where(table.c.hash == content_hash, table.c.ref_count > 0)
            .values(ref_count=table.c.ref_count - 1)
            .returning(table.c.ref_count, table.c.blob_key)
        )
        row = db.session.execute(stmt).first()
        if row is None:
            return None
        ref_count, blob_key = row
        if ref_count == 0:
            db.session.execute(
                table.delete().where(table.c.hash == content_hash, table.c.ref_count == 0)
            )
        return ref_count, blob_key

    @classmethod
    def get_ref_count(cls, content_hash: str) -> int:
        count = db.session.scalar(select(cls.ref_count).where(cls.hash == content_hash))
        return count or 0

    @classmethod
    def get(cls, content_hash: str):
        return db.session.get(cls, content_hash)

    @classmethod
    def exists(cls, content_hash: str) -> bool:
        return db.session.scalar(select(cls.hash).where(cls.hash == content_hash)) is not None

    @classmethod
    def get_storage_stats(cls):
        result = db.session.execute(
            select(
                func.count(cls.hash).label('total_blobs'),
                func.sum(cls.ref_count).label('total_refs'),
                func.sum(cls.size).label('total_size'),
            )
        ).first()

        return {
            'total_blobs': result.total_blobs or 0,
            'total_refs': result.total_refs or 0,
            'total_size': result.total_size or 0,
        }

    def __repr__(self):
        return f'<ContentObject {self.hash[:8]}... refs={self.ref_count}>'
