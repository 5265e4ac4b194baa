import logging
from collections import namedtuple
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from common.db import db
from common.errors import NotFound
from models.base import utcnow
from models.content import ContentObject
from utils.hash import is_sha256_hex

logger = logging.getLogger(__name__)

LinkResult = namedtuple('LinkResult', ['created', 'ref_count', 'blob_key', 'size'])
ReleaseResult = namedtuple('ReleaseResult', ['purged', 'ref_count', 'blob_key'])


class ContentStore:
    """
    Content-addressed dedup store.
    - one ContentObject per content hash, shared by every Asset pointing at it
    - ref_count is the single source of truth for "is this content still needed"
    - the blob behind a hash is deleted exactly once, after the count hits zero
    Hashes are always computed by the caller; this class never sees bytes.
    """

    def __init__(self, storage, key_prefix: str = ''):
        self.storage = storage
        self.key_prefix = key_prefix

    def blob_key(self, content_hash: str) -> str:
        return f"{self.key_prefix}{content_hash}"

    # -------- refcount ops --------
    def link_or_create(self, content_hash: str, size: int, candidate_key: str = None) -> LinkResult:
        """Add one reference to ``content_hash``, creating the ContentObject at count 1 if new."""
        key = candidate_key or self.blob_key(content_hash)
        ref_count = ContentObject.increment_ref(content_hash, size, key)
        created = ref_count == 1
        if created:
            logger.debug("content %s created", content_hash[:12])
            return LinkResult(True, ref_count, key, size)

        logger.debug("content %s deduplicated, refs=%d", content_hash[:12], ref_count)
        stored_key, stored_size = db.session.execute(
            select(ContentObject.blob_key, ContentObject.size).where(ContentObject.hash == content_hash)
        ).one()
        return LinkResult(False, ref_count, stored_key, stored_size)

    def confirm_backing(self, content_hash: str, blob_key: str = None):
        """Fail with NotFound unless the blob store holds the object for ``content_hash``."""
        key = blob_key or self.blob_key(content_hash)
        if not self.storage.exists(key):
            raise NotFound("File upload verification failed. File not found in storage.")

    def release(self, content_hash: str, uow) -> ReleaseResult:
        """Drop one reference.

        When it was the last one the ContentObject row is deleted in the
        current transaction and the blob delete is queued on ``uow`` to run
        after commit, so a rolled-back purge never loses bytes.
        """
        result = ContentObject.decrement_ref(content_hash)
        if result is None:
            raise NotFound(f"Content {content_hash} not found")
        ref_count, blob_key = result
        if ref_count > 0:
            return ReleaseResult(False, ref_count, blob_key)

        uow.after_commit(self._delete_if_unreferenced, content_hash, blob_key)
        return ReleaseResult(True, 0, blob_key)

    def _delete_if_unreferenced(self, content_hash: str, blob_key: str):
        # a concurrent upload may have re-created the row since our commit
        try:
            relinked = ContentObject.exists(content_hash)
        except SQLAlchemyError:
            logger.warning("could not recheck content %s, orphaned key %s left for the sweep",
                           content_hash[:12], blob_key, exc_info=True)
            return False
        if relinked:
            logger.info("content %s re-linked before blob delete, keeping %s", content_hash[:12], blob_key)
            return False
        return self.delete_blob(blob_key)

    def delete_blob(self, blob_key: str) -> bool:
        """Best-effort blob removal; a failure leaves an orphan for cleanup_orphaned_blobs."""
        try:
            self.storage.delete(blob_key)
        except Exception:
            logger.warning("blob delete failed, orphaned key %s left for the sweep", blob_key, exc_info=True)
            return False
        logger.info("blob %s purged", blob_key)
        return True

    def get_ref_count(self, content_hash: str) -> int:
        return ContentObject.get_ref_count(content_hash)

    def exists_ref(self, content_hash: str) -> bool:
        return ContentObject.exists(content_hash)

    # -------- maintenance --------
    def get_storage_stats(self):
        return ContentObject.get_storage_stats()

    def _is_content_key(self, key: str) -> bool:
        return key.startswith(self.key_prefix) and is_sha256_hex(key[len(self.key_prefix):])

    def cleanup_orphaned_blobs(self, grace_seconds: int = 86400, now=None) -> int:
        """Delete blobs that no ContentObject references.

        Blobs younger than ``grace_seconds`` are kept: they may belong to an
        upload whose confirm step has not happened yet.
        """
        cutoff = (now or utcnow()) - timedelta(seconds=grace_seconds)
        known = set(db.session.scalars(select(ContentObject.blob_key)))
        cleaned = 0
        for key, last_modified in list(self.storage.list_keys()):
            if not self._is_content_key(key):
                continue
            if key in known or last_modified > cutoff:
                continue
            if self.delete_blob(key):
                cleaned += 1
        if cleaned:
            logger.info("orphan sweep removed %d blob(s)", cleaned)
        return cleaned
