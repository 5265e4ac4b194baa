from flask import current_app

from services.dedup.content_store import ContentStore, LinkResult, ReleaseResult
from services.storage import get_storage


def get_content_store() -> ContentStore:
    return ContentStore(get_storage(), key_prefix=current_app.config.get('BLOB_KEY_PREFIX', ''))


__all__ = ["ContentStore", "LinkResult", "ReleaseResult", "get_content_store"]
