from flask import current_app

from services.storage.base_storage import BaseStorage
from services.storage.local_storage import LocalStorage
from services.storage.s3_storage import S3Storage

_EXTENSION_KEY = 'blob_storage'


def create_storage(config) -> BaseStorage:
    # 根据配置选择存储后端
    if config.get('STORAGE_BACKEND', 'local') == 's3':
        return S3Storage.from_config(config)
    return LocalStorage.from_config(config)


def get_storage() -> BaseStorage:
    """The blob store bound to the current app (created lazily from its config)."""
    storage = current_app.extensions.get(_EXTENSION_KEY)
    if storage is None:
        storage = create_storage(current_app.config)
        current_app.extensions[_EXTENSION_KEY] = storage
    return storage


def set_storage(app, storage: BaseStorage):
    app.extensions[_EXTENSION_KEY] = storage
