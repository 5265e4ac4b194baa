import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from common.db import db
from models.base import utcnow
from services.file_service import FileService
from services.storage import set_storage
from services.storage.base_storage import BaseStorage
from utils.hash import sha256_bytes


class RecordingStorage(BaseStorage):
    """内存 blob 存储，记录删除操作，可模拟删除失败"""

    def __init__(self):
        self.blobs = {}
        self.deleted = []
        self.fail_deletes = False

    def put(self, key, data=b"", last_modified=None):
        self.blobs[key] = (data, last_modified or utcnow())

    def presign_upload(self, key):
        return f"memory://put/{key}"

    def presign_download(self, key):
        return f"memory://get/{key}"

    def exists(self, key):
        return key in self.blobs

    def delete(self, key):
        if self.fail_deletes:
            raise IOError("blob store unavailable")
        self.deleted.append(key)
        self.blobs.pop(key, None)

    def list_keys(self):
        for key, (_, last_modified) in self.blobs.items():
            yield key, last_modified


@pytest.fixture
def app(tmp_path):
    app = create_app('config.TestConfig')
    app.config['BLOB_STORE_DIR'] = str(tmp_path / "store")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    storage = RecordingStorage()
    set_storage(app, storage)
    return storage


@pytest.fixture
def auth_headers(app):
    """按用户 ID 生成 JWT headers"""
    def make(user_id):
        token = create_access_token(identity=user_id)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def upload(storage):
    """Put bytes in the blob store and confirm the upload; returns the asset dict."""
    def do_upload(user_id, data, name="file.txt", size=None, folder_id=None):
        content_hash = sha256_bytes(data)
        storage.put(content_hash, data)
        return FileService.confirm_upload(
            user_id, name, size if size is not None else len(data), content_hash,
            content_type="text/plain", folder_id=folder_id,
        )
    return do_upload
