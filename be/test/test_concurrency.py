import threading

import pytest
from sqlalchemy import func, select

from app import create_app
from common.db import db
from config import TestConfig
from models.content import ContentObject
from services.admission import get_quota_ledger
from services.file_service import FileService
from services.storage import set_storage
from utils.hash import sha256_bytes

from conftest import RecordingStorage

WORKERS = 8
DATA = b"shared by everyone"
HASH = sha256_bytes(DATA)


@pytest.fixture
def file_app(tmp_path):
    """文件型 SQLite：每个线程拿到自己的连接，才能真正并发"""
    class FileDbConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'drive.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}
        BLOB_STORE_DIR = str(tmp_path / "store")

    app = create_app(FileDbConfig)
    storage = RecordingStorage()
    set_storage(app, storage)
    storage.put(HASH, DATA)
    with app.app_context():
        yield app, storage
        db.session.remove()
        db.drop_all()


def _run_parallel(app, fn, args_list):
    # main thread must not hold a connection while the workers write
    db.session.remove()
    barrier = threading.Barrier(len(args_list))
    results, errors = [], []

    def worker(args):
        with app.app_context():
            try:
                barrier.wait()
                results.append(fn(*args))
            except Exception as e:
                errors.append(e)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(args,)) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def _content_rows():
    return db.session.scalar(select(func.count()).select_from(ContentObject).where(ContentObject.hash == HASH))


def test_concurrent_first_uploads_share_one_row(file_app):
    app, storage = file_app
    users = [f"user-{i}" for i in range(WORKERS)]

    results, errors = _run_parallel(
        app, FileService.confirm_upload,
        [(user, "same.txt", len(DATA), HASH) for user in users],
    )

    assert errors == []
    assert len(results) == WORKERS
    db.session.expire_all()
    assert _content_rows() == 1
    assert ContentObject.get_ref_count(HASH) == WORKERS
    assert all(get_quota_ledger().get_usage(user) == len(DATA) for user in users)


def test_concurrent_purges_delete_blob_once(file_app):
    app, storage = file_app
    users = [f"user-{i}" for i in range(WORKERS)]
    assets = [FileService.confirm_upload(user, "same.txt", len(DATA), HASH) for user in users]
    assert ContentObject.get_ref_count(HASH) == WORKERS

    results, errors = _run_parallel(
        app, FileService.delete_asset,
        [(user, asset['id']) for user, asset in zip(users, assets)],
    )

    assert errors == []
    # exactly one purge saw the count reach zero
    assert sum(1 for r in results if r['content_purged']) == 1
    assert storage.deleted == [HASH]
    db.session.expire_all()
    assert _content_rows() == 0
    assert ContentObject.get_ref_count(HASH) == 0
    assert all(get_quota_ledger().get_usage(user) == 0 for user in users)
