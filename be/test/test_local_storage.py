import os

import pytest
from itsdangerous import BadSignature, SignatureExpired

from services.storage.local_storage import LocalStorage
from utils.compress import pack_blob, unpack_blob
from utils.hash import sha256_bytes

KEY = sha256_bytes(b"hello world")


@pytest.fixture
def store(tmp_path):
    return LocalStorage(str(tmp_path), "secret", base_url="/blob")


def test_write_read_delete(store):
    assert not store.exists(KEY)
    store.write(KEY, b"hello world")
    assert store.exists(KEY)
    assert store.read(KEY) == b"hello world"

    store.delete(KEY)
    assert not store.exists(KEY)
    assert store.read(KEY) is None
    # deleting twice is fine
    store.delete(KEY)


def test_prefixed_keys_are_sharded_by_hash(store, tmp_path):
    store.write(f"blobs/{KEY}", b"x")
    assert os.path.isdir(os.path.join(str(tmp_path), KEY[:2]))
    assert [k for k, _ in store.list_keys()] == [f"blobs/{KEY}"]


def test_list_keys_skips_partial_writes(store):
    store.write(KEY, b"hello world")
    with open(store._path(KEY) + ".part", "wb") as f:
        f.write(b"half")
    keys = list(store.list_keys())
    assert [k for k, _ in keys] == [KEY]
    assert keys[0][1].tzinfo is None


def test_presigned_tokens(store):
    url = store.presign_upload(KEY)
    assert url.startswith("/blob/")
    token = url.rsplit("/", 1)[1]
    assert store.resolve_token(token, "put") == KEY

    with pytest.raises(BadSignature):
        store.resolve_token(token, "get")
    with pytest.raises(BadSignature):
        LocalStorage(store.root, "other-secret").resolve_token(token, "put")


def test_expired_token(tmp_path):
    store = LocalStorage(str(tmp_path), "secret", expires_in=-1)
    token = store.presign_download(KEY).rsplit("/", 1)[1]
    with pytest.raises(SignatureExpired):
        store.resolve_token(token, "get")


def test_compression_framing():
    text = b"a" * 1000
    packed = pack_blob(text)
    assert packed[:1] == b"Z" and len(packed) < len(text)
    assert unpack_blob(packed) == text

    assert pack_blob(b"xy") == b"Rxy"
    assert pack_blob(text, enabled=False) == b"R" + text
    with pytest.raises(ValueError):
        unpack_blob(b"?junk")
