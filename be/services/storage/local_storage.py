# services/storage/local_storage.py
import os
from datetime import datetime, timezone
from urllib.parse import quote, unquote

from itsdangerous import BadSignature, URLSafeTimedSerializer

from services.storage.base_storage import BaseStorage
from utils.compress import pack_blob, unpack_blob

_SALT = 'local-blob-store'


class LocalStorage(BaseStorage):
    """Filesystem blob store.

    Objects live under ``root/<2-char shard>/<quoted key>``. Presigned URLs
    point at the ``/blob/<token>`` blueprint; the token is an itsdangerous
    timed signature over the key and the allowed operation.
    """

    def __init__(self, root, secret, base_url='/blob', expires_in=3600, compression=True):
        self.root = root
        self.base_url = base_url.rstrip('/')
        self.expires_in = expires_in
        self.compression = compression
        self._signer = URLSafeTimedSerializer(secret, salt=_SALT)
        os.makedirs(self.root, exist_ok=True)

    @classmethod
    def from_config(cls, config):
        return cls(
            config['BLOB_STORE_DIR'],
            config['JWT_SECRET_KEY'],
            base_url=config['LOCAL_BLOB_BASE_URL'],
            expires_in=config['PRESIGN_EXPIRES'],
            compression=config['ENABLE_COMPRESSION'],
        )

    # -------- paths --------
    def _path(self, key):
        name = quote(key, safe='')
        # shard on the trailing content hash so prefixed keys spread out too
        shard = key[-64:][:2] or '__'
        return os.path.join(self.root, shard, name)

    # -------- presigned tokens --------
    def _presign(self, key, op):
        token = self._signer.dumps({'k': key, 'op': op})
        return f"{self.base_url}/{token}"

    def presign_upload(self, key):
        return self._presign(key, 'put')

    def presign_download(self, key):
        return self._presign(key, 'get')

    def resolve_token(self, token, op):
        """Return the key a token grants ``op`` on.

        Raises itsdangerous.SignatureExpired / BadSignature for expired,
        forged or wrong-operation tokens.
        """
        payload = self._signer.loads(token, max_age=self.expires_in)
        if payload.get('op') != op:
            raise BadSignature('token not valid for this operation')
        return payload['k']

    # -------- blob ops --------
    def write(self, key, data: bytes):
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp_path = f"{path}.part"
        with open(tmp_path, 'wb') as f:
            f.write(pack_blob(data, enabled=self.compression))
        os.replace(tmp_path, path)

    def read(self, key):
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, 'rb') as f:
            return unpack_blob(f.read())

    def exists(self, key):
        return os.path.exists(self._path(key))

    def delete(self, key):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass

    def list_keys(self):
        for dirpath, _, filenames in os.walk(self.root):
            for name in filenames:
                if name.endswith('.part'):
                    continue
                mtime = os.path.getmtime(os.path.join(dirpath, name))
                modified = datetime.fromtimestamp(mtime, tz=timezone.utc).replace(tzinfo=None)
                yield unquote(name), modified
