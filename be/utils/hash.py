import hashlib
import re

_SHA256_HEX = re.compile(r'^[a-f0-9]{64}$')


def sha256_bytes(data: bytes) -> str:
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()


def is_sha256_hex(value) -> bool:
    return isinstance(value, str) and _SHA256_HEX.match(value) is not None
