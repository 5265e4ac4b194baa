import gzip

# One-byte frame marker so stored bytes that happen to be gzip already
# are never mistaken for our own compression.
_RAW = b"R"
_GZIP = b"Z"


def pack_blob(data: bytes, enabled: bool = True) -> bytes:
    """Frame data for the local blob store, gzip-compressed if enabled and smaller."""
    if enabled and data:
        compressed = gzip.compress(data)
        if len(compressed) < len(data):
            return _GZIP + compressed
    return _RAW + data


def unpack_blob(blob: bytes) -> bytes:
    marker, body = blob[:1], blob[1:]
    if marker == _GZIP:
        return gzip.decompress(body)
    if marker == _RAW:
        return body
    raise ValueError("unrecognised blob frame")
