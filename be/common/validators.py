import re

from common.errors import InvalidArgument
from utils.hash import is_sha256_hex

MAX_NAME_LENGTH = 255

_FORBIDDEN_CHARS = re.compile(r'[/\\:*?"<>|\x00]')
_RESERVED_NAMES = re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)', re.IGNORECASE)
_CONTENT_TYPE = re.compile(r'^[a-z]+/[a-z0-9.+-]+(\s*;\s*[a-z0-9-]+=\S+)*$', re.IGNORECASE)


def validate_name(name):
    """Validate a file or folder display name."""
    if not isinstance(name, str) or not name:
        raise InvalidArgument("Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidArgument(f"Name must be {MAX_NAME_LENGTH} characters or less")
    if _FORBIDDEN_CHARS.search(name):
        raise InvalidArgument("Name contains invalid characters")
    if '..' in name:
        raise InvalidArgument("Name cannot contain path traversal sequences")
    if _RESERVED_NAMES.match(name):
        raise InvalidArgument("Name is a reserved system name")
    return name


def validate_hash(value):
    normalized = value.lower() if isinstance(value, str) else value
    if not is_sha256_hex(normalized):
        raise InvalidArgument("Invalid SHA-256 hash")
    return normalized


def validate_size(size, max_size):
    if isinstance(size, bool) or not isinstance(size, int):
        raise InvalidArgument("File size must be an integer")
    if size <= 0:
        raise InvalidArgument("File size must be positive")
    if size > max_size:
        raise InvalidArgument(f"File size cannot exceed {max_size} bytes")
    return size


def validate_content_type(content_type):
    if content_type is None:
        return None
    if not isinstance(content_type, str) or not _CONTENT_TYPE.match(content_type):
        raise InvalidArgument("Invalid MIME type format")
    return content_type
