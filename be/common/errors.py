class StorageError(Exception):
    """Base class for every failure the storage engine reports to callers.

    Each subclass maps to one stable error kind; ``code`` is the non-zero
    envelope code and ``http_status`` the status used by the routes.
    """
    kind = 'internal'
    code = 1
    http_status = 500

    def __init__(self, msg=None):
        super().__init__(msg or self.kind)
        self.msg = msg or self.kind


class NotFound(StorageError):
    kind = 'not_found'
    code = 404
    http_status = 404


class InvalidArgument(StorageError):
    kind = 'invalid_argument'
    code = 400
    http_status = 400


class PreconditionFailed(StorageError):
    kind = 'precondition_failed'
    code = 412
    http_status = 412


class QuotaExceeded(StorageError):
    kind = 'quota_exceeded'
    code = 413
    http_status = 413


class RateLimited(StorageError):
    kind = 'rate_limited'
    code = 429
    http_status = 429


class Conflict(StorageError):
    kind = 'conflict'
    code = 409
    http_status = 409


class Internal(StorageError):
    kind = 'internal'
    code = 500
    http_status = 500
