import os


def _flag(name, default):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    JWT_SECRET_KEY = os.getenv('JWT_SECRET', 'jwt-secret')

    # SQLite by default, PostgreSQL in production
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///cloud.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Blob store backend: local or s3
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local')
    BLOB_KEY_PREFIX = os.getenv('BLOB_KEY_PREFIX', '')
    PRESIGN_EXPIRES = int(os.getenv('PRESIGN_EXPIRES', '3600'))

    # Local blob store
    BLOB_STORE_DIR = os.getenv('BLOB_STORE_DIR', './uploads/.store')
    # presigned local URLs are served by the /blob blueprint; set an absolute URL behind a proxy
    LOCAL_BLOB_BASE_URL = os.getenv('LOCAL_BLOB_BASE_URL', '/blob')
    # gzip on write / gunzip on read for the local store
    ENABLE_COMPRESSION = _flag('ENABLE_COMPRESSION', 'true')

    # S3 / R2 / MinIO
    AWS_ACCESS_KEY = os.getenv('AWS_ACCESS_KEY', 'test-key')
    AWS_SECRET_KEY = os.getenv('AWS_SECRET_KEY', 'test-secret')
    S3_BUCKET = os.getenv('S3_BUCKET', 'cloud-drive-bucket')
    S3_ENDPOINT_URL = os.getenv('S3_ENDPOINT_URL')
    S3_REGION = os.getenv('S3_REGION', 'auto')

    # Admission control
    DEFAULT_STORAGE_LIMIT = int(os.getenv('STORAGE_LIMIT_BYTES', str(1024 ** 3)))
    DEFAULT_RATE_LIMIT = int(os.getenv('RATE_LIMIT_PER_SECOND', '2'))
    RATE_LIMIT_WINDOW_MS = int(os.getenv('RATE_LIMIT_WINDOW_MS', '1000'))
    RATE_LIMIT_RETENTION_WINDOWS = int(os.getenv('RATE_LIMIT_RETENTION_WINDOWS', '60'))
    MAX_FILE_SIZE = int(os.getenv('MAX_FILE_SIZE', str(10 * 1024 ** 3)))

    # Folder cascades
    CASCADE_BATCH_SIZE = int(os.getenv('CASCADE_BATCH_SIZE', '500'))

    # Orphan sweep: blobs younger than this may still be awaiting confirm_upload
    ORPHAN_GRACE_SECONDS = int(os.getenv('ORPHAN_GRACE_SECONDS', '86400'))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-secret'
    DEFAULT_RATE_LIMIT = 1000
    LOG_LEVEL = 'DEBUG'
