from datetime import timezone

import boto3
from botocore.exceptions import ClientError

from services.storage.base_storage import BaseStorage

_MISSING = ('404', 'NoSuchKey', 'NotFound')


class S3Storage(BaseStorage):
    def __init__(self, bucket_name, expires_in=3600, client=None, **client_kwargs):
        self.s3 = client or boto3.client('s3', **client_kwargs)
        self.bucket = bucket_name
        self.expires_in = expires_in

    @classmethod
    def from_config(cls, config):
        return cls(
            config['S3_BUCKET'],
            expires_in=config['PRESIGN_EXPIRES'],
            endpoint_url=config.get('S3_ENDPOINT_URL'),
            region_name=config.get('S3_REGION'),
            aws_access_key_id=config.get('AWS_ACCESS_KEY'),
            aws_secret_access_key=config.get('AWS_SECRET_KEY'),
        )

    def presign_upload(self, key):
        return self.s3.generate_presigned_url(
            'put_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=self.expires_in,
        )

    def presign_download(self, key):
        return self.s3.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=self.expires_in,
        )

    def exists(self, key):
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in _MISSING:
                return False
            raise
        return True

    def delete(self, key):
        # S3 delete is idempotent: deleting a missing key is not an error
        self.s3.delete_object(Bucket=self.bucket, Key=key)

    def list_keys(self):
        paginator = self.s3.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=self.bucket):
            for obj in page.get('Contents', []):
                last_modified = obj['LastModified'].astimezone(timezone.utc).replace(tzinfo=None)
                yield obj['Key'], last_modified
