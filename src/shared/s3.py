"""S3 access for receipt photos."""

import logging
from typing import Dict, Optional

import boto3
from botocore.exceptions import ClientError

from .config import Settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class S3Client:
    """Object storage for one bucket."""

    def __init__(self, bucket_name: str, settings: Settings):
        """
        Args:
            bucket_name: Name of the S3 bucket
            settings: Deployment settings (region, LocalStack endpoint)
        """
        self.bucket_name = bucket_name
        self.s3 = boto3.client(
            's3',
            region_name=settings.region,
            endpoint_url=settings.endpoint_url
        )

    def upload_file(
        self,
        file_content: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        cache_control: Optional[str] = None
    ) -> str:
        """
        Store an object, encrypted at rest.

        Args:
            file_content: Object body
            key: Object key
            content_type: Optional Content-Type
            metadata: Optional user metadata
            cache_control: Optional Cache-Control header

        Returns:
            The object key

        Raises:
            StorageError: If S3 rejects the upload
        """
        request = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': file_content,
            'ServerSideEncryption': 'AES256'
        }
        optional = {
            'ContentType': content_type,
            'Metadata': metadata,
            'CacheControl': cache_control
        }
        request.update({name: value for name, value in optional.items() if value})

        try:
            self.s3.put_object(**request)
        except ClientError as e:
            logger.error(f"Upload of s3://{self.bucket_name}/{key} failed: {e}")
            raise StorageError(f"Failed to upload file: {e}")

        logger.info(f"Stored s3://{self.bucket_name}/{key}")
        return key

    def delete_file(self, key: str) -> None:
        """
        Remove an object.

        Raises:
            StorageError: If S3 rejects the deletion
        """
        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            logger.error(f"Deletion of s3://{self.bucket_name}/{key} failed: {e}")
            raise StorageError(f"Failed to delete file: {e}")

        logger.info(f"Deleted s3://{self.bucket_name}/{key}")
