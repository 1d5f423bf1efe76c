"""Receipt photo upload utilities."""

import base64
import binascii
import logging
import secrets
import time
from typing import Optional
from urllib.parse import unquote, urlparse

from shared.config import Settings
from shared.exceptions import StorageError, ValidationError
from shared.s3 import S3Client

logger = logging.getLogger(__name__)

# Allowed photo types
ALLOWED_MIME_TYPES = {
    'image/jpeg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
    'image/heic': 'heic'
}

# Maximum photo size (5MB)
MAX_FILE_SIZE_MB = 5

CACHE_CONTROL = 'max-age=3600'


def decode_photo(data: str) -> bytes:
    """
    Decode a base64 photo payload, accepting an image data URI.

    Raises:
        ValidationError: If the payload is missing or not valid base64
    """
    if not data:
        raise ValidationError("Image data is required")

    if ',' in data:
        header, data = data.split(',', 1)
        if not header.startswith('data:image/'):
            raise ValidationError("Invalid image format")

    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 encoding")


class PhotoUploader:
    """Service for storing receipt photos attached to expenses."""

    def __init__(self, settings: Settings, s3_client: Optional[S3Client] = None):
        """
        Initialize photo uploader.

        Args:
            settings: Deployment settings
            s3_client: Optional preconfigured S3 client
        """
        self.settings = settings
        self.s3_client = s3_client or S3Client(settings.photos_bucket, settings)
        self.base_url = settings.photo_base_url()

    @staticmethod
    def validate_photo(mime_type: str, size_bytes: int) -> None:
        """
        Validate photo type and size.

        Raises:
            ValidationError: If the photo is too large or not an allowed type
        """
        if size_bytes > MAX_FILE_SIZE_MB * 1024 * 1024:
            raise ValidationError(f"Photo must be smaller than {MAX_FILE_SIZE_MB}MB")

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError("Photo must be JPEG, PNG, WebP, or HEIC format")

    def upload_expense_photo(
        self,
        user_id: str,
        base64_data: str,
        mime_type: str = 'image/jpeg',
        expense_id: Optional[str] = None
    ) -> str:
        """
        Upload a base64-encoded receipt photo.

        Args:
            user_id: Owner of the photo
            base64_data: Base64-encoded image, optionally a data URI
            mime_type: Image content type
            expense_id: Expense the photo belongs to, when already known

        Returns:
            Public URL of the stored photo

        Raises:
            ValidationError: If validation fails
            StorageError: If upload fails
        """
        content = decode_photo(base64_data)
        self.validate_photo(mime_type, len(content))

        key = f"{user_id}/{self._file_name(mime_type, expense_id)}"

        self.s3_client.upload_file(
            file_content=content,
            key=key,
            content_type=mime_type,
            metadata={'user_id': user_id},
            cache_control=CACHE_CONTROL
        )

        logger.info(f"Photo uploaded for user {user_id}: {key}")
        return f"{self.base_url}/{key}"

    def delete_expense_photo(self, photo_url: str) -> bool:
        """
        Delete a previously uploaded photo.

        Args:
            photo_url: Public URL returned by upload_expense_photo

        Returns:
            True if the photo was deleted, False otherwise
        """
        key = self.key_from_url(photo_url)
        if not key:
            logger.error(f"Invalid photo URL: {photo_url}")
            return False

        try:
            self.s3_client.delete_file(key)
        except StorageError as e:
            logger.error(f"Photo deletion failed: {e.message}")
            return False

        return True

    def key_from_url(self, photo_url: str) -> Optional[str]:
        """
        Resolve the object key of a photo URL.

        Returns:
            Object key, or None if the URL does not point into the photos bucket
        """
        if not photo_url:
            return None

        if photo_url.startswith(self.base_url + '/'):
            key = photo_url[len(self.base_url) + 1:]
            return unquote(key) or None

        # Path-style URLs: .../<bucket>/<key>
        parts = urlparse(photo_url).path.split('/')
        if self.settings.photos_bucket in parts:
            index = parts.index(self.settings.photos_bucket)
            key = '/'.join(parts[index + 1:])
            return unquote(key) or None

        return None

    @staticmethod
    def _file_name(mime_type: str, expense_id: Optional[str]) -> str:
        timestamp = int(time.time() * 1000)
        extension = ALLOWED_MIME_TYPES.get(mime_type, 'jpg')

        if expense_id:
            return f"{expense_id}_{timestamp}.{extension}"
        return f"temp_{timestamp}_{secrets.token_hex(4)}.{extension}"
