"""Unit tests for receipt photo uploads."""

import base64
import pytest
from unittest.mock import Mock
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from receipts.upload import CACHE_CONTROL, PhotoUploader
from shared.config import Settings
from shared.exceptions import StorageError, ValidationError

PHOTO = base64.b64encode(b'\xff\xd8\xff\xe0 fake jpeg').decode()


class TestPhotoUploader:
    """Test cases for PhotoUploader."""

    @pytest.fixture
    def settings(self):
        """Settings with the default virtual-hosted S3 URL."""
        return Settings(expenses_table='expenses-test', photos_bucket='photos-test', region='eu-west-1')

    @pytest.fixture
    def uploader(self, settings):
        """Uploader with a mocked S3 client."""
        return PhotoUploader(settings, s3_client=Mock())

    def test_upload_with_expense_id(self, uploader):
        """Test key layout and returned URL."""
        url = uploader.upload_expense_photo('user123', PHOTO, 'image/png', expense_id='exp1')

        kwargs = uploader.s3_client.upload_file.call_args[1]
        assert kwargs['key'].startswith('user123/exp1_')
        assert kwargs['key'].endswith('.png')
        assert kwargs['file_content'] == b'\xff\xd8\xff\xe0 fake jpeg'
        assert kwargs['content_type'] == 'image/png'
        assert kwargs['cache_control'] == CACHE_CONTROL
        assert url == f"https://photos-test.s3.eu-west-1.amazonaws.com/{kwargs['key']}"

    def test_upload_without_expense_id(self, uploader):
        """Test the temporary name used before an expense exists."""
        uploader.upload_expense_photo('user123', 'data:image/jpeg;base64,' + PHOTO)

        key = uploader.s3_client.upload_file.call_args[1]['key']
        assert key.startswith('user123/temp_')
        assert key.endswith('.jpg')

    def test_rejects_unsupported_type(self, uploader):
        """Test the content type whitelist."""
        with pytest.raises(ValidationError, match="JPEG, PNG, WebP, or HEIC"):
            uploader.upload_expense_photo('user123', PHOTO, 'image/gif')

        uploader.s3_client.upload_file.assert_not_called()

    def test_rejects_large_photo(self, uploader):
        """Test the size limit."""
        large = base64.b64encode(b'x' * (5 * 1024 * 1024 + 1)).decode()

        with pytest.raises(ValidationError, match="smaller than 5MB"):
            uploader.upload_expense_photo('user123', large)

    @pytest.mark.parametrize('data', ['', 'not base64!', 'data:text/plain;base64,aGVsbG8='])
    def test_rejects_bad_data(self, uploader, data):
        """Test that undecodable payloads are rejected."""
        with pytest.raises(ValidationError):
            uploader.upload_expense_photo('user123', data)

    def test_storage_error_propagates(self, uploader):
        """Test that upload failures surface to the caller."""
        uploader.s3_client.upload_file.side_effect = StorageError("Failed to upload file")

        with pytest.raises(StorageError):
            uploader.upload_expense_photo('user123', PHOTO)

    def test_delete_photo(self, uploader):
        """Test deleting by public URL."""
        deleted = uploader.delete_expense_photo(
            'https://photos-test.s3.eu-west-1.amazonaws.com/user123/exp1_1.jpg'
        )

        assert deleted is True
        uploader.s3_client.delete_file.assert_called_once_with('user123/exp1_1.jpg')

    def test_delete_photo_failure(self, uploader):
        """Test that a failed delete reports False."""
        uploader.s3_client.delete_file.side_effect = StorageError("Failed to delete file")

        assert uploader.delete_expense_photo(
            'https://photos-test.s3.eu-west-1.amazonaws.com/user123/exp1_1.jpg'
        ) is False

    def test_delete_foreign_url(self, uploader):
        """Test that URLs outside the bucket are not deleted."""
        assert uploader.delete_expense_photo('https://example.com/user123/a.jpg') is False
        uploader.s3_client.delete_file.assert_not_called()

    def test_key_from_path_style_url(self, uploader):
        """Test resolving a path-style URL."""
        assert uploader.key_from_url(
            'http://localhost:4566/photos-test/user123/exp1%20a.jpg'
        ) == 'user123/exp1 a.jpg'

    def test_public_url_setting(self):
        """Test a configured public base URL."""
        settings = Settings(
            expenses_table='t',
            photos_bucket='b',
            photos_public_url='https://cdn.example.com/photos/'
        )
        uploader = PhotoUploader(settings, s3_client=Mock())

        url = uploader.upload_expense_photo('u', PHOTO, expense_id='e')

        assert url.startswith('https://cdn.example.com/photos/u/e_')
        assert uploader.key_from_url(url).startswith('u/e_')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
