"""Cloudflare R2 storage for review media, using the S3-compatible API"""
import logging
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from reviewloop.core.config import settings
from reviewloop.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def _encode_object_key_for_url(object_key: str) -> str:
    """URL-encode each path segment while keeping '/' as the separator"""
    if not object_key:
        return ""
    return '/'.join(quote(segment, safe='') for segment in object_key.split('/'))


def build_object_key(merchant_id: int, review_id: int, file_id: str, extension: Optional[str] = None) -> str:
    """Object key for a review upload: <merchant>/<review>/<file>[.ext]"""
    filename = f"{file_id}.{extension}" if extension else file_id
    return f"{merchant_id}/{review_id}/{filename}"


class R2Service:
    """Service for interacting with Cloudflare R2 storage"""

    def __init__(self):
        """Initialize R2 service with configuration from settings"""
        if not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
            raise StorageError("R2 configuration is missing. Set R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY environment variables.")

        if not settings.R2_BUCKET_NAME:
            raise StorageError("R2_BUCKET_NAME is not set. Set R2_BUCKET_NAME environment variable.")

        if not settings.R2_ENDPOINT_URL:
            raise StorageError("R2_ENDPOINT_URL is not set. Set R2_ENDPOINT_URL environment variable.")

        if not settings.R2_PUBLIC_URL:
            raise StorageError("R2_PUBLIC_URL is not set. Set R2_PUBLIC_URL environment variable.")

        self.bucket = settings.R2_BUCKET_NAME
        self.public_url = settings.R2_PUBLIC_URL.rstrip('/')

        self.s3_client = boto3.client(
            's3',
            endpoint_url=settings.R2_ENDPOINT_URL,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4')
        )
        logger.info(f"R2Service initialized for bucket: {self.bucket}")

    def get_public_url(self, object_key: str) -> str:
        """Publicly fetchable URL for an object"""
        return f"{self.public_url}/{_encode_object_key_for_url(object_key)}"

    def upload_bytes(self, data: bytes, object_key: str, content_type: Optional[str] = None) -> str:
        """Upload an in-memory file and return its public URL

        Raises:
            StorageError: If the upload fails
        """
        if not object_key:
            raise StorageError("object_key cannot be empty")

        params = {'Bucket': self.bucket, 'Key': object_key, 'Body': data}
        if content_type:
            params['ContentType'] = content_type

        try:
            self.s3_client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {object_key} to R2: {e}", exc_info=True)
            raise StorageError("Failed to upload file. Please try again.")

        logger.info(f"Uploaded {len(data)} bytes to R2 as {object_key}")
        return self.get_public_url(object_key)

    def delete_object(self, object_key: str) -> bool:
        """Delete an object; True if it is gone, False on error"""
        if not object_key:
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=object_key)
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'NoSuchKey':
                return True
            logger.error(f"Failed to delete {object_key} from R2: {e}", exc_info=True)
            return False
        except BotoCoreError as e:
            logger.error(f"Failed to delete {object_key} from R2: {e}", exc_info=True)
            return False

        logger.info(f"Deleted {object_key} from R2")
        return True


_r2_service = None


def get_r2_service() -> R2Service:
    """Get or create the R2 service (lazy so tests can patch before first use)"""
    global _r2_service
    if _r2_service is None:
        _r2_service = R2Service()
    return _r2_service
