# snapcast/services/r2_service.py

import logging
from functools import lru_cache

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import settings
from ..core.exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


class R2Service:
    """
    Service class for interacting with Cloudflare R2 Storage.
    Used for thumbnails; video bytes go to Bunny Stream instead.
    """
    def __init__(self, client, bucket_name: str, public_base_url: str | None = None, expiration: int = 3600):
        self.client = client
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.expiration = expiration

    @classmethod
    def from_settings(cls) -> "R2Service":
        if not (settings.R2_ENDPOINT_URL and settings.R2_ACCESS_KEY_ID and settings.R2_SECRET_ACCESS_KEY):
            raise ConfigurationError("Cloudflare R2 credentials are not configured.")
        client = boto3.client(
            service_name='s3',
            endpoint_url=settings.R2_ENDPOINT_URL,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4'),
            region_name='auto'  # For Cloudflare R2, 'auto' is standard
        )
        logger.info("Cloudflare R2 client created for bucket %s.", settings.R2_BUCKET_NAME)
        return cls(
            client,
            bucket_name=settings.R2_BUCKET_NAME,
            public_base_url=settings.R2_PUBLIC_BASE_URL,
            expiration=settings.R2_UPLOAD_EXPIRATION,
        )

    def generate_presigned_upload_url(self, object_key: str, content_type: str = "image/jpeg") -> str:
        """Signed URL for a single HTTP PUT of ``object_key``."""
        try:
            return self.client.generate_presigned_url(
                ClientMethod='put_object',
                Params={'Bucket': self.bucket_name, 'Key': object_key, 'ContentType': content_type},
                ExpiresIn=self.expiration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Error generating presigned URL for %s: %s", object_key, e)
            raise StorageError() from e

    def public_url(self, object_key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{object_key}"
        return f"{self.client.meta.endpoint_url}/{self.bucket_name}/{object_key}"


@lru_cache()
def get_r2_service() -> R2Service:
    return R2Service.from_settings()
