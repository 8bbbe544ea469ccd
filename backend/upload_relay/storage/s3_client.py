"""
S3-compatible storage client.

Uses boto3 with the S3 API. Works with AWS S3 or any S3-compatible
provider (R2, MinIO) when s3_endpoint is set.

Two upload paths go through here:
- Pre-signed: the client PUTs bytes directly using a signed URL
- Direct proxy: this server streams the bytes with upload_fileobj
"""
import logging
from typing import BinaryIO, Optional
from urllib.parse import quote, unquote, urlsplit
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from upload_relay.config import settings

logger = logging.getLogger(__name__)


class S3Client:
    """
    S3-compatible client for the upload bucket.

    Provides presigned PUT generation, public URL mapping,
    existence checks and direct uploads.
    """

    def __init__(self):
        """
        Initialize S3 client with boto3.

        Uses settings for configuration.
        Fails gracefully if not configured (is_configured stays False).
        """
        self._client = None
        self._configured = False

        if not all([
            settings.s3_bucket,
            settings.s3_access_key,
            settings.s3_secret_key
        ]):
            logger.warning(
                "S3 storage not configured. "
                "Set S3_BUCKET, S3_ACCESS_KEY and S3_SECRET_KEY."
            )
            return

        try:
            self._client = boto3.client(
                's3',
                endpoint_url=settings.s3_endpoint,
                aws_access_key_id=settings.s3_access_key,
                aws_secret_access_key=settings.s3_secret_key,
                region_name=settings.s3_region,
                config=Config(signature_version='s3v4')
            )
            self._configured = True
            logger.info(f"S3 client initialized for bucket: {settings.s3_bucket}")

        except NoCredentialsError:
            logger.error("S3 credentials not found or invalid")
        except (BotoCoreError, ValueError) as e:
            logger.error(f"Failed to initialize S3 client: {e}")

    @property
    def is_configured(self) -> bool:
        """Check if S3 client is properly configured."""
        return self._configured and self._client is not None

    @property
    def bucket(self) -> str:
        """Get configured bucket name."""
        return settings.s3_bucket

    @property
    def public_base_url(self) -> str:
        """Base URL under which stored objects are publicly readable."""
        if settings.s3_public_base_url:
            return settings.s3_public_base_url.rstrip('/')
        if settings.s3_endpoint:
            # Path-style URL for custom endpoints
            return f"{settings.s3_endpoint.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.{settings.s3_region}.amazonaws.com"

    def public_url_for(self, object_key: str) -> str:
        """
        Deterministic public read URL for a key.

        Does not contact storage; the object may not exist yet.
        """
        return f"{self.public_base_url}/{quote(object_key, safe='/')}"

    def key_from_public_url(self, url: str) -> Optional[str]:
        """
        Inverse of public_url_for.

        Returns None when the URL does not point into this bucket.
        """
        base = urlsplit(self.public_base_url)
        target = urlsplit(url)
        if (target.scheme, target.netloc) != (base.scheme, base.netloc):
            return None
        base_path = base.path.rstrip('/') + '/'
        if not target.path.startswith(base_path):
            return None
        key = unquote(target.path[len(base_path):])
        return key or None

    def generate_presigned_upload_url(
        self,
        object_key: str,
        content_type: Optional[str] = None,
        expiration: Optional[int] = None
    ) -> Optional[str]:
        """
        Generate a presigned PUT URL for direct upload.

        Args:
            object_key: The S3 object key (path in bucket)
            content_type: MIME type to bind into the signature, or None
                to leave the Content-Type header unsigned
            expiration: URL expiration in seconds (default from settings)

        Returns:
            Presigned URL string, or None if generation fails

        Security:
            - URL expires after specified time
            - Only allows PUT (upload), not GET
            - Content-Type must match what was signed, when signed
        """
        if not self.is_configured:
            logger.error("Cannot generate presigned URL: S3 not configured")
            return None

        if expiration is None:
            expiration = settings.presign_expiration

        params = {
            'Bucket': self.bucket,
            'Key': object_key,
        }
        if content_type:
            params['ContentType'] = content_type

        try:
            url = self._client.generate_presigned_url(
                ClientMethod='put_object',
                Params=params,
                ExpiresIn=expiration,
                HttpMethod='PUT'
            )

            logger.debug(f"Generated presigned URL for {object_key}")
            return url

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned URL for {object_key}: {e}")
            return None

    def upload_fileobj(
        self,
        object_key: str,
        fileobj: BinaryIO,
        content_type: Optional[str] = None
    ) -> bool:
        """
        Upload a file-like object to the bucket.

        Args:
            object_key: The S3 object key to write
            fileobj: Readable binary stream
            content_type: MIME type stored on the object

        Returns:
            True if the upload succeeded, False otherwise
        """
        if not self.is_configured:
            logger.warning(f"Cannot upload {object_key}: S3 not configured")
            return False

        extra_args = {'ContentType': content_type} if content_type else None

        try:
            self._client.upload_fileobj(
                fileobj, self.bucket, object_key, ExtraArgs=extra_args
            )
            logger.debug(f"Uploaded {object_key} to S3")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {object_key} to S3: {e}")
            return False

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        return error.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound')

    def check_object_exists(self, object_key: str) -> bool:
        """
        Check if an object exists in the bucket.

        Used to verify pre-signed uploads before they are recorded.

        Args:
            object_key: The S3 object key to check

        Returns:
            True if object exists, False if storage answered "not found"
            (or storage is not configured)

        Raises:
            ClientError: any other error response (403, throttling, 5xx)
            BotoCoreError: the request never got an answer
        """
        if not self.is_configured:
            return False

        try:
            self._client.head_object(Bucket=self.bucket, Key=object_key)
            return True
        except ClientError as e:
            if self._is_not_found(e):
                return False
            raise

    def get_object_size(self, object_key: str) -> Optional[int]:
        """
        Get the size of an object in bytes.

        Returns:
            Size in bytes, or None if object not found

        Raises:
            ClientError, BotoCoreError: as for check_object_exists
        """
        if not self.is_configured:
            return None

        try:
            response = self._client.head_object(Bucket=self.bucket, Key=object_key)
            return response.get('ContentLength')
        except ClientError as e:
            if self._is_not_found(e):
                return None
            raise


# Singleton instance
_s3_client: Optional[S3Client] = None


def get_s3_client() -> S3Client:
    """
    Get the singleton S3 client instance.

    Returns:
        S3Client instance (may or may not be configured)
    """
    global _s3_client
    if _s3_client is None:
        _s3_client = S3Client()
    return _s3_client
