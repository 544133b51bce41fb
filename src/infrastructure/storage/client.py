"""
Object storage client for uploaded HTML documents.

Talks to AWS S3 through boto3, with a mock mode that keeps buckets and
objects in memory for local development and tests.

Every operation takes the caller's credentials and builds its own boto3
client for that single call. There is no module-level client: two
requests using different AWS accounts must never share one.

Provider failures are translated into ProviderError carrying the S3 error
code (e.g. "NoSuchBucket"), so callers never need to import botocore.
"""

import logging
import mimetypes
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Union
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from src.core.media.errors import (
    AwsErrorCode,
    InvalidCredentialsError,
    ProviderError,
)
from src.core.media.models import (
    BucketSummary,
    CredentialSet,
    StoredObject,
    UploadResult,
)
from src.core.media.orchestrator import DEFAULT_REGION, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_URL_TEMPLATE = "https://{bucket}.s3.{region}.amazonaws.com/{key}"
DEFAULT_CONTENT_TYPE = "text/html"


def check_public_url_template(template: str) -> None:
    """
    Fail fast on a location template that can't be filled.

    Only {bucket}, {region} and {key} are available, and {bucket} and {key}
    must both appear. Raises ValueError otherwise.
    """
    for placeholder in ("{bucket}", "{key}"):
        if placeholder not in template:
            raise ValueError(f"Public URL template is missing {placeholder}")
    try:
        template.format(bucket="bucket", region="region", key="key")
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid public URL template {template!r}: {e}")


@dataclass
class StorageConfig:
    """
    Configuration shared by all object store calls.

    Credentials are not part of it: they arrive with each call. The URL
    template is checked here so a bad one never gets as far as an upload.
    """
    default_region: str = DEFAULT_REGION
    key_prefix: str = ""
    public_url_template: str = DEFAULT_PUBLIC_URL_TEMPLATE
    endpoint_url: Optional[str] = None  # S3-compatible endpoints (LocalStack, MinIO)

    def __post_init__(self) -> None:
        check_public_url_template(self.public_url_template)


# ---------------------------------------------------------------------------
# Client factory and helpers
# ---------------------------------------------------------------------------

def create_s3_client(
    access_key_id: Optional[str],
    secret_access_key: Optional[str],
    region: Optional[str] = None,
    default_region: str = DEFAULT_REGION,
    endpoint_url: Optional[str] = None,
):
    """
    Build a boto3 S3 client for one set of credentials.

    Raises InvalidCredentialsError if either key is missing or empty.
    Falls back to `default_region` when no region is given.
    """
    if not access_key_id or not secret_access_key:
        raise InvalidCredentialsError("Access key and secret key are both required")

    try:
        import boto3
        from botocore.config import Config
    except ImportError:
        raise ImportError(
            "boto3 is required for S3 storage. Install with: pip install boto3"
        )

    return boto3.client(
        "s3",
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name=region or default_region,
        endpoint_url=endpoint_url,
        config=Config(signature_version="s3v4"),
    )


def build_object_key(prefix: str, user_id: str, file_name: str) -> str:
    """Object key convention: {prefix}/{user_id}/{file_name}."""
    parts = [prefix.strip("/"), str(user_id), file_name]
    return "/".join(part for part in parts if part)


def build_public_url(template: str, bucket: str, region: str, key: str) -> str:
    return template.format(bucket=bucket, region=region, key=quote(key, safe="/"))


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


def _to_bytes(body: Union[str, bytes]) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def _provider_error(e: Exception) -> ProviderError:
    """Translate a botocore exception into a ProviderError."""
    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        return ProviderError(error.get("Code"), error.get("Message", str(e)))
    return ProviderError(None, str(e))


# ---------------------------------------------------------------------------
# S3 Object Store
# ---------------------------------------------------------------------------

class S3ObjectStore:
    """
    AWS S3 object store.

    Methods are async to match the ObjectStore protocol even though boto3
    is synchronous. Retries are whatever boto3 does on its own.
    """

    def __init__(
        self,
        config: StorageConfig,
        client_factory: Callable = create_s3_client,
    ) -> None:
        self._config = config
        self._client_factory = client_factory

        logger.info(
            "Initialized S3 object store",
            extra={
                "default_region": config.default_region,
                "endpoint": config.endpoint_url,
            }
        )

    async def create_bucket(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        name: str,
    ) -> None:
        """
        Create a bucket.

        us-east-1 rejects an explicit LocationConstraint, every other
        region requires one.
        """
        region = self._region(region)
        params: dict = {"Bucket": name}
        if region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            s3 = self._client(credentials, region)
            s3.create_bucket(**params)
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "[S3 createBucket] failed",
                extra={"bucket": name, "region": region, "error": str(e)}
            )
            raise _provider_error(e)

    async def list_buckets(self, credentials: CredentialSet) -> list[BucketSummary]:
        try:
            s3 = self._client(credentials, None)
            response = s3.list_buckets()
        except (BotoCoreError, ClientError) as e:
            logger.error("[S3 listBuckets] failed", extra={"error": str(e)})
            raise _provider_error(e)

        return [
            BucketSummary(name=bucket["Name"], creation_date=bucket.get("CreationDate"))
            for bucket in response.get("Buckets", [])
        ]

    async def upload_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        user_id: str,
        file_name: str,
        body: Union[str, bytes],
    ) -> UploadResult:
        """
        Upload a new object.

        Key structure: {key_prefix}/{user_id}/{file_name}
        """
        key = build_object_key(self._config.key_prefix, user_id, file_name)
        location = await self.put_object(credentials, region, bucket, key, body)
        return UploadResult(location=location, bucket=bucket, key=key)

    async def get_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
    ) -> StoredObject:
        try:
            s3 = self._client(credentials, region)
            response = s3.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "[S3 getObject] failed",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise _provider_error(e)

        return StoredObject(
            data=body,
            content_type=response.get("ContentType"),
        )

    async def put_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
        body: Union[str, bytes],
    ) -> str:
        """Write (or overwrite) an object and return its public location."""
        region = self._region(region)
        data = _to_bytes(body)
        location = build_public_url(self._config.public_url_template, bucket, region, key)

        try:
            s3 = self._client(credentials, region)
            s3.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=guess_content_type(key),
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "[S3 putObject] failed",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise _provider_error(e)

        logger.debug(
            "Stored object",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
        )

        return location

    def _region(self, region: Optional[str]) -> str:
        return region or self._config.default_region

    def _client(self, credentials: CredentialSet, region: Optional[str]):
        return self._client_factory(
            access_key_id=credentials.access_key,
            secret_access_key=credentials.secret_key,
            region=region,
            default_region=self._config.default_region,
            endpoint_url=self._config.endpoint_url,
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

_BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


@dataclass
class _MockBucket:
    owner: str
    region: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)


class MockObjectStore:
    """
    In-memory object store for local development.

    Buckets are global (like S3's namespace) and owned by the access key
    that created them. Error codes mirror what S3 returns for the same
    situations, so the error mapping can be exercised without AWS.
    """

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self._config = config or StorageConfig()
        self._buckets: dict[str, _MockBucket] = {}
        logger.info("Initialized mock object store (in-memory)")

    async def create_bucket(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        name: str,
    ) -> None:
        self._check_credentials(credentials)

        if not _BUCKET_NAME_PATTERN.match(name) or ".." in name:
            raise ProviderError(AwsErrorCode.INVALID_BUCKET_NAME, f"Invalid bucket name: {name}")

        existing = self._buckets.get(name)
        if existing is not None:
            if existing.owner == credentials.access_key:
                raise ProviderError(AwsErrorCode.BUCKET_ALREADY_OWNED_BY_YOU, name)
            raise ProviderError(AwsErrorCode.BUCKET_ALREADY_EXISTS, name)

        self._buckets[name] = _MockBucket(
            owner=credentials.access_key,
            region=region or self._config.default_region,
        )
        logger.debug("Created bucket in mock store", extra={"bucket": name})

    async def list_buckets(self, credentials: CredentialSet) -> list[BucketSummary]:
        self._check_credentials(credentials)
        return [
            BucketSummary(name=name, creation_date=bucket.created_at)
            for name, bucket in self._buckets.items()
            if bucket.owner == credentials.access_key
        ]

    async def upload_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        user_id: str,
        file_name: str,
        body: Union[str, bytes],
    ) -> UploadResult:
        key = build_object_key(self._config.key_prefix, user_id, file_name)
        location = await self.put_object(credentials, region, bucket, key, body)
        return UploadResult(location=location, bucket=bucket, key=key)

    async def get_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
    ) -> StoredObject:
        stored = self._bucket(credentials, bucket)
        if key not in stored.objects:
            raise ProviderError(AwsErrorCode.NO_SUCH_KEY, f"Object not found: {key}")

        data, content_type = stored.objects[key]
        return StoredObject(data=data, content_type=content_type)

    async def put_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
        body: Union[str, bytes],
    ) -> str:
        location = build_public_url(
            self._config.public_url_template,
            bucket,
            region or self._config.default_region,
            key,
        )
        stored = self._bucket(credentials, bucket)
        stored.objects[key] = (_to_bytes(body), guess_content_type(key))

        return location

    def _bucket(self, credentials: CredentialSet, name: str) -> _MockBucket:
        self._check_credentials(credentials)
        if name not in self._buckets:
            raise ProviderError(AwsErrorCode.NO_SUCH_BUCKET, f"Bucket not found: {name}")
        return self._buckets[name]

    @staticmethod
    def _check_credentials(credentials: CredentialSet) -> None:
        if not credentials.is_complete:
            raise InvalidCredentialsError("Access key and secret key are both required")

    # Helper methods for testing
    def _add_bucket(self, name: str, owner: str, region: Optional[str] = None) -> None:
        """Add a bucket directly (for test setup)."""
        self._buckets[name] = _MockBucket(owner=owner, region=region or self._config.default_region)

    def _get_object_bytes(self, bucket: str, key: str) -> Optional[bytes]:
        """Raw stored bytes (for test assertions)."""
        stored = self._buckets.get(bucket)
        if stored is None or key not in stored.objects:
            return None
        return stored.objects[key][0]

    def _clear(self) -> None:
        self._buckets.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create the object store for the current configuration.

    Args:
        config: Storage configuration (defaults used when omitted)
        mock_mode: If True, return the in-memory store

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    config = config or StorageConfig()

    if mock_mode:
        return MockObjectStore(config)

    return S3ObjectStore(config)
