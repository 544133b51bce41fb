"""
Upload orchestration for HTML documents.

The orchestrator strings together the three collaborators every request
touches: the user's saved credential sets, the object store and the media
store. It is framework-agnostic. Collaborators are described as Protocols
so tests can hand in in-memory implementations.

Order of operations on create is object first, metadata second. If the
metadata write fails after a successful upload the object is left in the
bucket; there is no compensating delete.
"""

import logging
from typing import Optional, Protocol, Union

from .errors import CredentialsMissingError, MediaNotFoundError
from .models import (
    BucketSummary,
    CredentialSet,
    MediaQuery,
    MediaRecord,
    StoredObject,
    UpdateRequest,
    UploadRequest,
    UploadResult,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    Object store operations, one provider round trip each.

    Every call receives the credentials to use for that call only; no
    implementation may hold on to a client between calls.
    """

    async def create_bucket(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        name: str,
    ) -> None:
        ...

    async def list_buckets(self, credentials: CredentialSet) -> list[BucketSummary]:
        ...

    async def upload_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        user_id: str,
        file_name: str,
        body: Union[str, bytes],
    ) -> UploadResult:
        ...

    async def get_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
    ) -> StoredObject:
        ...

    async def put_object(
        self,
        credentials: CredentialSet,
        region: Optional[str],
        bucket: str,
        key: str,
        body: Union[str, bytes],
    ) -> str:
        """Overwrite an object and return its public location."""
        ...


class MediaStore(Protocol):
    """Document-collection style access to media records."""

    def create(self, record: MediaRecord) -> MediaRecord: ...
    def get(self, media_id: str) -> MediaRecord: ...
    def find(self, query: MediaQuery) -> list[MediaRecord]: ...

    def patch(
        self,
        media_id: str,
        name: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> MediaRecord: ...


class CredentialStore(Protocol):
    """Read access to the credential sets saved in user settings."""

    def get_aws_accounts(self, user_id: str) -> list[CredentialSet]: ...
    def get_aws_account(self, user_id: str, label: str) -> Optional[CredentialSet]: ...


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class UploadOrchestrator:
    """
    Coordinates credential selection, bucket creation, region inference,
    upload and metadata persistence.

    Errors are raised, not returned. Turning them into user-facing
    results is the job of the caller (see CloudBuilder).
    """

    def __init__(
        self,
        object_store: ObjectStore,
        media_store: MediaStore,
        credential_store: CredentialStore,
        default_region: str = DEFAULT_REGION,
    ) -> None:
        self._objects = object_store
        self._media = media_store
        self._credentials = credential_store
        self._default_region = default_region or DEFAULT_REGION

    # -----------------------------------------------------------------------
    # Credentials
    # -----------------------------------------------------------------------

    def resolve_credentials(self, user_id: str, label: Optional[str]) -> CredentialSet:
        """
        Pick the credential set for an account label.

        With no label the user's first saved account is used. A missing
        set, or one without both keys, is terminal.
        """
        if label:
            credentials = self._credentials.get_aws_account(user_id, label)
        else:
            accounts = self._credentials.get_aws_accounts(user_id)
            credentials = accounts[0] if accounts else None

        if credentials is None or not credentials.is_complete:
            logger.warning(
                "AWS credentials missing",
                extra={"user_id": user_id, "account_label": label},
            )
            raise CredentialsMissingError(
                f"No complete AWS credentials for account {label or '<default>'}"
            )

        return credentials

    def infer_region(self, user_id: str, bucket_name: str) -> str:
        """
        Reuse the region of the user's most recent upload to this bucket.

        Falls back to the default region when nothing has been uploaded
        there yet. Two concurrent first uploads to a new bucket can both
        take the fallback.
        """
        previous = self._media.find(
            MediaQuery(user_id=user_id, bucket_name=bucket_name, limit=1)
        )
        if previous and previous[0].region:
            return previous[0].region
        return self._default_region

    # -----------------------------------------------------------------------
    # Use cases
    # -----------------------------------------------------------------------

    async def upload(self, user_id: str, request: UploadRequest) -> dict:
        """
        Upload a document and record it.

        Returns {"location", "_id", "name"} for the new record.
        """
        credentials = self.resolve_credentials(user_id, request.account_label)

        if request.bucket_name and request.is_new_bucket:
            await self._objects.create_bucket(
                credentials, request.region, request.bucket_name
            )
            logger.info(
                "Created bucket",
                extra={"user_id": user_id, "bucket": request.bucket_name},
            )

        region = request.region or self.infer_region(user_id, request.bucket_name)

        uploaded = await self._objects.upload_object(
            credentials,
            region,
            request.bucket_name,
            user_id,
            request.file_name,
            request.html_content,
        )

        record = self._media.create(MediaRecord(
            user_id=user_id,
            name=request.file_name,
            thumbnail_url=uploaded.location,
            object_key=uploaded.key,
            bucket_name=uploaded.bucket,
            region=region,
            cloud_provider=request.cloud_provider,
            account_label=credentials.label,
        ))

        logger.info(
            "Document uploaded",
            extra={
                "user_id": user_id,
                "media_id": record.id,
                "bucket": uploaded.bucket,
                "key": uploaded.key,
                "region": region,
            },
        )

        return {"location": uploaded.location, "_id": record.id, "name": record.name}

    async def overwrite(self, user_id: str, media_id: str, request: UpdateRequest) -> dict:
        """
        Replace a document's content in place and rename its record.

        The object key does not change with the name. Returns
        {"location", "name"}.
        """
        record = self.load_record(user_id, request.media_id or media_id)
        credentials = self.credentials_for(record)

        location = await self._objects.put_object(
            credentials,
            record.region,
            record.bucket_name,
            record.object_key,
            request.html_content,
        )

        updated = self._media.patch(record.id, name=request.name, thumbnail_url=location)

        logger.info(
            "Document overwritten",
            extra={"user_id": user_id, "media_id": record.id, "key": record.object_key},
        )

        return {"location": location, "name": updated.name}

    async def fetch(self, user_id: str, media_id: str) -> StoredObject:
        """Read back the stored content for a media record."""
        record = self.load_record(user_id, media_id)
        credentials = self.credentials_for(record)

        return await self._objects.get_object(
            credentials, record.region, record.bucket_name, record.object_key
        )

    async def list_buckets(self, user_id: str, label: Optional[str] = None) -> list[BucketSummary]:
        credentials = self.resolve_credentials(user_id, label)
        return await self._objects.list_buckets(credentials)

    def find_media(self, query: MediaQuery) -> list[MediaRecord]:
        return self._media.find(query)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def load_record(self, user_id: str, media_id: str) -> MediaRecord:
        """Load a record, treating other users' records as missing."""
        record = self._media.get(media_id)
        if record.user_id != user_id:
            raise MediaNotFoundError(f"Media {media_id} not found")
        return record

    def credentials_for(self, record: MediaRecord) -> CredentialSet:
        """Credentials of the account that uploaded the record."""
        return self.resolve_credentials(record.user_id, record.account_label)
