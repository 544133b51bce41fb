"""
Domain models for uploaded HTML documents.

These models describe what the cloud builder works with: the credential
sets a user saves, the upload/update requests coming in, the metadata
record persisted per uploaded object, and the result value handed back to
callers. Nothing here knows about boto3, Snowflake or FastAPI.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4


class CloudProvider(Enum):
    """Object store providers a document can be uploaded to."""
    S3 = "s3"


class MediaType(Enum):
    """Kinds of media tracked in the media store."""
    HTML = "html"


class ResultStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CredentialSet:
    """
    A named access/secret key pair saved in a user's settings.

    Frozen because a credential set is looked up per request and passed
    down unchanged to every object store call of that request.
    """
    label: str
    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Both keys present and non-empty."""
        return bool(self.access_key) and bool(self.secret_key)

    def __repr__(self) -> str:
        # Keys stay out of logs and tracebacks
        return f"CredentialSet(label={self.label!r})"


@dataclass
class UploadRequest:
    """A single create call: one HTML document going to one bucket."""
    account_label: str
    bucket_name: str
    file_name: str
    html_content: Union[str, bytes]
    cloud_provider: CloudProvider = CloudProvider.S3
    is_new_bucket: bool = False
    region: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.file_name.strip():
            raise ValueError("File name cannot be empty")


@dataclass
class UpdateRequest:
    """New content and name for an existing media record."""
    html_content: Union[str, bytes]
    name: str
    media_id: Optional[str] = None


@dataclass
class UploadResult:
    """Where an uploaded object ended up."""
    location: str
    bucket: str
    key: str


@dataclass
class StoredObject:
    """
    Object content fetched back from the object store.

    `data` holds the stored bytes unchanged. `body` is the text view handed
    to clients; bytes that are not valid UTF-8 become U+FFFD instead of
    failing the read.
    """
    data: bytes
    content_type: Optional[str] = None

    @property
    def body(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass
class BucketSummary:
    name: str
    creation_date: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "creation_date": self.creation_date.isoformat() if self.creation_date else None,
        }


@dataclass
class MediaRecord:
    """
    Metadata about one uploaded object.

    A record points at exactly one (bucket_name, object_key, region)
    triple. The object store never learns about the record, so the two
    are only kept consistent on a best-effort basis.
    """
    user_id: str
    name: str
    thumbnail_url: str
    object_key: str
    bucket_name: str
    region: Optional[str] = None
    media_type: MediaType = MediaType.HTML
    cloud_provider: CloudProvider = CloudProvider.S3
    account_label: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the field names clients of the media store expect."""
        return {
            "_id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "thumb": self.thumbnail_url,
            "key": self.object_key,
            "bucket": self.bucket_name,
            "region": self.region,
            "type": self.media_type.value,
            "cloud": self.cloud_provider.value,
            "awsAccount": self.account_label,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class MediaQuery:
    """
    Filter for media store lookups.

    `search` is handed to the store as-is; how loosely it matches is up
    to the store.
    """
    user_id: str
    bucket_name: Optional[str] = None
    media_type: Optional[MediaType] = None
    search: Optional[str] = None
    limit: int = 50

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("Query limit must be positive")


@dataclass
class ServiceResult:
    """
    What every cloud builder handler returns.

    Failures are values, not exceptions: callers always get a status tag
    plus either the payload or a human-readable message.
    """
    status: ResultStatus
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> "ServiceResult":
        return cls(status=ResultStatus.SUCCESS, data=data)

    @classmethod
    def error(cls, message: str) -> "ServiceResult":
        return cls(status=ResultStatus.ERROR, data=message)

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "data": self.data}
