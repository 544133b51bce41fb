"""
Errors raised while building and serving uploaded documents.

Infrastructure code raises these; the cloud builder catches them at its
boundary and turns them into error results.
"""

from typing import Optional


class AwsErrorCode:
    """Provider error codes the cloud builder knows how to explain."""
    NO_SUCH_BUCKET = "NoSuchBucket"
    NO_SUCH_KEY = "NoSuchKey"
    INVALID_BUCKET_NAME = "InvalidBucketName"
    BUCKET_ALREADY_EXISTS = "BucketAlreadyExists"
    BUCKET_ALREADY_OWNED_BY_YOU = "BucketAlreadyOwnedByYou"


class CloudBuilderError(Exception):
    """Base class for cloud builder failures."""
    pass


class CredentialsMissingError(CloudBuilderError):
    """Raised when the selected credential set lacks an access or secret key."""
    pass


class InvalidCredentialsError(CredentialsMissingError):
    """Raised by the client factory when asked to build a client without keys."""
    pass


class MediaNotFoundError(CloudBuilderError):
    """Raised when a media record doesn't exist or belongs to another user."""
    pass


class ProviderError(CloudBuilderError):
    """
    Failure surfaced by the object store provider.

    `code` carries the provider's error code (e.g. "NoSuchBucket").
    It is None when the failure never reached the provider, such as a
    transport error inside the SDK.
    """

    def __init__(self, code: Optional[str], message: str = "") -> None:
        self.code = code
        self.message = message or (code or "Object store request failed")
        super().__init__(self.message)

    @property
    def is_upstream_unavailable(self) -> bool:
        return self.code is None
