"""
HTML document upload logic.

Contains the domain models, error taxonomy, upload orchestrator and the
cloud builder request handlers.
"""

from .builder import CloudBuilder, FindParams, error_message_for
from .errors import (
    AwsErrorCode,
    CloudBuilderError,
    CredentialsMissingError,
    InvalidCredentialsError,
    MediaNotFoundError,
    ProviderError,
)
from .models import (
    BucketSummary,
    CloudProvider,
    CredentialSet,
    MediaQuery,
    MediaRecord,
    MediaType,
    ResultStatus,
    ServiceResult,
    StoredObject,
    UpdateRequest,
    UploadRequest,
    UploadResult,
)
from .orchestrator import UploadOrchestrator

__all__ = [
    "AwsErrorCode",
    "BucketSummary",
    "CloudBuilder",
    "CloudBuilderError",
    "CloudProvider",
    "CredentialSet",
    "CredentialsMissingError",
    "FindParams",
    "InvalidCredentialsError",
    "MediaNotFoundError",
    "MediaQuery",
    "MediaRecord",
    "MediaType",
    "ProviderError",
    "ResultStatus",
    "ServiceResult",
    "StoredObject",
    "UpdateRequest",
    "UploadOrchestrator",
    "UploadRequest",
    "UploadResult",
    "error_message_for",
]
