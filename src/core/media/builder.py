"""
Cloud builder request handlers.

Each handler runs one use case on the UploadOrchestrator and converts the
outcome to a ServiceResult. This is the boundary where failures stop
being exceptions: provider error codes become fixed user-facing messages,
and anything else collapses to a generic one.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import AwsErrorCode, CredentialsMissingError, ProviderError
from .models import (
    MediaQuery,
    MediaType,
    ServiceResult,
    UpdateRequest,
    UploadRequest,
)
from .orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)


CREDENTIALS_MISSING_MESSAGE = "AWS credentials are missing."
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again!"

PROVIDER_ERROR_MESSAGES: dict[str, str] = {
    AwsErrorCode.NO_SUCH_BUCKET: "The specified bucket does not exist.",
    AwsErrorCode.INVALID_BUCKET_NAME: "The specified bucket is not valid.",
    AwsErrorCode.BUCKET_ALREADY_EXISTS: "The specified bucket already exists.",
    AwsErrorCode.BUCKET_ALREADY_OWNED_BY_YOU: "The specified bucket already owned by you.",
}


def error_message_for(exc: Exception) -> str:
    """Map a failure to the message shown to the user."""
    if isinstance(exc, CredentialsMissingError):
        return CREDENTIALS_MISSING_MESSAGE
    if isinstance(exc, ProviderError) and exc.code:
        return PROVIDER_ERROR_MESSAGES.get(exc.code, GENERIC_ERROR_MESSAGE)
    return GENERIC_ERROR_MESSAGE


@dataclass
class FindParams:
    """Query parameters accepted by CloudBuilder.find."""
    bucket_list: bool = False
    account_label: Optional[str] = None
    bucket_name: Optional[str] = None
    search: Optional[str] = None
    limit: int = 50


class CloudBuilder:
    """
    create / find / get / update for uploaded HTML documents.

    Handlers never raise; every path returns a ServiceResult.
    """

    def __init__(self, orchestrator: UploadOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def create(self, request: UploadRequest, user_id: str) -> ServiceResult:
        try:
            uploaded = await self._orchestrator.upload(user_id, request)
            return ServiceResult.success(uploaded)
        except Exception as e:
            return self._failed("Creating object in S3", e, user_id)

    async def find(self, params: FindParams, user_id: str) -> ServiceResult:
        try:
            if params.bucket_list:
                buckets = await self._orchestrator.list_buckets(user_id, params.account_label)
                return ServiceResult.success([bucket.to_dict() for bucket in buckets])

            records = self._orchestrator.find_media(MediaQuery(
                user_id=user_id,
                bucket_name=params.bucket_name,
                media_type=MediaType.HTML,
                search=params.search,
                limit=params.limit,
            ))
            return ServiceResult.success([record.to_dict() for record in records])
        except Exception as e:
            return self._failed("Finding media", e, user_id)

    async def get(self, media_id: str, user_id: str) -> ServiceResult:
        try:
            stored = await self._orchestrator.fetch(user_id, media_id)
            return ServiceResult.success(stored.body)
        except Exception as e:
            return self._failed("Getting object from S3", e, user_id)

    async def update(self, media_id: str, request: UpdateRequest, user_id: str) -> ServiceResult:
        try:
            updated = await self._orchestrator.overwrite(user_id, media_id, request)
            return ServiceResult.success(updated)
        except Exception as e:
            return self._failed("Updating object in S3", e, user_id)

    def _failed(self, action: str, exc: Exception, user_id: str) -> ServiceResult:
        logger.error(
            f"[{action}] failed",
            extra={
                "user_id": user_id,
                "error": str(exc),
                "code": getattr(exc, "code", None),
            },
        )
        return ServiceResult.error(error_message_for(exc))
