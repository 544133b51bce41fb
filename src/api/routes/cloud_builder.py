"""
Cloud builder API endpoints.

Upload HTML documents to the user's own S3 buckets, list and read them
back, and overwrite them in place.

Unlike the other routers, these endpoints always answer 200 with a
{"status", "data"} envelope: failures come back as
{"status": "error", "data": "<message>"} rather than HTTP errors, so the
frontend can show the message as is. Only request validation and
authentication still fail at the HTTP level.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.media.builder import FindParams
from ...core.media.models import CloudProvider, UpdateRequest, UploadRequest
from ..dependencies import CloudBuilderDep, CurrentUserId, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateDocumentRequest(BaseModel):
    """Upload a new HTML document."""
    model_config = ConfigDict(populate_by_name=True)

    cloud: CloudProvider = Field(
        default=CloudProvider.S3,
        description="Cloud provider to upload to"
    )
    aws_account: str = Field(
        alias="awsAccount",
        min_length=1,
        description="Label of the saved AWS account to use"
    )
    bucket: str = Field(min_length=1, description="Target bucket name")
    new_bucket: bool = Field(
        default=False,
        alias="newBucket",
        description="Create the bucket before uploading"
    )
    region: Optional[str] = Field(
        default=None,
        description="Bucket region. Inferred from earlier uploads when omitted."
    )
    name: str = Field(
        min_length=1,
        pattern=r"\S",
        description="File name, used in the object key"
    )
    html: str = Field(description="Document content")


class UpdateDocumentRequest(BaseModel):
    """Overwrite an uploaded document."""
    model_config = ConfigDict(populate_by_name=True)

    media_id: Optional[str] = Field(
        default=None,
        alias="_id",
        description="Media record ID. Takes precedence over the path ID."
    )
    html: str = Field(description="New document content")
    name: str = Field(min_length=1, description="New display name")


class ServiceResponse(BaseModel):
    """Envelope returned by every cloud builder endpoint."""
    status: str = Field(description="'success' or 'error'")
    data: Any = Field(default=None, description="Payload, or error message")


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def _check_size(html: str, max_kb: int) -> None:
    if len(html.encode("utf-8")) > max_kb * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Document too large. Maximum size: {max_kb}KB"
        )


def _flag(value: Optional[str]) -> bool:
    """Query flags count as set when present, unless explicitly false."""
    return value is not None and value.strip().lower() not in ("false", "0", "no")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ServiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload document",
    description="Upload an HTML document to S3 and record it in the media store",
)
async def create_document(
    request: CreateDocumentRequest,
    user_id: CurrentUserId,
    builder: CloudBuilderDep,
    settings: SettingsDep,
) -> ServiceResponse:
    _check_size(request.html, settings.max_html_size_kb)

    logger.info(
        "Document upload started",
        extra={
            "user_id": user_id,
            "bucket": request.bucket,
            "new_bucket": request.new_bucket,
            "file_name": request.name,
        }
    )

    result = await builder.create(
        UploadRequest(
            account_label=request.aws_account,
            bucket_name=request.bucket,
            file_name=request.name,
            html_content=request.html,
            cloud_provider=request.cloud,
            is_new_bucket=request.new_bucket,
            region=request.region or None,
        ),
        user_id,
    )
    return ServiceResponse(**result.to_dict())


@router.get(
    "",
    response_model=ServiceResponse,
    status_code=status.HTTP_200_OK,
    summary="List documents or buckets",
    description="With bucketList, list the account's S3 buckets; otherwise list uploaded HTML documents",
)
async def find_documents(
    user_id: CurrentUserId,
    builder: CloudBuilderDep,
    bucket_list: Annotated[Optional[str], Query(alias="bucketList")] = None,
    aws_account: Annotated[Optional[str], Query(alias="awsAccount")] = None,
    bucket: Optional[str] = None,
    search: Optional[str] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ServiceResponse:
    result = await builder.find(
        FindParams(
            bucket_list=_flag(bucket_list),
            account_label=aws_account,
            bucket_name=bucket,
            search=search,
            limit=limit,
        ),
        user_id,
    )
    return ServiceResponse(**result.to_dict())


@router.get(
    "/{media_id}",
    response_model=ServiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Get document content",
    description="Return the stored HTML for a media record",
)
async def get_document(
    media_id: str,
    user_id: CurrentUserId,
    builder: CloudBuilderDep,
) -> ServiceResponse:
    result = await builder.get(media_id, user_id)
    return ServiceResponse(**result.to_dict())


@router.put(
    "/{media_id}",
    response_model=ServiceResponse,
    status_code=status.HTTP_200_OK,
    summary="Update document",
    description="Overwrite a document's content in S3 and rename its media record",
)
async def update_document(
    media_id: str,
    request: UpdateDocumentRequest,
    user_id: CurrentUserId,
    builder: CloudBuilderDep,
    settings: SettingsDep,
) -> ServiceResponse:
    _check_size(request.html, settings.max_html_size_kb)

    result = await builder.update(
        media_id,
        UpdateRequest(
            html_content=request.html,
            name=request.name,
            media_id=request.media_id,
        ),
        user_id,
    )
    return ServiceResponse(**result.to_dict())
