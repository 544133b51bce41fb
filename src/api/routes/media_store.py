"""
Media store API endpoints.

Plain CRUD over media records, the collection the cloud builder writes
to. Records are always scoped to the calling user; another user's
record is reported as missing.

Removing a record does not delete the object it points at.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.media.errors import MediaNotFoundError
from ...core.media.models import CloudProvider, MediaQuery, MediaRecord, MediaType
from ..dependencies import CurrentUserId, MediaRepositoryDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class MediaRecordResponse(BaseModel):
    """A media record as stored."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str = Field(alias="userId")
    name: str
    thumb: str = Field(description="Object location")
    key: str = Field(description="Object key")
    bucket: str
    region: Optional[str] = None
    type: str
    cloud: str
    aws_account: Optional[str] = Field(default=None, alias="awsAccount")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @classmethod
    def from_record(cls, record: MediaRecord) -> "MediaRecordResponse":
        return cls.model_validate(record.to_dict())


class MediaListResponse(BaseModel):
    total: int = Field(description="Number of records returned")
    limit: int = Field(description="Limit applied to the query")
    data: list[MediaRecordResponse]


class CreateMediaRequest(BaseModel):
    """Register an object that is already in the object store."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    thumb: str = Field(description="Object location")
    key: str = Field(min_length=1, description="Object key")
    bucket: str = Field(min_length=1)
    region: Optional[str] = None
    type: MediaType = MediaType.HTML
    cloud: CloudProvider = CloudProvider.S3
    aws_account: Optional[str] = Field(default=None, alias="awsAccount")


class PatchMediaRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    thumb: Optional[str] = None


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def _load_owned(repository, media_id: str, user_id: str) -> MediaRecord:
    try:
        record = repository.get(media_id)
    except MediaNotFoundError:
        record = None

    if record is None or record.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Media not found"
        )
    return record


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=MediaListResponse,
    status_code=status.HTTP_200_OK,
    summary="Find media records",
    description="List the caller's media records, newest first. `search` matches names case-insensitively.",
)
async def find_media(
    user_id: CurrentUserId,
    repository: MediaRepositoryDep,
    bucket: Optional[str] = None,
    media_type: Annotated[Optional[MediaType], Query(alias="type")] = None,
    search: Optional[str] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> MediaListResponse:
    records = repository.find(MediaQuery(
        user_id=user_id,
        bucket_name=bucket,
        media_type=media_type,
        search=search,
        limit=limit,
    ))

    return MediaListResponse(
        total=len(records),
        limit=limit,
        data=[MediaRecordResponse.from_record(record) for record in records],
    )


@router.get(
    "/{media_id}",
    response_model=MediaRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Get media record",
)
async def get_media(
    media_id: str,
    user_id: CurrentUserId,
    repository: MediaRepositoryDep,
) -> MediaRecordResponse:
    return MediaRecordResponse.from_record(_load_owned(repository, media_id, user_id))


@router.post(
    "",
    response_model=MediaRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create media record",
)
async def create_media(
    request: CreateMediaRequest,
    user_id: CurrentUserId,
    repository: MediaRepositoryDep,
) -> MediaRecordResponse:
    record = repository.create(MediaRecord(
        user_id=user_id,
        name=request.name,
        thumbnail_url=request.thumb,
        object_key=request.key,
        bucket_name=request.bucket,
        region=request.region,
        media_type=request.type,
        cloud_provider=request.cloud,
        account_label=request.aws_account,
    ))

    logger.info(
        "Media record created",
        extra={"user_id": user_id, "media_id": record.id}
    )

    return MediaRecordResponse.from_record(record)


@router.patch(
    "/{media_id}",
    response_model=MediaRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Patch media record",
)
async def patch_media(
    media_id: str,
    request: PatchMediaRequest,
    user_id: CurrentUserId,
    repository: MediaRepositoryDep,
) -> MediaRecordResponse:
    _load_owned(repository, media_id, user_id)
    record = repository.patch(media_id, name=request.name, thumbnail_url=request.thumb)
    return MediaRecordResponse.from_record(record)


@router.delete(
    "/{media_id}",
    response_model=MediaRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove media record",
    description="Delete the record. The stored object is not touched.",
)
async def remove_media(
    media_id: str,
    user_id: CurrentUserId,
    repository: MediaRepositoryDep,
) -> MediaRecordResponse:
    _load_owned(repository, media_id, user_id)
    record = repository.remove(media_id)
    return MediaRecordResponse.from_record(record)
