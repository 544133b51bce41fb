"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes don't instantiate their own dependencies, so
tests can swap any of them through app.dependency_overrides.

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.media.builder import CloudBuilder
from ..core.media.orchestrator import ObjectStore, UploadOrchestrator
from ..infrastructure.snowflake.client import (
    LazySnowflakeConnection,
    MockSnowflakeConnection,
    create_snowflake_connection,
    snowflake_config_from_settings,
)
from ..infrastructure.snowflake.repositories.media import (
    MediaStoreRepository,
    SnowflakeConnection,
)
from ..infrastructure.snowflake.repositories.user_settings import UserSettingsRepository
from ..infrastructure.storage.client import StorageConfig, create_object_store

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Global mock instances (shared across requests in mock mode)
_mock_object_store = None
_mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def get_current_user_id(
    api_key: Annotated[str, Depends(verify_api_key)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Identify the caller.

    The user id comes from the X-User-Id header set by the gateway in
    front of this service. Every media operation is scoped to it.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identity required. Provide X-User-Id header.",
        )
    return x_user_id.strip()


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def get_database_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide a Snowflake connection for the duration of one request.

    This is a generator so FastAPI closes the connection after the
    response. Both repositories of a request share it. The connection is
    opened on first use, so a database outage is raised by the repository
    call that hit it, where cloud builder handlers turn it into an error
    result.

    In mock mode, the same in-memory connection is reused across requests
    so data persists for the lifetime of the process.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection")
        yield _mock_snowflake_connection
        return

    config = snowflake_config_from_settings(settings)
    conn = LazySnowflakeConnection(lambda: create_snowflake_connection(config=config))

    try:
        yield conn
    finally:
        conn.close()


def get_media_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_database_connection)],
) -> MediaStoreRepository:
    return MediaStoreRepository(connection)


def get_user_settings_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_database_connection)],
) -> UserSettingsRepository:
    return UserSettingsRepository(connection)


# ---------------------------------------------------------------------------
# Object Storage
# ---------------------------------------------------------------------------

def get_object_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStore:
    """
    Provide the object store.

    The S3 store holds configuration only; credentials are passed with
    each call, so a fresh instance per request is cheap. In mock mode the
    in-memory store is shared so uploads survive between requests.
    """
    global _mock_object_store

    config = StorageConfig(
        default_region=settings.aws_default_region,
        key_prefix=settings.s3_directory,
        public_url_template=settings.s3_public_url_template,
        endpoint_url=settings.s3_endpoint_url,
    )

    if settings.s3_mock_mode:
        if _mock_object_store is None:
            _mock_object_store = create_object_store(config, mock_mode=True)
            logger.info("Created shared mock object store")
        return _mock_object_store

    return create_object_store(config)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_upload_orchestrator(
    settings: Annotated[Settings, Depends(get_settings)],
    object_store: Annotated[ObjectStore, Depends(get_object_store)],
    media_store: Annotated[MediaStoreRepository, Depends(get_media_repository)],
    credential_store: Annotated[UserSettingsRepository, Depends(get_user_settings_repository)],
) -> UploadOrchestrator:
    return UploadOrchestrator(
        object_store=object_store,
        media_store=media_store,
        credential_store=credential_store,
        default_region=settings.aws_default_region,
    )


def get_cloud_builder(
    orchestrator: Annotated[UploadOrchestrator, Depends(get_upload_orchestrator)],
) -> CloudBuilder:
    return CloudBuilder(orchestrator)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
MediaRepositoryDep = Annotated[MediaStoreRepository, Depends(get_media_repository)]
UserSettingsRepositoryDep = Annotated[UserSettingsRepository, Depends(get_user_settings_repository)]
ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]
CloudBuilderDep = Annotated[CloudBuilder, Depends(get_cloud_builder)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
