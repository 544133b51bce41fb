"""
Object storage integration for uploaded documents.

Wraps AWS S3 via boto3. Includes mock mode for local development without
credentials.
"""

from .client import (
    MockObjectStore,
    S3ObjectStore,
    StorageConfig,
    create_object_store,
    create_s3_client,
)

__all__ = [
    "MockObjectStore",
    "S3ObjectStore",
    "StorageConfig",
    "create_object_store",
    "create_s3_client",
]
